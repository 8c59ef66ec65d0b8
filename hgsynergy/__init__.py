"""
Mixed-beam Harderian gland tumorigenesis: one-ion DER calibration and
no-synergy/antagonism mixture baselines (SEA, IEA)
"""
from .config import RunConfig, DEFAULT_CONFIG
from .exceptions import (
    SynergyError,
    InvalidMixtureSpec,
    CalibrationDivergence,
    RootNotFound,
    IntegrationFailure,
)
from .models.hazard_models import CalibratedDER, CoefficientSet, DoseRecord, ModelFamily
from .models.calibration import calibrate, calibrate_all, information_criteria_table
from .models.mixtures import calculate_iea, calculate_sea
from .validation.cross_validation import cross_validate, cross_validation_table


__all__ = [
    'RunConfig',
    'DEFAULT_CONFIG',
    'SynergyError',
    'InvalidMixtureSpec',
    'CalibrationDivergence',
    'RootNotFound',
    'IntegrationFailure',
    'CalibratedDER',
    'CoefficientSet',
    'DoseRecord',
    'ModelFamily',
    'calibrate',
    'calibrate_all',
    'information_criteria_table',
    'calculate_sea',
    'calculate_iea',
    'cross_validate',
    'cross_validation_table',
]
