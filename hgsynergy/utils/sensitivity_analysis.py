import logging

import numpy as np
import pandas as pd

from hgsynergy.config import DEFAULT_CONFIG
from hgsynergy.models.calibration import calibrate
from hgsynergy.models.hazard_models import ModelFamily
from hgsynergy.utils.literature_params import BACKGROUND_PREVALENCE

logger = logging.getLogger(__name__)


def background_robustness(records, y0_values=None, config=DEFAULT_CONFIG,
                          families=(ModelFamily.NTE, ModelFamily.TE, ModelFamily.LOW_LET)):
    """
    Refit each model family under alternative background prevalences

    Args:
        records: single-ion records
        y0_values: Y_0 values to try; defaults to the literature robustness
            values plus the configured one
        config: base run configuration; each Y_0 gets its own copy

    Returns:
        DataFrame with one row per (Y_0, family): coefficients, AIC, BIC
    """
    if y0_values is None:
        y0_values = sorted(set(BACKGROUND_PREVALENCE["robustness"]) | {config.y_0})

    rows = []
    for y_0 in y0_values:
        run_config = config.with_background(y_0)
        for family in families:
            fit = calibrate(records, family, run_config)
            row = {'Y_0': y_0, 'family': fit.family.value, 'AIC': fit.aic, 'BIC': fit.bic}
            row.update(fit.coefficients.as_dict())
            rows.append(row)
        logger.info("Refitted %d families with Y_0 = %g", len(families), y_0)
    return pd.DataFrame(rows)


def quick_sensitivity_local(base_config, field, simulation_func, n_points=20, span=0.5):
    """
    One-at-a-time (OAT) sensitivity of a scalar output to one RunConfig field

    Args:
        base_config: baseline RunConfig
        field: name of the config field to vary (e.g. 'y_0' or 'phi')
        simulation_func: callable taking a RunConfig and returning a float
        n_points: number of points to sample
        span: relative half-width of the sampled range

    Returns:
        (param_values, output_values) arrays
    """
    from dataclasses import replace

    base_value = getattr(base_config, field)
    param_values = np.linspace(base_value * (1 - span), base_value * (1 + span), n_points)
    output_values = [simulation_func(replace(base_config, **{field: val})) for val in param_values]
    return param_values, np.array(output_values)
