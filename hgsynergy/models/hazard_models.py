"""
One-ion hazard functions and calibrated dose-effect relationships (DERs)

DER(dose, LET) = 1 - exp(-hazard(dose, LET)), so DER(0) = 0 and DER < 1.
Observed prevalence is modelled as Y_0 + DER.

Literature basis:
- Chang et al. Radiat Res 2016: HZE targeted-effects (TE) DER
- Cucinotta & Cacao Sci Rep 2017: non-targeted effects (NTE) hazard term
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Mapping, NamedTuple, Tuple

import numpy as np
import pandas as pd

from hgsynergy.config import DEFAULT_CONFIG, RunConfig
from hgsynergy.utils.literature_params import HZE_MIN_CHARGE, START_VALUES


class ModelFamily(str, Enum):
    LOW_LET = "lowLET"
    TE = "TE"
    NTE = "NTE"

    @classmethod
    def coerce(cls, value) -> "ModelFamily":
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown model family {value!r}; expected one of "
                         f"{[m.value for m in cls]}")


class DoseRecord(NamedTuple):
    """One single-ion (or mixture) observation"""
    Z: float
    LET: float
    dose: float  # cGy
    Prev: float  # fraction, never %
    NWeight: float


RECORD_COLUMNS = list(DoseRecord._fields)


def as_frame(records) -> pd.DataFrame:
    """Accept a DataFrame or an iterable of DoseRecord; always returns a copy"""
    if isinstance(records, pd.DataFrame):
        return records.copy()
    return pd.DataFrame([tuple(r) for r in records], columns=RECORD_COLUMNS)


def select_hze(records: pd.DataFrame) -> pd.DataFrame:
    """HZE subset: ion charge Z > 3"""
    return records[records["Z"] > HZE_MIN_CHARGE]


def select_low_let(records: pd.DataFrame) -> pd.DataFrame:
    """Light ions (protons, alphas): Z <= 3"""
    return records[records["Z"] <= HZE_MIN_CHARGE]


# ---------------------------------------------------------------------------
# Hazard functions
# ---------------------------------------------------------------------------

def nte_hazard(dose, let, aa1, aa2, kk1, phi=DEFAULT_CONFIG.phi):
    """TE term plus an NTE term that saturates at kk1 once phi * dose >> 1"""
    return aa1 * let * dose * np.exp(-aa2 * let) + (1 - np.exp(-phi * dose)) * kk1


def te_hazard(dose, let, aate1, aate2, phi=None):
    return aate1 * let * dose * np.exp(-aate2 * let)


def low_let_hazard(dose, let, alpha_low, phi=None):
    # LET is reserved for a possible small-LET refinement; currently unused
    return alpha_low * dose


# ---------------------------------------------------------------------------
# Closed-form slopes dDER/ddose used by IEA
# ---------------------------------------------------------------------------

def calculate_di_nte(aa, u, kk1, phi=DEFAULT_CONFIG.phi):
    """dDER/ddose of the NTE DER at dose u, with aa = aa1 * LET * exp(-aa2 * LET)"""
    return (aa + np.exp(-phi * u) * kk1 * phi) * np.exp(-(aa * u + (1 - np.exp(-phi * u)) * kk1))


def calculate_di_te(aa, u):
    """dDER/ddose of the TE DER at dose u, with aa = aate1 * LET * exp(-aate2 * LET)"""
    return aa * np.exp(-aa * u)


def low_let_slope(alpha_low, u):
    return alpha_low * np.exp(-alpha_low * u)


@dataclass(frozen=True)
class HazardModel:
    """Functional form and data subset of one model family"""
    family: ModelFamily
    param_names: Tuple[str, ...]
    hazard: Callable
    select: Callable[[pd.DataFrame], pd.DataFrame]
    description: str = ""

    @property
    def default_start(self) -> Dict[str, float]:
        return dict(START_VALUES[self.family.value])

    def expected_prevalence(self, dose, let, params, config: RunConfig = DEFAULT_CONFIG):
        """Y_0 + DER; the regression function that is calibrated"""
        return config.y_0 + 1 - np.exp(-self.hazard(dose, let, *params, phi=config.phi))


HAZARD_MODELS = {
    ModelFamily.NTE: HazardModel(
        family=ModelFamily.NTE,
        param_names=("aa1", "aa2", "kk1"),
        hazard=nte_hazard,
        select=select_hze,
        description="HZE targeted + non-targeted effects",
    ),
    ModelFamily.TE: HazardModel(
        family=ModelFamily.TE,
        param_names=("aate1", "aate2"),
        hazard=te_hazard,
        select=select_hze,
        description="HZE targeted effects only",
    ),
    ModelFamily.LOW_LET: HazardModel(
        family=ModelFamily.LOW_LET,
        param_names=("alpha_low",),
        hazard=low_let_hazard,
        select=select_low_let,
        description="Swift protons and alpha particles",
    ),
}


def get_hazard_model(family) -> HazardModel:
    return HAZARD_MODELS[ModelFamily.coerce(family)]


def _frozen_array(values, shape=None) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if shape is not None:
        arr = arr.reshape(shape)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class CoefficientSet:
    """
    Calibrated parameters of one model family plus their covariance.
    Never mutated; re-calibration produces a new instance.
    """
    family: ModelFamily
    names: Tuple[str, ...]
    values: np.ndarray
    covariance: np.ndarray = field(default=None)

    def __post_init__(self):
        family = ModelFamily.coerce(self.family)
        names = tuple(self.names)
        expected = HAZARD_MODELS[family].param_names
        if names != expected:
            raise ValueError(f"{family.value} coefficients must be {expected}, got {names}")
        k = len(names)
        values = _frozen_array(self.values, (k,))
        if self.covariance is None:
            covariance = _frozen_array(np.full((k, k), np.nan))
        else:
            covariance = _frozen_array(self.covariance, (k, k))
        object.__setattr__(self, "family", family)
        object.__setattr__(self, "names", names)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "covariance", covariance)

    @classmethod
    def from_values(cls, family, values: Mapping[str, float], covariance=None) -> "CoefficientSet":
        model = get_hazard_model(family)
        missing = [name for name in model.param_names if name not in values]
        if missing:
            raise ValueError(f"Missing {model.family.value} coefficients: {missing}")
        return cls(model.family, model.param_names,
                   [values[name] for name in model.param_names], covariance)

    def __getitem__(self, name: str) -> float:
        try:
            return float(self.values[self.names.index(name)])
        except ValueError:
            raise KeyError(name) from None

    def __len__(self):
        return len(self.names)

    def as_dict(self) -> Dict[str, float]:
        return {name: float(v) for name, v in zip(self.names, self.values)}

    @property
    def std_errors(self) -> np.ndarray:
        return np.sqrt(np.diag(self.covariance))

    def covariance_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.covariance, index=list(self.names), columns=list(self.names))

    def correlation_frame(self) -> pd.DataFrame:
        se = self.std_errors
        return pd.DataFrame(self.covariance / np.outer(se, se),
                            index=list(self.names), columns=list(self.names))


class CalibratedDER:
    """
    Pure function object wrapping one CoefficientSet:
    (dose, LET) -> incremental prevalence 1 - exp(-hazard)
    """

    def __init__(self, coefficients: CoefficientSet, config: RunConfig = DEFAULT_CONFIG):
        self.coefficients = coefficients
        self.config = config
        self.model = HAZARD_MODELS[coefficients.family]

    @property
    def family(self) -> ModelFamily:
        return self.coefficients.family

    def hazard(self, dose, let):
        return self.model.hazard(dose, let, *self.coefficients.values, phi=self.config.phi)

    def __call__(self, dose, let=0.0):
        return 1 - np.exp(-self.hazard(dose, let))

    def prevalence(self, dose, let=0.0):
        """Total prevalence including background, comparable to observed Prev"""
        return self.config.y_0 + self(dose, let)

    def effective_coefficient(self, let):
        """The LET-dependent slope 'aa' of the targeted hazard term"""
        c = self.coefficients.values
        if self.family is ModelFamily.LOW_LET:
            return c[0]
        return c[0] * let * np.exp(-c[1] * let)

    def slope(self, dose, let=0.0):
        """Closed-form dDER/ddose"""
        aa = self.effective_coefficient(let)
        if self.family is ModelFamily.NTE:
            return calculate_di_nte(aa, dose, self.coefficients["kk1"], self.config.phi)
        if self.family is ModelFamily.TE:
            return calculate_di_te(aa, dose)
        return low_let_slope(aa, dose)

    def __repr__(self):
        return f"CalibratedDER({self.family.value}, {self.coefficients.as_dict()})"


def calibrated_nte_der(coefficients: CoefficientSet, config: RunConfig = DEFAULT_CONFIG) -> CalibratedDER:
    return _checked_der(coefficients, ModelFamily.NTE, config)


def calibrated_te_der(coefficients: CoefficientSet, config: RunConfig = DEFAULT_CONFIG) -> CalibratedDER:
    return _checked_der(coefficients, ModelFamily.TE, config)


def calibrated_low_let_der(coefficients: CoefficientSet, config: RunConfig = DEFAULT_CONFIG) -> CalibratedDER:
    return _checked_der(coefficients, ModelFamily.LOW_LET, config)


def _checked_der(coefficients, family, config):
    if coefficients.family is not family:
        raise ValueError(f"Expected {family.value} coefficients, got {coefficients.family.value}")
    return CalibratedDER(coefficients, config)
