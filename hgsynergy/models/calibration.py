"""
Weighted nonlinear least-squares calibration of one-ion hazard models

Prev ~ Y_0 + 1 - exp(-hazard(dose, LET, params)), weights = NWeight.

Uses scipy's Levenberg-Marquardt curve_fit with sigma = 1/sqrt(weight) and
relative sigma, which reproduces the estimates and covariance of a weighted
Gauss-Newton fit (R nls). Information criteria follow the weighted Gaussian
log-likelihood so NTE and TE can be ranked on the same data.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

import numpy as np
import pandas as pd
from scipy.optimize import curve_fit

from hgsynergy.config import DEFAULT_CONFIG, RunConfig
from hgsynergy.exceptions import CalibrationDivergence
from hgsynergy.models.hazard_models import (
    CalibratedDER,
    CoefficientSet,
    ModelFamily,
    as_frame,
    get_hazard_model,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("dose", "LET", "Prev")


@dataclass(frozen=True)
class CalibrationResult:
    """Container for one fitted model family"""
    coefficients: CoefficientSet
    config: RunConfig
    start: Dict[str, float]
    n_obs: int
    rss: float  # weighted residual sum of squares
    log_likelihood: float
    aic: float
    bic: float
    n_evaluations: int
    residuals: pd.Series
    fitted: pd.Series

    @property
    def family(self) -> ModelFamily:
        return self.coefficients.family

    @property
    def n_params(self) -> int:
        return len(self.coefficients)

    @property
    def residual_standard_error(self) -> float:
        return float(np.sqrt(self.rss / (self.n_obs - self.n_params)))

    def der(self) -> CalibratedDER:
        return CalibratedDER(self.coefficients, self.config)

    def predict(self, records) -> pd.Series:
        """Predicted prevalence (background included) for each record"""
        frame = as_frame(records)
        der = self.der()
        return pd.Series(der.prevalence(frame["dose"].to_numpy(float), frame["LET"].to_numpy(float)),
                         index=frame.index, name="predicted")

    def summary(self) -> pd.DataFrame:
        """Coefficient table: estimate, standard error and t value"""
        est = self.coefficients.values
        se = self.coefficients.std_errors
        return pd.DataFrame(
            {"Estimate": est, "Std. Error": se, "t value": est / se},
            index=list(self.coefficients.names),
        )

    def correlation(self) -> pd.DataFrame:
        return self.coefficients.correlation_frame()


def weighted_log_likelihood(residuals, weights) -> float:
    """Gaussian log-likelihood of a weighted least-squares fit (as R logLik.nls)"""
    res = np.asarray(residuals, dtype=float)
    w = np.asarray(weights, dtype=float)
    n = len(res)
    rss = float(np.sum(w * res ** 2))
    return 0.5 * (np.sum(np.log(w)) - n * (np.log(2 * np.pi) + 1 - np.log(n) + np.log(rss)))


def _prepare_subset(records, model, weight_field):
    frame = model.select(as_frame(records))
    missing = [c for c in REQUIRED_COLUMNS + (weight_field,) if c not in frame.columns]
    if missing:
        raise ValueError(f"Records are missing columns: {missing}")
    if frame.empty:
        raise ValueError(f"No records available for the {model.family.value} model")
    values = frame[list(REQUIRED_COLUMNS) + [weight_field]]
    if values.isna().any().any():
        raise ValueError("Calibration records contain missing values")
    if (frame[weight_field] <= 0).any():
        raise ValueError(f"Weights in {weight_field!r} must be positive")
    if len(frame) <= len(model.param_names):
        raise ValueError(
            f"{model.family.value} model has {len(model.param_names)} parameters "
            f"but only {len(frame)} records"
        )
    return frame


def calibrate(records, family, config: RunConfig = DEFAULT_CONFIG,
              weight_field: str = "NWeight",
              start: Optional[Mapping[str, float]] = None) -> CalibrationResult:
    """
    Fit one model family on its subset of the records.

    Args:
        records: DataFrame (or iterable of DoseRecord) with Z, LET, dose, Prev and weights
        family: "NTE", "TE" or "lowLET"
        config: run configuration providing Y_0 and phi
        weight_field: column holding the regression weights
        start: initial parameter guesses; defaults to the literature start values

    Raises:
        CalibrationDivergence: the fit did not converge within config.max_fit_evaluations
    """
    model = get_hazard_model(family)
    start = dict(model.default_start if start is None else start)
    unknown = set(start) ^ set(model.param_names)
    if unknown:
        raise ValueError(f"Start values for {model.family.value} must name {model.param_names}")
    p0 = [float(start[name]) for name in model.param_names]

    frame = _prepare_subset(records, model, weight_field)
    dose = frame["dose"].to_numpy(float)
    let = frame["LET"].to_numpy(float)
    prev = frame["Prev"].to_numpy(float)
    weights = frame[weight_field].to_numpy(float)

    def regression(x, *params):
        return model.expected_prevalence(x[0], x[1], params, config)

    try:
        popt, pcov, info, mesg, ier = curve_fit(
            regression,
            np.vstack([dose, let]),
            prev,
            p0=p0,
            sigma=1.0 / np.sqrt(weights),
            absolute_sigma=False,
            method="lm",
            maxfev=config.max_fit_evaluations,
            full_output=True,
        )
    except (RuntimeError, ValueError) as e:
        raise CalibrationDivergence(model.family.value, start, str(e)) from e

    if not np.all(np.isfinite(popt)):
        raise CalibrationDivergence(model.family.value, start, f"non-finite estimates {popt}")

    fitted = regression(np.vstack([dose, let]), *popt)
    residuals = prev - fitted
    n = len(prev)
    k = len(popt)
    rss = float(np.sum(weights * residuals ** 2))
    loglik = weighted_log_likelihood(residuals, weights)
    # Residual variance counts as an extra estimated parameter
    aic = -2 * loglik + 2 * (k + 1)
    bic = -2 * loglik + np.log(n) * (k + 1)

    coefficients = CoefficientSet(model.family, model.param_names, popt, pcov)
    logger.info("Calibrated %s on %d records: %s (weighted RSS %.4g, AIC %.3f)",
                model.family.value, n, coefficients.as_dict(), rss, aic)

    return CalibrationResult(
        coefficients=coefficients,
        config=config,
        start=start,
        n_obs=n,
        rss=rss,
        log_likelihood=float(loglik),
        aic=float(aic),
        bic=float(bic),
        n_evaluations=int(info["nfev"]),
        residuals=pd.Series(residuals, index=frame.index, name="residual"),
        fitted=pd.Series(fitted, index=frame.index, name="fitted"),
    )


@dataclass(frozen=True)
class CalibrationSuite:
    """NTE, TE and low-LET fits from one run"""
    nte: CalibrationResult
    te: CalibrationResult
    low_let: CalibrationResult

    def coefficients(self) -> Dict[ModelFamily, CoefficientSet]:
        return {result.family: result.coefficients for result in self}

    def __iter__(self):
        return iter((self.nte, self.te, self.low_let))


def calibrate_all(records, config: RunConfig = DEFAULT_CONFIG,
                  weight_field: str = "NWeight") -> CalibrationSuite:
    """Calibrate all three model families with their default start values"""
    return CalibrationSuite(
        nte=calibrate(records, ModelFamily.NTE, config, weight_field),
        te=calibrate(records, ModelFamily.TE, config, weight_field),
        low_let=calibrate(records, ModelFamily.LOW_LET, config, weight_field),
    )


def information_criteria_table(results: Iterable[CalibrationResult]) -> pd.DataFrame:
    """AIC/BIC comparison; lower is better on the same data"""
    rows = {
        r.family.value: {"df": r.n_params + 1, "AIC": r.aic, "BIC": r.bic}
        for r in results
    }
    return pd.DataFrame.from_dict(rows, orient="index")[["df", "AIC", "BIC"]]
