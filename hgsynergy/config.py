"""
Per-run configuration: background prevalence, NTE buildup rate and numerical bounds
"""
from dataclasses import dataclass, replace
from typing import Tuple

from hgsynergy.utils.literature_params import BACKGROUND_PREVALENCE, PHI, ROOT_SEARCH


@dataclass(frozen=True)
class RunConfig:
    """
    Fixed for the lifetime of one analysis run. Re-running with a different
    Y_0 (robustness checks) means building a new RunConfig, e.g. via
    ``config.with_background(0.025)``.
    """
    y_0: float = BACKGROUND_PREVALENCE["default"]
    phi: float = PHI

    # Calibration
    max_fit_evaluations: int = 2000

    # Mixture validation
    ratio_tolerance: float = 1e-10

    # IEA equivalent-dose inversion
    root_bracket: Tuple[float, float] = ROOT_SEARCH["bracket"]
    root_xtol: float = ROOT_SEARCH["xtol"]
    root_max_iter: int = ROOT_SEARCH["max_iter"]
    max_bracket_expansions: int = ROOT_SEARCH["max_expansions"]

    # IEA integration
    ode_method: str = "Radau"
    ode_rtol: float = 1e-8
    ode_atol: float = 1e-10
    max_rate_evaluations: int = 200000

    def __post_init__(self):
        if not 0.0 <= self.y_0 < 1.0:
            raise ValueError(f"Background prevalence must be in [0, 1), got {self.y_0}")
        if self.phi <= 0:
            raise ValueError(f"phi must be positive, got {self.phi}")
        lo, hi = self.root_bracket
        if lo < 0 or hi <= lo:
            raise ValueError(f"Invalid root bracket {self.root_bracket}")

    def with_background(self, y_0: float) -> "RunConfig":
        """New config identical to this one except for Y_0"""
        return replace(self, y_0=y_0)


DEFAULT_CONFIG = RunConfig()
