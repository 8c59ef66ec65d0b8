"""
Error conditions raised by calibration and the mixture combinators
"""


class SynergyError(Exception):
    """Base class for all hgsynergy errors"""


class InvalidMixtureSpec(SynergyError, ValueError):
    """Mixture components are inconsistent (lengths, declared count, ratio sum)"""


class CalibrationDivergence(SynergyError):
    """Weighted nonlinear fit did not converge from the given start values"""

    def __init__(self, family, start, message):
        self.family = family
        self.start = dict(start)
        self.message = message
        super().__init__(
            f"{family} calibration did not converge from start {self.start}: {message}"
        )


class RootNotFound(SynergyError):
    """Equivalent solo dose could not be bracketed for a mixture component"""

    def __init__(self, let, effect, bracket):
        self.let = let
        self.effect = effect
        self.bracket = tuple(bracket)
        super().__init__(
            f"No dose in [{self.bracket[0]:g}, {self.bracket[1]:g}] cGy gives effect "
            f"{effect:.6g} for LET {let:g} keV/micron"
        )


class IntegrationFailure(SynergyError):
    """ODE solver could not integrate the IEA rate equation"""

    def __init__(self, last_dose, message):
        self.last_dose = last_dose
        self.message = message
        super().__init__(f"IEA integration failed after dose {last_dose:.6g} cGy: {message}")
