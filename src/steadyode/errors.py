class SteadyStateError(ValueError):
    """Invalid-argument failure raised while evaluating a steady state residual."""


class InfeasibleInfusionError(SteadyStateError):
    """
    The infusion time (F * amt / rate) does not fit inside the interdose interval.

    Overlapping infusions from previous cycles are not superposed, so there is no
    residual to return for this dose/rate/interval combination.
    """

    def __init__(self, delta, ii):
        self.delta = delta
        self.ii = ii
        super().__init__(
            f"Steady State Solution: Infusion time (F * amt / rate) is {delta}"
            f" but must be between 0 and the interdose interval (ii): {ii}!"
        )


class UnsupportedRegimeError(SteadyStateError):
    def __init__(self, regime, reason):
        self.regime = regime
        super().__init__(f"Steady State Solution: {regime.value} regime is not supported {reason}")
