from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np

from .steady_state import (Regime, regime_for,
                           fixed_amount_system, variable_amount_system)


@dataclass(frozen=True)
class SteadyStateDose:
    """
    A repeated dosing event, packed into the vectors a `SteadyStateSystem` consumes.

    Attributes:
        amt (float): Dose amount.
        rate (float): Infusion rate into `cmt`, 0 for a bolus.
        ii (float): Interdose interval, <= 0 for a constant infusion.
        cmt (int): Dosing compartment (1-based).
        n_cmt (int): Number of compartments of the model.
        biovar (float): Bioavailability fraction applied to `amt`.
    """
    amt: float
    rate: float
    ii: float
    cmt: int
    n_cmt: int
    biovar: float = 1.0

    def __post_init__(self):
        if not 1 <= self.cmt <= self.n_cmt:
            raise ValueError(f"cmt must be in 1..{self.n_cmt}, got {self.cmt}")
        if self.amt < 0:
            raise ValueError(f"amt must be non-negative, got {self.amt}")
        if self.rate < 0:
            raise ValueError(f"rate must be non-negative, got {self.rate}")

    @property
    def regime(self) -> Regime:
        return regime_for(self.rate, self.ii)

    @property
    def effective_amount(self):
        return self.biovar * self.amt

    def rates(self):
        rate_v = np.zeros(self.n_cmt)
        rate_v[self.cmt - 1] = self.rate
        return rate_v

    def fixed_amount_data(self):
        """Rates in each compartment followed by biovar * amt."""
        return np.append(self.rates(), float(self.effective_amount))

    def variable_amount_params(self, params, biovar=None):
        """
        Model parameters with biovar * amt appended as the last element.

        `biovar` may be a traced value (e.g. an estimated bioavailability), in
        which case the appended amount carries its derivative.
        """
        biovar = self.biovar if biovar is None else biovar
        params = jnp.asarray(params)
        amt = jnp.asarray(biovar * self.amt, dtype=jnp.result_type(params, float))
        return jnp.concatenate([params, amt[None]])

    def system(self, rhs, integrator=None, variable_amount=False):
        if variable_amount:
            return variable_amount_system(rhs, self.ii, self.cmt, integrator)
        return fixed_amount_system(rhs, self.ii, self.cmt, integrator)
