"""
Algebraic systems solved when computing a steady state dosing solution.

A `SteadyStateSystem` maps a candidate amount vector `x` to the residual

    r = x - pred

where `pred` is the amount vector one interdose interval (ii) after a dose is
administered on top of `x`. Under a constant infusion there is no repeating
cycle and the residual is the derivative of the system evaluated at `x`.
The root of the residual is the steady state; finding it is the job of an
outer nonlinear solver (see `steadyode.solvers.find_steady_state`).

The regime is selected from the infusion rate into the dosing compartment and
the interdose interval:

    rate == 0              bolus
    rate != 0 and ii > 0   multiple truncated infusions
    rate != 0 and ii <= 0  constant infusion

The residual is written with `jax.numpy`, so `x` and `y` may be traced
(`jax.jacrev`, `jax.grad`, `jax.jit`, `jax.vmap`). `data` and `idata` are
plain numbers: the regime is chosen with Python control flow, so they must not
be traced.
"""
import enum
import logging
import warnings
from typing import Callable

import flax.struct
import jax.numpy as jnp
import numpy as np

from .errors import InfeasibleInfusionError, UnsupportedRegimeError
from .integrators import DiffraxIntegrator

logger = logging.getLogger(__name__)


class Regime(enum.Enum):
    BOLUS = "bolus"
    TRUNCATED_INFUSION = "multiple truncated infusions"
    CONSTANT_INFUSION = "constant infusion"


def regime_for(rate, ii) -> Regime:
    if rate == 0:
        return Regime.BOLUS
    if ii > 0:
        return Regime.TRUNCATED_INFUSION
    return Regime.CONSTANT_INFUSION


@flax.struct.dataclass
class FixedAmount:
    """
    amt and rate are both fixed (data) variables.

    `data` contains the rates in each compartment followed by the adjusted
    amount (biovar * amt). The model parameters `y` are forwarded unchanged.
    """

    def n_rates(self, n_cmt):
        return n_cmt + 1

    def amount(self, y, data):
        return data[-1]

    def parameters(self, y):
        return y

    def rates(self, data):
        return data[:-1]

    def infusion_time(self, amt, rate, ii):
        delta = amt / rate
        if delta < 0 or delta > ii:
            raise InfeasibleInfusionError(delta, ii)
        return delta


@flax.struct.dataclass
class VariableAmount:
    """
    The adjusted amount is a parameter and rate a fixed variable.

    This usually happens because biovar is a parameter, making amt a
    transformed parameter. The last element of `y` contains amt and only the
    remaining elements are forwarded to the model. `data` stores the rates.
    """

    def n_rates(self, n_cmt):
        return n_cmt

    def amount(self, y, data):
        return y[-1]

    def parameters(self, y):
        return y[:-1]

    def rates(self, data):
        return data

    def infusion_time(self, amt, rate, ii):
        # the end of the infusion would be a differentiable breakpoint
        raise UnsupportedRegimeError(
            Regime.TRUNCATED_INFUSION,
            "(i.e ii > 0 and rate > 0) when F * amt is a parameter",
        )


@flax.struct.dataclass
class SteadyStateSystem:
    """
    Residual of the steady state fixed point for one dosing event.

    Attributes:
        rhs: Model right hand side, `rhs(t, y, parameters, rate_data, integer_data, extra)`.
        ii (float): Interdose interval. `ii <= 0` means constant infusion.
        cmt (int): Dosing compartment, 1-based.
        integrator: Integrator service,
            `integrator(rhs, y0, t0, ts, parameters, rate_data, integer_data) -> ys`.
        dose_source: `FixedAmount()` (amt in data) or `VariableAmount()` (amt in y).
    """
    rhs: Callable = flax.struct.field(pytree_node=False)
    ii: float = flax.struct.field(pytree_node=False)
    cmt: int = flax.struct.field(pytree_node=False)
    integrator: Callable = flax.struct.field(pytree_node=False, default=DiffraxIntegrator())
    dose_source: FixedAmount | VariableAmount = flax.struct.field(pytree_node=False, default=FixedAmount())

    def __post_init__(self):
        if self.cmt < 1:
            raise ValueError(f"Dosing compartment (cmt) is 1-based, got {self.cmt}")

    def __call__(self, x, y, data, idata=()):
        return self.evaluate(x, y, data, idata)

    def evaluate(self, x, y, data, idata=()):
        x = jnp.asarray(x)
        y = jnp.asarray(y)
        data = np.asarray(data, dtype=np.float64)
        dtype = jnp.result_type(x, y, float)
        x = x.astype(dtype)

        n_cmt = x.shape[0]
        n_rates = self.dose_source.n_rates(n_cmt)
        if data.shape != (n_rates,):
            raise ValueError(
                f"{type(self.dose_source).__name__} expects {n_rates} data entries for"
                f" {n_cmt} compartments, got {data.shape[0]}"
            )
        if self.cmt > n_cmt:
            raise ValueError(f"Dosing compartment {self.cmt} out of range for {n_cmt} compartments")

        amt = self.dose_source.amount(y, data)
        parms = self.dose_source.parameters(y)
        rate_v = self.dose_source.rates(data)
        rate = data[self.cmt - 1]
        regime = regime_for(rate, self.ii)
        logger.debug("Steady state residual: %s regime (rate=%s, ii=%s, cmt=%s)",
                     regime.value, rate, self.ii, self.cmt)

        if regime is Regime.BOLUS:
            if self.ii <= 0:
                warnings.warn(
                    f"Bolus steady state with a non-positive interdose interval (ii={self.ii})"
                    " has no fixed point.",
                    RuntimeWarning,
                )
            x0 = x.at[self.cmt - 1].add(amt)
            pred = self.integrator(self.rhs, x0, 0.0, [self.ii], parms, data, idata)[0]
            return x - pred

        if regime is Regime.TRUNCATED_INFUSION:
            delta = self.dose_source.infusion_time(amt, rate, self.ii)
            # infusion on over [0, delta], off over the rest of the interval
            x0 = self.integrator(self.rhs, x, 0.0, [delta], parms, data, idata)[0]
            pred = self.integrator(self.rhs, x0, 0.0, [self.ii - delta], parms,
                                   np.zeros_like(data), idata)[0]
            return x - pred

        derivative = self.rhs(0.0, x, parms, rate_v, idata, None)
        return jnp.asarray(derivative, dtype=dtype)

    def bind(self, y, data, idata=()):
        """Fixes everything but the candidate state, `x -> residual`."""
        def residual(x):
            return self.evaluate(x, y, data, idata)
        return residual


def fixed_amount_system(rhs, ii, cmt, integrator=None):
    integrator = DiffraxIntegrator() if integrator is None else integrator
    return SteadyStateSystem(rhs=rhs, ii=ii, cmt=cmt, integrator=integrator,
                             dose_source=FixedAmount())


def variable_amount_system(rhs, ii, cmt, integrator=None):
    integrator = DiffraxIntegrator() if integrator is None else integrator
    return SteadyStateSystem(rhs=rhs, ii=ii, cmt=cmt, integrator=integrator,
                             dose_source=VariableAmount())
