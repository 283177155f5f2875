import jax
import jax.numpy as jnp
import numpy as np
import pytest

from steadyode.diffeqs import OneCompartmentAbsorption
from steadyode.dosing import SteadyStateDose
from steadyode.steady_state import FixedAmount, Regime, VariableAmount


def test_fixed_amount_data_appends_adjusted_amount():
    dose = SteadyStateDose(amt=100.0, rate=0.0, ii=12.0, cmt=2, n_cmt=2, biovar=0.8)
    np.testing.assert_allclose(dose.fixed_amount_data(), [0.0, 0.0, 80.0])
    assert dose.regime is Regime.BOLUS


def test_rates_place_infusion_in_dosing_compartment():
    dose = SteadyStateDose(amt=100.0, rate=25.0, ii=24.0, cmt=1, n_cmt=3)
    np.testing.assert_array_equal(dose.rates(), [25.0, 0.0, 0.0])
    assert dose.regime is Regime.TRUNCATED_INFUSION
    assert SteadyStateDose(amt=0.0, rate=25.0, ii=0.0, cmt=1, n_cmt=1).regime is Regime.CONSTANT_INFUSION


def test_variable_amount_params_carry_biovar_derivative():
    dose = SteadyStateDose(amt=100.0, rate=0.0, ii=12.0, cmt=2, n_cmt=2)
    params = jnp.array([1.0, 2.0, 10.0])

    y = dose.variable_amount_params(params, biovar=0.5)
    np.testing.assert_allclose(y, [1.0, 2.0, 10.0, 50.0])

    d_amt = jax.grad(lambda f: dose.variable_amount_params(params, biovar=f)[-1])(0.5)
    assert float(d_amt) == pytest.approx(100.0)


@pytest.mark.parametrize("kwargs", [
    dict(amt=100.0, rate=0.0, ii=12.0, cmt=0, n_cmt=2),
    dict(amt=100.0, rate=0.0, ii=12.0, cmt=3, n_cmt=2),
    dict(amt=-1.0, rate=0.0, ii=12.0, cmt=1, n_cmt=2),
    dict(amt=100.0, rate=-5.0, ii=12.0, cmt=1, n_cmt=2),
])
def test_invalid_doses_are_rejected(kwargs):
    with pytest.raises(ValueError):
        SteadyStateDose(**kwargs)


def test_system_uses_matching_dose_source(integrator):
    dose = SteadyStateDose(amt=100.0, rate=0.0, ii=12.0, cmt=2, n_cmt=2, biovar=0.8)
    fixed = dose.system(OneCompartmentAbsorption.rhs, integrator)
    variable = dose.system(OneCompartmentAbsorption.rhs, integrator, variable_amount=True)
    assert isinstance(fixed.dose_source, FixedAmount)
    assert isinstance(variable.dose_source, VariableAmount)
    assert (fixed.ii, fixed.cmt) == (12.0, 2)

    params = np.array([1.0, 2.0, 10.0])
    x = np.array([3.0, 0.5])
    r_fixed = fixed(x, params, dose.fixed_amount_data())
    r_variable = variable(x, dose.variable_amount_params(params), dose.rates())
    np.testing.assert_allclose(r_variable, r_fixed, rtol=1e-10)
