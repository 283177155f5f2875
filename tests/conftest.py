import os
os.environ.setdefault('JAX_PLATFORMS', 'cpu')

import jax
jax.config.update("jax_enable_x64", True)

import numpy as np
import pytest

from steadyode.integrators import DiffraxIntegrator


class RecordingIntegrator:
    """Wraps an integrator and records the span and rates of every call."""

    def __init__(self, integrator):
        self.integrator = integrator
        self.calls = []

    def __call__(self, rhs, y0, t0, ts, parameters, rate_data, integer_data):
        self.calls.append({
            'span': float(ts[-1]) - float(t0),
            'rate_data': np.asarray(rate_data),
        })
        return self.integrator(rhs, y0, t0, ts, parameters, rate_data, integer_data)


@pytest.fixture
def integrator():
    """Non-stiff solver with tight tolerances, cheap to compile."""
    return DiffraxIntegrator(stiff=False, rtol=1e-10, atol=1e-12)


@pytest.fixture
def recording_integrator(integrator):
    return RecordingIntegrator(integrator)


@pytest.fixture
def one_cmt_params():
    """cl=2, vd=10 -> ke=0.2"""
    return np.array([2.0, 10.0])
