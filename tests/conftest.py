import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from occusim.config import SimulationParams
from occusim.simulate import simulate_occupancy


def small_params(**overrides):
    base = dict(
        nx=10,
        ny=8,
        mesh_buffer=3,
        field_range=4000.0,
        covariate_range=5000.0,
        n_sites=40,
        min_visits=2,
        max_visits=4,
        seed=7,
    )
    base.update(overrides)
    return SimulationParams(**base).validate()


@pytest.fixture
def params():
    return small_params()


@pytest.fixture
def sim_st():
    """Spatio-temporal simulation with a spatially varying slope."""
    return simulate_occupancy(small_params(n_times=3, rho=0.5, svc=True))


@pytest.fixture
def rng():
    return np.random.default_rng(2024)
