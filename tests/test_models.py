import numpy as np
import pymc as pm
import pytest
from scipy.stats import binom

from occusim.config import FitSettings
from occusim.io import OccupancyData
from occusim.models import _hsgp_basis, build_model, naive_occupancy, scale_coords

SETTINGS = FitSettings(m=(4, 4), c=1.5)


@pytest.fixture
def data(sim_st):
    return OccupancyData.from_simulation(sim_st)


def jittered_point(model, seed):
    rng = np.random.default_rng(seed)
    return {
        name: value + rng.uniform(-0.5, 0.5, size=np.shape(value))
        for name, value in model.initial_point().items()
    }


def evaluate(model, outs, point):
    """Values of `outs` with every random variable set from `point`."""
    graphs = model.replace_rvs_by_values(outs)
    fn = model.compile_fn(graphs, inputs=model.value_vars, on_unused_input="ignore")
    return fn({v.name: point[v.name] for v in model.value_vars})


def test_scale_coords_unit_box():
    coords = np.array([[10.0, 5.0], [30.0, 5.0], [20.0, 15.0]])
    X, centre, half = scale_coords(coords)
    assert np.allclose(centre, [20.0, 10.0])
    assert half == 10.0
    assert np.abs(X).max() == pytest.approx(1.0)


@pytest.mark.parametrize("kind, expected", [
    ("spatial", {"beta0", "beta1", "alpha0", "alpha1", "sigma_field", "ell_field"}),
    ("spatiotemporal", {"rho", "sigma_field", "ell_field"}),
    ("svc", {"sigma_svc", "ell_svc", "slope"}),
])
def test_build_model_variables(data, kind, expected):
    model = build_model(data, kind=kind, settings=SETTINGS)
    assert expected <= set(model.named_vars)
    assert {"psi", "p", "w"} <= set(model.named_vars)

    logp = model.compile_logp()(model.initial_point())
    assert np.isfinite(logp)


@pytest.mark.parametrize("kind", ["spatial", "spatiotemporal", "svc"])
def test_likelihood_marginalises_occupancy(data, kind):
    model = build_model(data, kind=kind, settings=SETTINGS)
    point = jittered_point(model, seed=11)
    psi, p, lik = evaluate(model, [model["psi"], model["p"], model.potentials[0]], point)

    y, K = data.n_detections, data.n_visits
    assert (y > 0).any() and (y == 0).any()

    psi_obs = psi[data.cell_idx, data.time_idx]
    detected = np.log(psi_obs) + binom.logpmf(y, K, p)
    missed = np.log((1 - psi_obs) + psi_obs * (1 - p) ** K)
    expected = np.where(y > 0, detected, missed).sum()

    assert float(lik) == pytest.approx(expected, rel=1e-6)


def test_spatiotemporal_weights_follow_ar1(data):
    model = build_model(data, kind="spatiotemporal", settings=SETTINGS)
    point = jittered_point(model, seed=5)
    w, rho, sigma, eps = evaluate(
        model, [model["w"], model["rho"], model["sigma_field"], model["eps_field"]], point
    )

    # same basis as inside the model, evaluated at the same lengthscale
    X, _, _ = scale_coords(data.coords)
    with pm.Model() as basis_model:
        basis = _hsgp_basis("field", X, SETTINGS.m, SETTINGS.c)
    (basis,) = evaluate(basis_model, [basis], point)

    innovation = sigma * (basis @ eps)
    assert np.allclose(w[:, 0], innovation[:, 0])
    for t in range(1, data.n_times):
        assert np.allclose(w[:, t], rho * w[:, t - 1] + np.sqrt(1 - rho ** 2) * innovation[:, t])


def test_psi_has_cell_by_time_shape(data):
    model = build_model(data, kind="spatiotemporal", settings=SETTINGS)
    psi = pm.draw(model["psi"], random_seed=1)
    assert psi.shape == (data.n_cells, data.n_times)
    assert ((psi > 0) & (psi < 1)).all()

    p = pm.draw(model["p"], random_seed=1)
    assert p.shape == (data.n_obs,)


def test_spatial_field_is_shared_across_time(data):
    model = build_model(data, kind="spatial", settings=SETTINGS)
    w = pm.draw(model["w"], random_seed=3)
    assert np.allclose(w, w[:, [0]])


def test_unknown_kind(data):
    with pytest.raises(ValueError):
        build_model(data, kind="dynamic", settings=SETTINGS)


def test_naive_occupancy(data):
    naive = naive_occupancy(data)
    assert list(naive["time"]) == list(range(data.n_times))
    assert naive["naive_occupancy"].between(0, 1).all()
