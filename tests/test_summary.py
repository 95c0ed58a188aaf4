import arviz as az
import numpy as np
import pytest

from occusim.grid import make_grid
from occusim.io import OccupancyData
from occusim.summary import (
    summarise_occupancy_surface,
    summarise_occupancy_trend,
    summarise_parameters,
)


@pytest.fixture
def fake_idata(sim_st):
    rng = np.random.default_rng(0)
    n_cells, T = sim_st.psi.shape
    shape = (2, 200)
    posterior = {
        "beta0": rng.normal(0.0, 0.2, shape),
        "beta1": rng.normal(1.0, 0.2, shape),
        "alpha0": rng.normal(-0.5, 0.1, shape),
        "alpha1": rng.normal(0.8, 0.1, shape),
        "sigma_field": np.abs(rng.normal(1.0, 0.1, shape)),
        "psi": np.clip(sim_st.psi + rng.normal(0, 0.02, shape + (n_cells, T)), 0.001, 0.999),
    }
    return az.from_dict(posterior=posterior, dims={"psi": ["cell", "time"]})


def test_summarise_parameters(fake_idata):
    truth = {"beta0": 0.0, "beta1": 1.0, "alpha0": 5.0}
    table = summarise_parameters(fake_idata, truth)

    assert list(table["parameter"]) == ["beta0", "beta1", "alpha0", "alpha1", "sigma_field"]
    assert (table["hdi_low"] < table["mean"]).all()
    assert (table["mean"] < table["hdi_high"]).all()
    assert {"ess_bulk", "r_hat"} <= set(table.columns)

    covered = table.set_index("parameter")["covered"]
    assert covered["beta0"] == True
    assert covered["alpha0"] == False
    assert np.isnan(table.set_index("parameter").loc["alpha1", "true_value"])


def test_summarise_parameters_without_truth(fake_idata):
    table = summarise_parameters(fake_idata)
    assert table["true_value"].isna().all()
    assert table["covered"].isna().all()


def test_occupancy_surface(fake_idata, sim_st):
    grid = make_grid(sim_st.params)
    surface = summarise_occupancy_surface(fake_idata, grid)

    assert len(surface) == sim_st.params.n_cells * sim_st.n_times
    assert surface.crs == grid.crs
    assert (surface["psi_low"] <= surface["psi_mean"]).all()
    assert (surface["psi_mean"] <= surface["psi_high"]).all()
    assert np.allclose(surface["psi_width"], surface["psi_high"] - surface["psi_low"])

    row = surface[(surface["cell_id"] == 3) & (surface["time"] == 1)].iloc[0]
    assert row["psi_mean"] == pytest.approx(sim_st.psi[3, 1], abs=0.02)


def test_occupancy_trend(fake_idata, sim_st):
    data = OccupancyData.from_simulation(sim_st)
    trend = summarise_occupancy_trend(fake_idata, data)

    assert list(trend["time"]) == list(range(sim_st.n_times))
    assert (trend["n_sites"] == sim_st.params.n_sites).all()
    assert np.allclose(trend["mean_occupancy"], sim_st.psi.mean(axis=0), atol=0.01)
    assert (trend["hdi_low"] <= trend["mean_occupancy"]).all()
    assert "naive_occupancy" in trend.columns
