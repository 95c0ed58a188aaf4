import pytest

from occusim.config import SCENARIOS, FitSettings, SimulationParams, scenario_params


def test_scenario_presets():
    spatial = scenario_params("spatial")
    assert spatial.n_times == 1 and not spatial.svc

    st = scenario_params("spatiotemporal")
    assert st.n_times == SCENARIOS["spatiotemporal"]["n_times"]
    assert st.rho == pytest.approx(0.7)

    assert scenario_params("svc").svc


def test_scenario_overrides_are_applied():
    p = scenario_params("spatiotemporal", nx=12, n_times=2, seed=1)
    assert (p.nx, p.n_times, p.seed) == (12, 2, 1)
    assert p.n_cells == 12 * p.ny


def test_unknown_scenario():
    with pytest.raises(KeyError):
        scenario_params("dynamic")


@pytest.mark.parametrize("overrides", [
    {"rho": 1.0},
    {"rho": -1.2},
    {"min_visits": 0},
    {"min_visits": 4, "max_visits": 3},
    {"n_sites": 10_000},
    {"field_range": 0.0},
    {"cell_size": -1.0},
    {"n_times": 0},
    {"svc": True, "svc_sigma": 0.0},
    {"beta": (0.0, 1.0, 2.0)},
])
def test_invalid_params_raise(overrides):
    with pytest.raises(ValueError):
        SimulationParams(**overrides).validate()


def test_fit_settings_defaults():
    s = FitSettings()
    assert s.chains >= 1
    assert 0 < s.target_accept < 1
    assert len(s.m) == 2
    assert s.extra_sample_kwargs == {}
