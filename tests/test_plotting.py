import numpy as np
import pandas as pd

from occusim.plotting import plot_map, plot_surface_panels, plot_truth_vs_estimate


def test_plot_map(sim_st, tmp_path):
    gdf = sim_st.grid.copy()
    gdf["psi"] = sim_st.psi[:, 0]
    out = tmp_path / "figs" / "psi.png"
    plot_map(gdf, "psi", "ψ", out, dpi=50, vmin=0, vmax=1)
    assert out.exists()


def test_plot_surface_panels(sim_st, tmp_path):
    gdf = sim_st.grid.copy()
    gdf["psi"] = sim_st.psi[:, 0]
    gdf["z"] = sim_st.z[:, 0]

    shared = tmp_path / "shared.png"
    plot_surface_panels(gdf, ["psi", "z"], ["ψ", "z"], shared, dpi=50)
    assert shared.exists()

    free = tmp_path / "free.png"
    plot_surface_panels(gdf, ["psi"], ["ψ"], free, dpi=50, shared_scale=None)
    assert free.exists()


def test_plot_truth_vs_estimate(tmp_path):
    table = pd.DataFrame({
        "parameter": ["beta0", "beta1", "ell_field"],
        "mean": [0.1, 0.9, 0.4],
        "hdi_low": [-0.2, 0.6, 0.2],
        "hdi_high": [0.4, 1.2, 0.7],
        "true_value": [0.0, 1.0, np.nan],
    })
    out = tmp_path / "params.png"
    plot_truth_vs_estimate(table, out, dpi=50)
    assert out.exists()
