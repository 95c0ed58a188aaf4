"""
Posterior summaries: scalar parameters against their true values, the
occupancy surface per cell, and the mean occupancy trend across time.
"""

import numpy as np
import pandas as pd
import geopandas as gpd
import arviz as az

from .models import naive_occupancy

SCALAR_PARAMETERS = [
    "beta0", "beta1", "alpha0", "alpha1",
    "sigma_field", "ell_field", "rho",
    "sigma_svc", "ell_svc",
]


def summarise_parameters(idata, truth=None, hdi_prob=0.95) -> pd.DataFrame:
    """
    Posterior mean, sd and HDI per scalar parameter, plus convergence
    diagnostics. When `truth` (parameter -> value) is given, adds the true
    value and whether the HDI covers it.
    """
    truth = truth or {}
    present = [v for v in SCALAR_PARAMETERS if v in idata.posterior.data_vars]

    rows = []
    for var in present:
        draws = idata.posterior[var].values.reshape(-1)
        hdi = az.hdi(draws, hdi_prob=hdi_prob)
        rows.append({
            "parameter": var,
            "mean": float(draws.mean()),
            "sd": float(draws.std()),
            "hdi_low": float(hdi[0]),
            "hdi_high": float(hdi[1]),
        })
    out = pd.DataFrame(rows, columns=["parameter", "mean", "sd", "hdi_low", "hdi_high"])

    if present:
        diag = az.summary(idata, var_names=present, kind="diagnostics")
        diag = diag.rename_axis("parameter").reset_index()[["parameter", "ess_bulk", "r_hat"]]
        out = out.merge(diag, on="parameter", how="left")

    tv = out["parameter"].map(truth).astype(float)
    out["true_value"] = tv
    inside = (tv >= out["hdi_low"]) & (tv <= out["hdi_high"])
    out["covered"] = inside.where(tv.notna())
    return out


def summarise_occupancy_surface(idata, grid, hdi_prob=0.95) -> gpd.GeoDataFrame:
    """One row per cell x time with posterior mean psi, HDI bounds and width."""
    psi = idata.posterior["psi"]
    mean = psi.mean(dim=("chain", "draw")).values          # (cell, time)
    hdi = az.hdi(idata, var_names=["psi"], hdi_prob=hdi_prob)["psi"]
    low = hdi.sel(hdi="lower").values
    high = hdi.sel(hdi="higher").values

    n_cells, T = mean.shape
    table = pd.DataFrame({
        "cell_id": np.tile(np.arange(n_cells), T),
        "time": np.repeat(np.arange(T), n_cells),
        "psi_mean": mean.T.ravel(),
        "psi_low": low.T.ravel(),
        "psi_high": high.T.ravel(),
    })
    table["psi_width"] = table["psi_high"] - table["psi_low"]

    cells = grid[["cell_id", "geometry"]]
    return gpd.GeoDataFrame(cells.merge(table, on="cell_id", how="right"), geometry="geometry", crs=grid.crs)


def summarise_occupancy_trend(idata, data, hdi_prob=0.95) -> pd.DataFrame:
    """
    Mean occupancy across all cells per time point (posterior mean + HDI),
    next to the naive occupancy of the surveyed sites.
    """
    psi_post = idata.posterior["psi"].values
    psi_post = psi_post.reshape(-1, *psi_post.shape[-2:])   # (samples, cell, time)
    area_mean = psi_post.mean(axis=1)                        # (samples, time)

    rows = []
    for t in range(area_mean.shape[1]):
        hdi = az.hdi(area_mean[:, t], hdi_prob=hdi_prob)
        rows.append({
            "time": t,
            "mean_occupancy": float(area_mean[:, t].mean()),
            "hdi_low": float(hdi[0]),
            "hdi_high": float(hdi[1]),
            "n_sites": int(np.sum(data.time_idx == t)),
        })

    out = pd.DataFrame(rows)
    return out.merge(naive_occupancy(data), on="time", how="left")
