#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Batch fitting of Bayesian occupancy models (PyMC) to the simulated scenarios.

One model per scenario, matching its generating structure:
  - spatial:        HSGP Matérn field on logit(ψ)
  - spatiotemporal: HSGP field with AR(1) basis weights across time points
  - svc:            HSGP field + HSGP spatially varying slope on x_occ

Detection model:
  y_st ~ Binomial(K_st, z_st * p_st),  logit(p_st) = α0 + α1 * x_det_st
  (z marginalised out of the likelihood)

Inputs (from simulate_occupancy_data.py, per scenario):
  - detections.csv, x_occ.tif, true_values.tsv, truth.csv

Outputs (per scenario):
  - parameters.tsv         posterior mean, sd, 95% HDI, diagnostics, true value, coverage
  - occupancy_trend.tsv    mean ψ across cells per time point + naive occupancy
  - occupancy_surface.gpkg posterior ψ per cell x time
  - figures/*.png
And failed_scenarios.tsv when a fit fails.
"""

import time

import numpy as np
import pandas as pd

from occusim.config import MODEL_DIR, SCENARIOS, SIMULATION_DIR, FitSettings
from occusim.io import load_simulation, load_true_values
from occusim.models import build_model, fit_model
from occusim.plotting import plot_surface_panels, plot_truth_vs_estimate
from occusim.summary import (
    summarise_occupancy_surface,
    summarise_occupancy_trend,
    summarise_parameters,
)


# ---------------------------
# Paths
# ---------------------------
in_dir = SIMULATION_DIR
out_dir = MODEL_DIR


# ---------------------------
# Parameters
# ---------------------------
scenarios = list(SCENARIOS)

# PyMC sampling settings (increase for final)
settings = FitSettings(
    draws=800,
    tune=800,
    chains=2,
    cores=2,
    target_accept=0.9,
    seed=42,
    m=(12, 12),
    c=1.5,
)


# ---------------------------
# Fit one scenario
# ---------------------------
def fit_scenario(name):
    """Fit the model matching scenario `name`; returns the parameter table."""
    scen_in = in_dir / name
    scen_out = out_dir / name
    fig_dir = scen_out / "figures"
    scen_out.mkdir(parents=True, exist_ok=True)

    data, grid = load_simulation(scen_in)
    truth = load_true_values(scen_in)

    model = build_model(data, kind=name, settings=settings)
    idata = fit_model(model, settings)

    # ---- scalar parameters ----
    params = summarise_parameters(idata, truth, hdi_prob=settings.hdi_prob)
    params.to_csv(scen_out / "parameters.tsv", sep="\t", index=False)
    print("Saved:", scen_out / "parameters.tsv")
    plot_truth_vs_estimate(params, fig_dir / "parameters.png")

    # ---- occupancy trend ----
    trend = summarise_occupancy_trend(idata, data, hdi_prob=settings.hdi_prob)
    trend.to_csv(scen_out / "occupancy_trend.tsv", sep="\t", index=False)
    print("Saved:", scen_out / "occupancy_trend.tsv")

    # ---- occupancy surface vs truth ----
    surface = summarise_occupancy_surface(idata, grid, hdi_prob=settings.hdi_prob)
    truth_path = scen_in / "truth.csv"
    if truth_path.exists():
        true_psi = pd.read_csv(truth_path)[["cell_id", "time", "psi"]].rename(columns={"psi": "psi_true"})
        surface = surface.merge(true_psi, on=["cell_id", "time"], how="left")
        r = np.corrcoef(surface["psi_mean"], surface["psi_true"])[0, 1]
        print(f"  correlation of posterior mean ψ with true ψ: {r:.3f}")

    surface.to_file(scen_out / "occupancy_surface.gpkg", layer="occupancy_surface", driver="GPKG")
    print("Saved:", scen_out / "occupancy_surface.gpkg")

    first = surface[surface["time"] == 0]
    columns = ["psi_true", "psi_mean", "psi_low"] if "psi_true" in first else ["psi_mean", "psi_low"]
    titles = {
        "psi_true": "True ψ (t=0)",
        "psi_mean": "Posterior mean ψ (t=0)",
        "psi_low": "ψ 95% lower bound (t=0)",
    }
    plot_surface_panels(first, columns, [titles[c] for c in columns], fig_dir / "occupancy_surface.png")

    return params


# ---------------------------
# Batch loop
# ---------------------------
def main():
    out_dir.mkdir(parents=True, exist_ok=True)

    failed = []
    for i, name in enumerate(scenarios, 1):
        t0 = time.time()
        print(f"\n[{i}/{len(scenarios)}] {name}")

        try:
            params = fit_scenario(name)
            print(f"  took {(time.time() - t0) / 60:.1f} minutes")
            for row in params.itertuples(index=False):
                print(f"  {row.parameter}: {row.mean:.3f}  95%HDI=({row.hdi_low:.3f},{row.hdi_high:.3f})"
                      f"  true={row.true_value}")

        except Exception as e:
            print("  FAILED:", e)
            failed.append((name, str(e)))
            continue

    if failed:
        fail_path = out_dir / "failed_scenarios.tsv"
        pd.DataFrame(failed, columns=["scenario", "error"]).to_csv(fail_path, sep="\t", index=False)
        print("Saved failures:", fail_path)

    print("\nDone.")


# sampler worker processes re-import this module
if __name__ == "__main__":
    main()
