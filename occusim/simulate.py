"""
Simulate occupancy and detection data on a gridded landscape.

State process (all cells s, time points t):
    logit(psi_st) = beta0 + beta1(s) * x_occ_s + omega_st
    z_st ~ Bernoulli(psi_st)

Observation process (surveyed sites, K_st visits):
    logit(p_st) = alpha0 + alpha1 * x_det_st
    y_st ~ Binomial(K_st, z_st * p_st)

omega is a Matérn field, AR(1) in time when n_times > 1. beta1(s) is constant
unless a spatially varying coefficient is requested, in which case
beta1(s) = beta1 + delta_s with delta a second Matérn field.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import geopandas as gpd
from scipy.special import expit, logit

from .config import SimulationParams
from .fields import make_lattice, projector, sample_matern, simulate_ar1_fields, standardize
from .grid import cell_coords, make_grid

__all__ = [
    "expit",
    "logit",
    "SimulatedOccupancy",
    "choose_sites",
    "draw_visits",
    "draw_occupancy",
    "draw_detections",
    "detections_to_visits",
    "simulate_occupancy",
    "occupancy_check",
]


@dataclass
class SimulatedOccupancy:
    params: SimulationParams
    grid: gpd.GeoDataFrame
    x_occ: np.ndarray         # (n_cells,)
    x_det: np.ndarray         # (n_cells, n_times)
    omega: np.ndarray         # (n_cells, n_times)
    beta_slope: np.ndarray    # (n_cells,)
    psi: np.ndarray           # (n_cells, n_times)
    z: np.ndarray             # (n_cells, n_times)
    detections: pd.DataFrame  # one row per site x time

    @property
    def n_times(self) -> int:
        return self.psi.shape[1]


def choose_sites(n_cells: int, n_sites: int, rng) -> np.ndarray:
    """Surveyed cell ids, drawn without replacement and sorted."""
    if not 1 <= n_sites <= n_cells:
        raise ValueError(f"Cannot survey {n_sites} sites out of {n_cells} cells")
    return np.sort(rng.choice(n_cells, size=n_sites, replace=False))


def draw_visits(n: int, min_visits: int, max_visits: int, rng) -> np.ndarray:
    """Number of visits per site, uniform on min_visits..max_visits inclusive."""
    if min_visits < 1 or min_visits > max_visits:
        raise ValueError(f"Invalid visit bounds ({min_visits}, {max_visits})")
    return rng.integers(min_visits, max_visits + 1, size=n)


def draw_occupancy(psi, rng) -> np.ndarray:
    psi = np.asarray(psi, dtype=float)
    return rng.binomial(1, psi).astype(int)


def draw_detections(z, p, n_visits, rng) -> np.ndarray:
    """Detection counts y ~ Binomial(n_visits, z * p)."""
    z = np.asarray(z, dtype=int)
    p = np.asarray(p, dtype=float)
    return rng.binomial(np.asarray(n_visits, dtype=int), z * p).astype(int)


def detections_to_visits(table: pd.DataFrame, rng) -> pd.DataFrame:
    """
    Expand per-site counts into one row per visit.

    Detections are assigned to a uniformly random subset of the visits, so
    each site-time keeps exactly `n_detections` detected visits.
    """
    table = table.reset_index(drop=True)
    rep = table.loc[table.index.repeat(table["n_visits"])].reset_index(drop=True)

    keys = [rep["site_id"], rep["time"]]
    rep["visit"] = rep.groupby(["site_id", "time"]).cumcount() + 1

    order = pd.Series(rng.random(len(rep)))
    rank = order.groupby(keys).rank(method="first") - 1
    rep["detected"] = (rank.to_numpy() < rep["n_detections"].to_numpy()).astype(int)

    return rep[["site_id", "cell_id", "time", "visit", "x_det", "detected"]]


def simulate_occupancy(params: SimulationParams, rng=None) -> SimulatedOccupancy:
    """Run the full generative model for one parameter set."""
    params.validate()
    if rng is None:
        rng = np.random.default_rng(params.seed)

    grid = make_grid(params)
    lattice = make_lattice(params)
    A = projector(lattice, cell_coords(grid))
    T = params.n_times

    # covariate surfaces
    x_occ = standardize(A @ sample_matern(lattice, params.covariate_range, params.covariate_sigma, rng))
    x_det = A @ sample_matern(lattice, params.covariate_range, params.covariate_sigma, rng, size=T)
    x_det = np.column_stack([standardize(x_det[:, t]) for t in range(T)])

    # latent occupancy field
    omega = simulate_ar1_fields(
        lattice, cell_coords(grid), params.field_range, params.field_sigma, params.rho, T, rng
    )

    beta0, beta1 = params.beta
    if params.svc:
        beta_slope = beta1 + A @ sample_matern(lattice, params.svc_range, params.svc_sigma, rng)
    else:
        beta_slope = np.full(params.n_cells, float(beta1))

    psi = expit(beta0 + (beta_slope * x_occ)[:, None] + omega)
    z = draw_occupancy(psi, rng)

    # survey: same sites every time point
    sites = choose_sites(params.n_cells, params.n_sites, rng)
    cell = np.tile(sites, T)
    time = np.repeat(np.arange(T), len(sites))

    n_visits = draw_visits(len(cell), params.min_visits, params.max_visits, rng)
    alpha0, alpha1 = params.alpha
    p = expit(alpha0 + alpha1 * x_det[cell, time])
    y = draw_detections(z[cell, time], p, n_visits, rng)

    detections = pd.DataFrame({
        "site_id": np.tile(np.arange(len(sites)), T),
        "cell_id": cell,
        "x": grid["x"].to_numpy()[cell],
        "y": grid["y"].to_numpy()[cell],
        "time": time,
        "n_visits": n_visits,
        "n_detections": y,
        "x_det": x_det[cell, time],
        "x_occ": x_occ[cell],
        "psi": psi[cell, time],
        "p": p,
        "z": z[cell, time],
    })

    return SimulatedOccupancy(
        params=params,
        grid=grid,
        x_occ=x_occ,
        x_det=x_det,
        omega=omega,
        beta_slope=beta_slope,
        psi=psi,
        z=z,
        detections=detections,
    )


def occupancy_check(sim: SimulatedOccupancy) -> pd.DataFrame:
    """
    Realised vs expected occupancy per time point.

    occupied_prop and mean_psi are over all cells; naive_occupancy is the share
    of surveyed sites with at least one detection, which is biased low by
    imperfect detection.
    """
    d = sim.detections
    by_time = d.groupby("time")
    return pd.DataFrame({
        "time": np.arange(sim.n_times),
        "occupied_prop": sim.z.mean(axis=0),
        "mean_psi": sim.psi.mean(axis=0),
        "site_occupied_prop": by_time["z"].mean().to_numpy(),
        "naive_occupancy": by_time["n_detections"].apply(lambda y: (y > 0).mean()).to_numpy(),
        "n_sites": by_time.size().to_numpy(),
    })
