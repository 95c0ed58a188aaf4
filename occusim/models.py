"""
Bayesian hierarchical occupancy models in PyMC.

Occupancy:
  logit(psi_st) = beta0 + (beta1 + delta_s) * x_occ_s + w_st
Detection:
  y_st ~ Binomial(K_st, z_st * p_st),  logit(p_st) = alpha0 + alpha1 * x_det_st

w is a Matérn 3/2 Gaussian process over cell centroids, approximated with a
Hilbert-space basis (HSGP). For the spatio-temporal model the basis weights
follow a stationary AR(1) in time. delta (the spatially varying slope) is a
second HSGP field and only enters the "svc" model.

z is marginalised out of the likelihood:
  y > 0:  log(psi) + log Binomial(y | K, p)
  y == 0: log((1 - psi) + psi * (1 - p)^K)
"""

import numpy as np
import pandas as pd
import pymc as pm
import pytensor.tensor as pt

from .config import FitSettings

MODEL_KINDS = ("spatial", "spatiotemporal", "svc")


def scale_coords(coords):
    """Centre on the bounding-box midpoint and divide by the largest half-width."""
    coords = np.asarray(coords, dtype=float)
    centre = (coords.max(axis=0) + coords.min(axis=0)) / 2
    half = (coords.max(axis=0) - coords.min(axis=0)).max() / 2
    if half == 0:
        half = 1.0
    return (coords - centre) / half, centre, half


def _hsgp_basis(name, X, m, c):
    """
    Linearised HSGP: returns (phi @ diag(sqrt_psd)) so that
    field = basis @ N(0, 1) weights.
    """
    ell = pm.InverseGamma(f"ell_{name}", mu=0.5, sigma=0.5)
    cov = pm.gp.cov.Matern32(2, ls=ell)

    L = c * np.abs(X).max(axis=0)
    L = np.where(L > 0, L, c)
    gp = pm.gp.HSGP(m=list(m), L=list(L), cov_func=cov)
    phi, sqrt_psd = gp.prior_linearized(X)
    return phi * sqrt_psd


def build_model(data, kind="spatial", settings=None) -> pm.Model:
    """
    Build the occupancy model for an `OccupancyData` bundle.

    kind: "spatial" (one field, all time points share it), "spatiotemporal"
    (AR(1) field in time) or "svc" (spatial field + spatially varying slope).
    """
    if kind not in MODEL_KINDS:
        raise ValueError(f"Unknown model kind {kind!r}. Must be one of: {list(MODEL_KINDS)}")
    if settings is None:
        settings = FitSettings()

    X, _, _ = scale_coords(data.coords)
    n_basis = int(np.prod(settings.m))
    T = data.n_times

    y = data.n_detections
    K = data.n_visits
    cell = data.cell_idx
    t_idx = data.time_idx

    coords = {"cell": np.arange(data.n_cells), "time": np.arange(T), "obs": np.arange(data.n_obs)}

    with pm.Model(coords=coords) as model:

        # ---- occupancy: fixed effects ----
        beta0 = pm.Normal("beta0", 0, 1.5)
        beta1 = pm.Normal("beta1", 0, 1.0)

        # ---- latent spatial field ----
        sigma_field = pm.HalfNormal("sigma_field", 1.0)
        basis = _hsgp_basis("field", X, settings.m, settings.c)

        if kind == "spatiotemporal":
            rho = pm.Uniform("rho", -1, 1)
            eps = pm.Normal("eps_field", 0, 1, shape=(n_basis, T))
            weights = [eps[:, 0]]
            for t in range(1, T):
                weights.append(rho * weights[-1] + pt.sqrt(1 - rho ** 2) * eps[:, t])
            w = pm.Deterministic(
                "w", sigma_field * pt.dot(basis, pt.stack(weights, axis=1)), dims=("cell", "time")
            )
        else:
            eps = pm.Normal("eps_field", 0, 1, shape=n_basis)
            w_s = sigma_field * pt.dot(basis, eps)
            w = pm.Deterministic("w", pt.repeat(w_s[:, None], T, axis=1), dims=("cell", "time"))

        # ---- slope on x_occ ----
        if kind == "svc":
            sigma_svc = pm.HalfNormal("sigma_svc", 0.5)
            basis_svc = _hsgp_basis("svc", X, settings.m, settings.c)
            eps_svc = pm.Normal("eps_svc", 0, 1, shape=n_basis)
            slope = pm.Deterministic("slope", beta1 + sigma_svc * pt.dot(basis_svc, eps_svc), dims="cell")
        else:
            slope = beta1

        eta = beta0 + (slope * data.x_occ)[:, None] + w
        psi = pm.Deterministic("psi", pm.math.sigmoid(eta), dims=("cell", "time"))
        psi_obs = psi[cell, t_idx]

        # ---- detection ----
        alpha0 = pm.Normal("alpha0", 0, 1.5)
        alpha1 = pm.Normal("alpha1", 0, 1.0)
        p = pm.Deterministic("p", pm.math.sigmoid(alpha0 + alpha1 * data.x_det), dims="obs")

        # ---- marginalised likelihood ----
        log_binom = pm.logp(pm.Binomial.dist(n=K, p=p), y)

        eps_safe = 1e-12
        logp_pos = pt.log(psi_obs + eps_safe) + log_binom
        logp_zero = pt.log((1 - psi_obs) + psi_obs * pt.pow(1 - p, K) + eps_safe)

        logp = pt.switch(pt.gt(y, 0), logp_pos, logp_zero)
        pm.Potential("lik", logp.sum())

    return model


def fit_model(model, settings=None):
    """Sample the posterior with NUTS; returns an arviz InferenceData."""
    if settings is None:
        settings = FitSettings()

    with model:
        idata = pm.sample(
            draws=settings.draws,
            tune=settings.tune,
            chains=settings.chains,
            cores=settings.cores,
            target_accept=settings.target_accept,
            random_seed=settings.seed,
            progressbar=False,
            **settings.extra_sample_kwargs,
        )
    return idata


def naive_occupancy(data) -> pd.DataFrame:
    """Share of surveyed sites with at least one detection, per time point."""
    d = pd.DataFrame({"time": data.time_idx, "detected": data.n_detections > 0})
    return d.groupby("time")["detected"].mean().rename("naive_occupancy").reset_index()
