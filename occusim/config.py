"""
Simulation and fitting parameters for the occupancy workflow.

Scenario presets:
- spatial:        single season, Matérn latent field on occupancy
- spatiotemporal: latent field evolves as AR(1) across time points
- svc:            spatially varying slope on the occupancy covariate

Units are metres in EPSG:3035 (same grid system as the EEA reference cells).
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Tuple


# ---------------------------
# Paths
# ---------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
OUTPUT_DIR = PROJECT_ROOT / "outputs"
SIMULATION_DIR = OUTPUT_DIR / "simulations"
MODEL_DIR = OUTPUT_DIR / "models"


# ---------------------------
# Grid defaults
# ---------------------------
CRS = "EPSG:3035"
CELL_SIZE = 1000.0                    # 1 km cells
ORIGIN = (3_844_000.0, 3_146_000.0)   # lower-left corner (E, N)


@dataclass
class SimulationParams:
    # grid
    nx: int = 30
    ny: int = 30
    cell_size: float = CELL_SIZE
    origin: Tuple[float, float] = ORIGIN
    crs: str = CRS

    # SPDE lattice: node spacing in map units, buffer in lattice steps
    mesh_spacing: float = CELL_SIZE
    mesh_buffer: int = 8

    # occupancy: logit(psi) = beta0 + beta1 * x_occ + omega
    beta: Tuple[float, float] = (0.0, 1.0)
    # detection: logit(p) = alpha0 + alpha1 * x_det
    alpha: Tuple[float, float] = (-0.5, 0.8)

    # latent occupancy field
    field_range: float = 8000.0
    field_sigma: float = 1.0

    # covariate surfaces
    covariate_range: float = 12000.0
    covariate_sigma: float = 1.0

    # temporal structure
    n_times: int = 1
    rho: float = 0.0

    # spatially varying slope on x_occ
    svc: bool = False
    svc_range: float = 15000.0
    svc_sigma: float = 0.5

    # survey design
    n_sites: int = 300
    min_visits: int = 1
    max_visits: int = 5

    seed: int = 42

    @property
    def n_cells(self) -> int:
        return self.nx * self.ny

    def validate(self) -> "SimulationParams":
        """Raise ValueError on inconsistent settings; return self."""
        if self.nx < 1 or self.ny < 1:
            raise ValueError(f"Grid must have at least one cell, got nx={self.nx}, ny={self.ny}")
        for name in ("cell_size", "mesh_spacing", "field_range", "field_sigma",
                     "covariate_range", "covariate_sigma"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")
        if self.svc and (self.svc_range <= 0 or self.svc_sigma <= 0):
            raise ValueError("svc_range and svc_sigma must be > 0 when svc is enabled")
        if self.mesh_buffer < 0:
            raise ValueError(f"mesh_buffer must be >= 0, got {self.mesh_buffer}")
        if self.n_times < 1:
            raise ValueError(f"n_times must be >= 1, got {self.n_times}")
        if not -1.0 < self.rho < 1.0:
            raise ValueError(f"rho must lie in (-1, 1), got {self.rho}")
        if self.min_visits < 1:
            raise ValueError(f"min_visits must be >= 1, got {self.min_visits}")
        if self.min_visits > self.max_visits:
            raise ValueError(
                f"min_visits ({self.min_visits}) must be <= max_visits ({self.max_visits})"
            )
        if not 1 <= self.n_sites <= self.n_cells:
            raise ValueError(
                f"n_sites must be between 1 and the number of cells ({self.n_cells}), "
                f"got {self.n_sites}"
            )
        if len(self.beta) != 2 or len(self.alpha) != 2:
            raise ValueError("beta and alpha must be (intercept, slope) pairs")
        return self


SCENARIOS = {
    "spatial": {},
    "spatiotemporal": {"n_times": 5, "rho": 0.7},
    "svc": {"svc": True},
}


def scenario_params(name: str, **overrides) -> SimulationParams:
    """Validated parameters for a named scenario, with optional overrides."""
    if name not in SCENARIOS:
        raise KeyError(f"Unknown scenario {name!r}. Must be one of: {list(SCENARIOS)}")
    return replace(SimulationParams(), **{**SCENARIOS[name], **overrides}).validate()


# ---------------------------
# Model fitting
# ---------------------------
@dataclass
class FitSettings:
    draws: int = 800
    tune: int = 800
    chains: int = 2
    cores: int = 2
    target_accept: float = 0.9
    seed: int = 42

    # HSGP approximation: basis functions per axis and boundary factor
    m: Tuple[int, int] = (12, 12)
    c: float = 1.5

    # posterior interval
    hdi_prob: float = 0.95

    extra_sample_kwargs: dict = field(default_factory=dict)
