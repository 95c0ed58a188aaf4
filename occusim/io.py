"""
Read and write simulated occupancy data.

Written per simulation directory:
- detections.csv   observed counts per site x time (what the model sees)
- visits.csv       the same data expanded to one row per visit
- truth.csv        latent quantities per cell x time (psi, z, omega, ...)
- true_values.tsv  generating parameter values, named as in the fitted models
- x_occ.tif, x_det.tif, omega.tif, psi.tif   GeoTIFF surfaces (one band per time)
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from rasterio.transform import xy
from shapely.geometry import box

from .grid import grid_transform, to_raster
from .simulate import detections_to_visits

DETECTION_COLUMNS = ["site_id", "cell_id", "x", "y", "time", "n_visits", "n_detections", "x_det"]


@dataclass
class OccupancyData:
    """Model-ready arrays: cell-level covariates and site x time observations."""
    coords: np.ndarray        # (n_cells, 2) cell centroids
    x_occ: np.ndarray         # (n_cells,)
    cell_idx: np.ndarray      # (n_obs,)
    time_idx: np.ndarray      # (n_obs,)
    n_visits: np.ndarray      # (n_obs,)
    n_detections: np.ndarray  # (n_obs,)
    x_det: np.ndarray         # (n_obs,)
    n_times: int = 1

    @property
    def n_cells(self) -> int:
        return len(self.x_occ)

    @property
    def n_obs(self) -> int:
        return len(self.n_visits)

    @classmethod
    def from_table(cls, detections: pd.DataFrame, coords, x_occ) -> "OccupancyData":
        missing = set(DETECTION_COLUMNS) - set(detections.columns)
        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")
        time_idx = detections["time"].to_numpy(dtype=int)
        return cls(
            coords=np.asarray(coords, dtype=float),
            x_occ=np.asarray(x_occ, dtype=float),
            cell_idx=detections["cell_id"].to_numpy(dtype=int),
            time_idx=time_idx,
            n_visits=detections["n_visits"].to_numpy(dtype=int),
            n_detections=detections["n_detections"].to_numpy(dtype=int),
            x_det=detections["x_det"].to_numpy(dtype=float),
            n_times=int(time_idx.max()) + 1,
        )

    @classmethod
    def from_simulation(cls, sim) -> "OccupancyData":
        return cls.from_table(sim.detections, sim.grid[["x", "y"]].to_numpy(), sim.x_occ)


# ---------------------------
# Rasters
# ---------------------------
def write_raster(path, array, params):
    """Write a (ny, nx) or (bands, ny, nx) array as a float32 GeoTIFF."""
    array = np.asarray(array, dtype="float32")
    if array.ndim == 2:
        array = array[None, :, :]

    meta = {
        "driver": "GTiff",
        "height": params.ny,
        "width": params.nx,
        "count": array.shape[0],
        "dtype": "float32",
        "crs": params.crs,
        "transform": grid_transform(params),
    }
    with rasterio.open(path, "w", **meta) as dst:
        dst.write(array)
    print("Saved:", path)


def read_raster(path):
    """Return (array of shape (bands, rows, cols), profile)."""
    with rasterio.open(path) as src:
        return src.read(), src.profile


def raster_to_grid(path) -> gpd.GeoDataFrame:
    """
    Rebuild the cell table from a GeoTIFF: cell_id, row, col, centroid x/y,
    one `band_<k>` column per band, and cell polygons.
    """
    array, profile = read_raster(path)
    n_bands, n_rows, n_cols = array.shape
    transform = profile["transform"]

    row, col = np.divmod(np.arange(n_rows * n_cols), n_cols)
    xs, ys = xy(transform, row, col, offset="center")
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    half_w, half_h = abs(transform.a) / 2, abs(transform.e) / 2

    data = {"cell_id": np.arange(len(row)), "row": row, "col": col, "x": xs, "y": ys}
    for b in range(n_bands):
        data[f"band_{b + 1}"] = array[b].ravel()

    geoms = [box(x - half_w, y - half_h, x + half_w, y + half_h) for x, y in zip(xs, ys)]
    return gpd.GeoDataFrame(data, geometry=geoms, crs=profile["crs"])


# ---------------------------
# Simulation outputs
# ---------------------------
def write_simulation(sim, out_dir, rng=None) -> dict:
    """Persist tables and surfaces of one simulation; returns the written paths."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    params = sim.params
    if rng is None:
        rng = np.random.default_rng(params.seed + 1)

    paths = {
        "detections": out_dir / "detections.csv",
        "visits": out_dir / "visits.csv",
        "truth": out_dir / "truth.csv",
        "true_values": out_dir / "true_values.tsv",
        "x_occ": out_dir / "x_occ.tif",
        "x_det": out_dir / "x_det.tif",
        "omega": out_dir / "omega.tif",
        "psi": out_dir / "psi.tif",
    }

    sim.detections[DETECTION_COLUMNS].to_csv(paths["detections"], index=False)
    print("Saved:", paths["detections"])

    detections_to_visits(sim.detections, rng).to_csv(paths["visits"], index=False)
    print("Saved:", paths["visits"])

    n_cells, T = sim.psi.shape
    truth = pd.DataFrame({
        "cell_id": np.tile(np.arange(n_cells), T),
        "time": np.repeat(np.arange(T), n_cells),
        "x_occ": np.tile(sim.x_occ, T),
        "x_det": sim.x_det.T.ravel(),
        "omega": sim.omega.T.ravel(),
        "beta_slope": np.tile(sim.beta_slope, T),
        "psi": sim.psi.T.ravel(),
        "z": sim.z.T.ravel(),
    })
    truth.to_csv(paths["truth"], index=False)
    print("Saved:", paths["truth"])

    true_values(params).to_csv(paths["true_values"], sep="\t", index=False)
    print("Saved:", paths["true_values"])

    write_raster(paths["x_occ"], to_raster(sim.x_occ, params), params)
    write_raster(paths["x_det"], to_raster(sim.x_det, params), params)
    write_raster(paths["omega"], to_raster(sim.omega, params), params)
    write_raster(paths["psi"], to_raster(sim.psi, params), params)

    return paths


def true_values(params) -> pd.DataFrame:
    """Generating values under the parameter names used by the fitted models."""
    rows = [
        ("beta0", params.beta[0]),
        ("beta1", params.beta[1]),
        ("alpha0", params.alpha[0]),
        ("alpha1", params.alpha[1]),
        ("sigma_field", params.field_sigma),
    ]
    if params.n_times > 1:
        rows.append(("rho", params.rho))
    if params.svc:
        rows.append(("sigma_svc", params.svc_sigma))
    return pd.DataFrame(rows, columns=["parameter", "value"])


def load_true_values(out_dir) -> dict:
    path = Path(out_dir) / "true_values.tsv"
    if not path.exists():
        return {}
    tv = pd.read_csv(path, sep="\t")
    return dict(zip(tv["parameter"], tv["value"]))


def load_simulation(out_dir):
    """
    Load detections.csv and the x_occ surface of a simulation directory.

    Returns (OccupancyData, grid GeoDataFrame).
    """
    out_dir = Path(out_dir)
    det_path = out_dir / "detections.csv"
    cov_path = out_dir / "x_occ.tif"
    for path in (det_path, cov_path):
        if not path.exists():
            raise FileNotFoundError(f"Missing simulation output: {path}")

    print("Loading inputs...")
    detections = pd.read_csv(det_path)
    grid = raster_to_grid(cov_path).rename(columns={"band_1": "x_occ"})

    print("Detection rows:", len(detections))
    print("Grid cells:", len(grid))

    data = OccupancyData.from_table(detections, grid[["x", "y"]].to_numpy(), grid["x_occ"].to_numpy())
    if data.cell_idx.max() >= data.n_cells:
        raise ValueError("detections.csv refers to cells outside the x_occ raster")
    return data, grid
