"""
Regular square grid over the study domain.

Cells are numbered row-major starting from the northern (top) row, so a
per-cell vector reshaped to (ny, nx) is already in raster band order.
"""

import numpy as np
import geopandas as gpd
from rasterio.transform import from_origin
from shapely.geometry import box


def make_grid(params) -> gpd.GeoDataFrame:
    """Cell polygons with ids, row/col indices and centroid coordinates."""
    x0, y0 = params.origin
    size = params.cell_size

    row, col = np.divmod(np.arange(params.n_cells), params.nx)
    minx = x0 + col * size
    maxy = y0 + (params.ny - row) * size

    geoms = [box(x, y - size, x + size, y) for x, y in zip(minx, maxy)]

    return gpd.GeoDataFrame(
        {
            "cell_id": np.arange(params.n_cells),
            "row": row,
            "col": col,
            "x": minx + size / 2,
            "y": maxy - size / 2,
        },
        geometry=geoms,
        crs=params.crs,
    )


def grid_transform(params):
    """Affine transform of the grid's top-left corner for GeoTIFF output."""
    x0, y0 = params.origin
    return from_origin(x0, y0 + params.ny * params.cell_size, params.cell_size, params.cell_size)


def to_raster(values, params) -> np.ndarray:
    """
    Reshape per-cell values to raster layout.

    (n_cells,) -> (ny, nx); (n_cells, n_bands) -> (n_bands, ny, nx).
    """
    values = np.asarray(values)
    if values.shape[0] != params.n_cells:
        raise ValueError(f"Expected {params.n_cells} cells, got {values.shape[0]}")
    if values.ndim == 1:
        return values.reshape(params.ny, params.nx)
    return values.T.reshape(values.shape[1], params.ny, params.nx)


def cell_coords(grid) -> np.ndarray:
    return grid[["x", "y"]].to_numpy(dtype=float)
