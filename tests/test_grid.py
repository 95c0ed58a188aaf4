import numpy as np

from occusim.grid import cell_coords, grid_transform, make_grid, to_raster


def test_grid_layout(params):
    grid = make_grid(params)
    assert len(grid) == params.nx * params.ny
    assert grid.crs.to_string() == params.crs

    x0, y0 = params.origin
    size = params.cell_size
    first = grid.iloc[0]
    # cell 0 is the top-left cell
    assert first["row"] == 0 and first["col"] == 0
    assert np.isclose(first["x"], x0 + size / 2)
    assert np.isclose(first["y"], y0 + params.ny * size - size / 2)

    last = grid.iloc[-1]
    assert np.isclose(last["x"], x0 + params.nx * size - size / 2)
    assert np.isclose(last["y"], y0 + size / 2)


def test_centroids_match_geometry(params):
    grid = make_grid(params)
    centroids = np.column_stack([grid.geometry.centroid.x, grid.geometry.centroid.y])
    assert np.allclose(centroids, cell_coords(grid))
    assert np.allclose(grid.geometry.area, params.cell_size ** 2)


def test_to_raster_matches_transform(params):
    grid = make_grid(params)
    band = to_raster(grid["cell_id"].to_numpy(), params)
    assert band.shape == (params.ny, params.nx)

    transform = grid_transform(params)
    row, col = 2, 5
    cx, cy = transform * (col + 0.5, row + 0.5)
    cell = grid[grid["cell_id"] == band[row, col]].iloc[0]
    assert np.isclose(cell["x"], cx) and np.isclose(cell["y"], cy)


def test_to_raster_multiband(params):
    values = np.arange(params.n_cells * 3).reshape(params.n_cells, 3)
    bands = to_raster(values, params)
    assert bands.shape == (3, params.ny, params.nx)
    assert np.array_equal(bands[1].ravel(), values[:, 1])
