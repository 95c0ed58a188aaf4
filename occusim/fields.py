"""
Matérn random fields through the SPDE representation on a regular lattice.

The field x solves (kappa^2 - Laplacian) x = W / tau (alpha = 2, nu = 1 in 2-D).
On a lattice with spacing h, lumped mass C = h^2 I and 5-point stiffness G:

    K = kappa^2 C + G
    Q = tau^2 K C^-1 K

with kappa = sqrt(8) / range and tau^2 = 1 / (4 pi kappa^2 sigma^2), so that
`range` is the distance at which correlation drops to about 0.13 and `sigma`
is the marginal standard deviation. Exact draws from N(0, Q^-1) are
x = (h / tau) K^-1 z with z ~ N(0, I), which needs only a sparse LU of K.

Lindgren, Rue & Lindström (2011), JRSS-B 73(4).
"""

from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import splu


@dataclass
class Lattice:
    xmin: float
    ymin: float
    spacing: float
    nx: int
    ny: int

    @property
    def n_nodes(self) -> int:
        return self.nx * self.ny

    @property
    def coords(self) -> np.ndarray:
        """Node coordinates, x varying fastest."""
        j, i = np.divmod(np.arange(self.n_nodes), self.nx)
        return np.column_stack([self.xmin + i * self.spacing, self.ymin + j * self.spacing])

    @property
    def xmax(self) -> float:
        return self.xmin + (self.nx - 1) * self.spacing

    @property
    def ymax(self) -> float:
        return self.ymin + (self.ny - 1) * self.spacing


def make_lattice(params) -> Lattice:
    """Lattice covering the grid extent plus `mesh_buffer` steps on every side."""
    h = float(params.mesh_spacing)
    pad = params.mesh_buffer * h
    x0, y0 = params.origin
    width = params.nx * params.cell_size + 2 * pad
    height = params.ny * params.cell_size + 2 * pad
    return Lattice(
        xmin=x0 - pad,
        ymin=y0 - pad,
        spacing=h,
        nx=int(np.ceil(width / h)) + 1,
        ny=int(np.ceil(height / h)) + 1,
    )


def _path_laplacian(n: int) -> sp.csr_matrix:
    """1-D second-difference matrix with Neumann ends."""
    if n == 1:
        return sp.csr_matrix((1, 1))
    main = np.full(n, 2.0)
    main[[0, -1]] = 1.0
    off = -np.ones(n - 1)
    return sp.diags([off, main, off], [-1, 0, 1], format="csr")


def spde_parameters(range_: float, sigma: float):
    """(kappa, tau) for a Matérn nu=1 field with given range and marginal sd."""
    if range_ <= 0 or sigma <= 0:
        raise ValueError(f"range and sigma must be > 0, got range={range_}, sigma={sigma}")
    kappa = np.sqrt(8.0) / range_
    tau = 1.0 / np.sqrt(4.0 * np.pi * kappa ** 2 * sigma ** 2)
    return kappa, tau


def _operator(lattice: Lattice, kappa: float) -> sp.csc_matrix:
    G = (sp.kron(sp.identity(lattice.ny), _path_laplacian(lattice.nx))
         + sp.kron(_path_laplacian(lattice.ny), sp.identity(lattice.nx)))
    C = lattice.spacing ** 2 * sp.identity(lattice.n_nodes)
    return (kappa ** 2 * C + G).tocsc()


def matern_precision(lattice: Lattice, range_: float, sigma: float) -> sp.csc_matrix:
    """Sparse precision matrix Q of the SPDE field on the lattice nodes."""
    kappa, tau = spde_parameters(range_, sigma)
    K = _operator(lattice, kappa)
    return (tau ** 2 / lattice.spacing ** 2 * (K @ K)).tocsc()


def sample_matern(lattice: Lattice, range_: float, sigma: float, rng, size=None) -> np.ndarray:
    """
    Exact draws of the SPDE field at lattice nodes.

    Returns shape (n_nodes,) when `size` is None, else (n_nodes, size).
    """
    kappa, tau = spde_parameters(range_, sigma)
    lu = splu(_operator(lattice, kappa))

    n = 1 if size is None else int(size)
    z = rng.standard_normal((lattice.n_nodes, n))
    x = (lattice.spacing / tau) * lu.solve(z)
    return x[:, 0] if size is None else x


def projector(lattice: Lattice, points) -> sp.csr_matrix:
    """
    Bilinear interpolation matrix A (n_points x n_nodes), so that A @ x gives
    the field at `points`. Rows sum to one; a point on a node picks that node.
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    h = lattice.spacing
    fx = (points[:, 0] - lattice.xmin) / h
    fy = (points[:, 1] - lattice.ymin) / h

    eps = 1e-9
    outside = (fx < -eps) | (fy < -eps) | (fx > lattice.nx - 1 + eps) | (fy > lattice.ny - 1 + eps)
    if outside.any():
        raise ValueError(f"{int(outside.sum())} point(s) fall outside the lattice")

    i = np.clip(np.floor(fx).astype(int), 0, max(lattice.nx - 2, 0))
    j = np.clip(np.floor(fy).astype(int), 0, max(lattice.ny - 2, 0))
    tx = np.clip(fx - i, 0.0, 1.0)
    ty = np.clip(fy - j, 0.0, 1.0)

    # single-row or single-column lattices fold the far corners back onto the last node
    i1 = np.minimum(i + 1, lattice.nx - 1)
    j1 = np.minimum(j + 1, lattice.ny - 1)

    rows = np.repeat(np.arange(len(points)), 4)
    cols = np.column_stack([
        j * lattice.nx + i,
        j * lattice.nx + i1,
        j1 * lattice.nx + i,
        j1 * lattice.nx + i1,
    ]).ravel()
    vals = np.column_stack([
        (1 - tx) * (1 - ty),
        tx * (1 - ty),
        (1 - tx) * ty,
        tx * ty,
    ]).ravel()

    return sp.coo_matrix((vals, (rows, cols)), shape=(len(points), lattice.n_nodes)).tocsr()


def simulate_field(lattice: Lattice, points, range_: float, sigma: float, rng, size=None) -> np.ndarray:
    """Draw a Matérn field and project it onto `points`."""
    A = projector(lattice, points)
    return A @ sample_matern(lattice, range_, sigma, rng, size=size)


def simulate_ar1_fields(lattice: Lattice, points, range_: float, sigma: float,
                        rho: float, n_times: int, rng) -> np.ndarray:
    """
    Spatio-temporal field with AR(1) dependence in time, shape (n_points, n_times).

    omega_1 = xi_1, omega_t = rho * omega_{t-1} + sqrt(1 - rho^2) * xi_t,
    with xi_t independent Matérn fields, so every slice keeps the Matérn marginal.
    """
    if not -1.0 < rho < 1.0:
        raise ValueError(f"rho must lie in (-1, 1), got {rho}")

    xi = sample_matern(lattice, range_, sigma, rng, size=n_times)
    omega = np.empty_like(xi)
    omega[:, 0] = xi[:, 0]
    scale = np.sqrt(1.0 - rho ** 2)
    for t in range(1, n_times):
        omega[:, t] = rho * omega[:, t - 1] + scale * xi[:, t]

    return projector(lattice, points) @ omega


def standardize(values) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    sd = values.std()
    if sd == 0:
        return np.zeros_like(values)
    return (values - values.mean()) / sd
