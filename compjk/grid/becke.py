from __future__ import annotations

"""Becke fuzzy-cell partitioning with Treutler atomic-size adjustment."""

import numpy as np

import numba as nb  # type: ignore


def size_adjustment(radii: np.ndarray) -> np.ndarray:
    """Pairwise Becke size-adjustment parameters `a_ij` (|a_ij| <= 1/2).

    Treutler's variant feeds `sqrt(R_i / R_j)` into Becke's formula.
    """

    radii = np.asarray(radii, dtype=np.float64)
    rad = np.sqrt(radii) + 1e-200
    chi = rad[:, None] / rad[None, :]
    u = (chi - 1.0) / (chi + 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        a = u / (u * u - 1.0)
    a = np.where(np.isfinite(a), a, 0.0)
    np.fill_diagonal(a, 0.0)
    return np.clip(a, -0.5, 0.5)


@nb.njit(cache=True, nogil=True)
def _becke_owner_weights(points: np.ndarray, owner: np.ndarray, coords: np.ndarray, a: np.ndarray) -> np.ndarray:
    npts = points.shape[0]
    natm = coords.shape[0]
    out = np.empty((npts,), dtype=np.float64)
    dist = np.empty((natm,), dtype=np.float64)
    cell = np.empty((natm,), dtype=np.float64)
    for g in range(npts):
        for i in range(natm):
            dx = points[g, 0] - coords[i, 0]
            dy = points[g, 1] - coords[i, 1]
            dz = points[g, 2] - coords[i, 2]
            dist[i] = np.sqrt(dx * dx + dy * dy + dz * dz)
        for i in range(natm):
            cell[i] = 1.0
        for i in range(natm):
            for j in range(i):
                dxij = coords[i, 0] - coords[j, 0]
                dyij = coords[i, 1] - coords[j, 1]
                dzij = coords[i, 2] - coords[j, 2]
                rij = np.sqrt(dxij * dxij + dyij * dyij + dzij * dzij)
                if rij == 0.0:
                    continue
                mu = (dist[i] - dist[j]) / rij
                nu = mu + a[i, j] * (1.0 - mu * mu)
                for _ in range(3):
                    nu = 0.5 * nu * (3.0 - nu * nu)
                s = 0.5 * (1.0 - nu)
                cell[i] *= s
                cell[j] *= 1.0 - s
        tot = 0.0
        for i in range(natm):
            tot += cell[i]
        out[g] = cell[owner[g]] / tot if tot > 0.0 else 0.0
    return out


def becke_weights(points: np.ndarray, owner: np.ndarray, coords: np.ndarray, radii: np.ndarray) -> np.ndarray:
    """Partition weight of each point's owning atom, shape `(npts,)`."""

    points = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
    coords = np.ascontiguousarray(coords, dtype=np.float64).reshape(-1, 3)
    owner = np.ascontiguousarray(owner, dtype=np.int64)
    if coords.shape[0] == 1:
        return np.ones((points.shape[0],), dtype=np.float64)
    return _becke_owner_weights(points, owner, coords, size_adjustment(radii))


__all__ = ["becke_weights", "size_adjustment"]
