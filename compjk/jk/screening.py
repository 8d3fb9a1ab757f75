from __future__ import annotations

"""Bound tables shared by the composite J/K builders.

All tables are indexed by shell (orbital or auxiliary) and hold non-negative
upper bounds. They are cheap to form (O(nShell^2) at most) and are rebuilt per
build when they depend on the density.
"""

from typing import Sequence

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.engine import shell_block_absmax


def density_shell_maxima(D_list: Sequence[np.ndarray], basis: BasisCartSoA) -> np.ndarray:
    """`max_{channels, m in M, n in N} |D_mn|`, shape `(nShell, nShell)`."""

    out = np.zeros((basis.nshell, basis.nshell), dtype=np.float64)
    for D in D_list:
        np.maximum(out, shell_block_absmax(D, basis), out=out)
    return out


def vector_shell_maxima(v_list: Sequence[np.ndarray], basis: BasisCartSoA) -> np.ndarray:
    """Per-shell `max |v_p|` over channels, shape `(nShell,)`."""

    starts = np.asarray(basis.shell_ao_start, dtype=np.int64)
    out = np.zeros((basis.nshell,), dtype=np.float64)
    if starts.size == 0:
        return out
    for v in v_list:
        np.maximum(out, np.maximum.reduceat(np.abs(np.asarray(v, dtype=np.float64)), starts), out=out)
    return out


def metric_shell_diagonal(metric: np.ndarray, aux_basis: BasisCartSoA) -> np.ndarray:
    """Per auxiliary shell maxima of the metric diagonal `(p|p)`."""

    diag = np.diagonal(np.asarray(metric, dtype=np.float64))
    starts = np.asarray(aux_basis.shell_ao_start, dtype=np.int64)
    if starts.size == 0:
        return np.zeros((0,), dtype=np.float64)
    return np.maximum.reduceat(diag, starts)


def shell_ceilings(pair_values: np.ndarray) -> np.ndarray:
    """`ceil[P] = max_Q sqrt((PQ|PQ)^2) = max_Q (PQ|PQ)` over the symmetric pair table."""

    pv = np.asarray(pair_values, dtype=np.float64)
    if pv.size == 0:
        return np.zeros((0,), dtype=np.float64)
    return np.max(pv, axis=1)


def shell_distances(basis: BasisCartSoA) -> np.ndarray:
    """Center-to-center distances between all shells (Bohr)."""

    c = np.asarray(basis.shell_cxyz, dtype=np.float64)
    return np.sqrt(np.sum((c[:, None, :] - c[None, :, :]) ** 2, axis=2))


def compute_esp_bound(basis: BasisCartSoA) -> np.ndarray:
    """Overlap-type bound on the shell-pair ESP integrals.

    esp[s1, s2] = | sum_{i in s1, j in s2} c_i c_j exp(-a_i a_j r^2 / (a_i + a_j)) 2 pi / (a_i + a_j) |

    with `r` the distance between the shell centers. The bound ignores the
    position of the grid point; the COSX point test adds a distance decay.
    """

    nshell = int(basis.nshell)
    r2 = shell_distances(basis) ** 2
    out = np.zeros((nshell, nshell), dtype=np.float64)
    for s1 in range(nshell):
        p1 = int(basis.shell_prim_start[s1])
        e1 = basis.prim_exp[p1 : p1 + int(basis.shell_nprim[s1])]
        c1 = basis.prim_coef[p1 : p1 + int(basis.shell_nprim[s1])]
        for s2 in range(nshell):
            p2 = int(basis.shell_prim_start[s2])
            e2 = basis.prim_exp[p2 : p2 + int(basis.shell_nprim[s2])]
            c2 = basis.prim_coef[p2 : p2 + int(basis.shell_nprim[s2])]
            esum = e1[:, None] + e2[None, :]
            val = np.sum(np.outer(c1, c2) * np.exp(-r2[s1, s2] * np.outer(e1, e2) / esum) * 2.0 * np.pi / esum)
            out[s1, s2] = abs(float(val))
    return out


def shell_extent_map(basis: BasisCartSoA, extents: np.ndarray) -> list[np.ndarray]:
    """For each shell, the shells whose extent spheres overlap its own.

    `NU` is listed for `TAU` when `|r_TAU - r_NU| <= ext_TAU + ext_NU`.
    """

    ext = np.asarray(extents, dtype=np.float64)
    dist = shell_distances(basis)
    ok = dist <= ext[:, None] + ext[None, :]
    return [np.nonzero(ok[s])[0].astype(np.int64) for s in range(int(basis.nshell))]


__all__ = [
    "compute_esp_bound",
    "density_shell_maxima",
    "metric_shell_diagonal",
    "shell_ceilings",
    "shell_distances",
    "shell_extent_map",
    "vector_shell_maxima",
]
