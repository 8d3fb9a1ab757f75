from __future__ import annotations

"""Chain-of-spheres semi-numerical exchange (COSX, Neese et al.).

For each grid block:

  X[g, mu]   = phi_mu(g) sqrt(|w_g|)
  F[g, tau]  = sum_kappa X[g, kappa] D[tau, kappa]
  G[nu, g]   = sign(w_g) sum_tau A_{nu tau}(g) F[g, tau]
  K[mu, nu] += sum_g X[g, mu] G[nu, g]

with `A_{nu tau}(g) = int phi_nu phi_tau / |r - g|`. With overlap fitting the
left factor `X` is replaced by `X Q^T`, `Q = S_an S_num^-1`, which removes most
of the quadrature error of the numerical overlap. Grids with negative weights
are handled by folding `sign(w)` into `G` and `S_num`.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import scipy.linalg

from compjk.eri.basis_cart import BasisCartSoA
from compjk.grid.molecular_grid import GridBlock, MolecularGrid
from compjk.integrals.int1e_cart import ESPIntegrals

from .workers import WorkerPool


@dataclass(frozen=True)
class COSXStats:
    """Work counts of one COSX build, in (grid point, shell pair) units."""

    candidate_shell_points: int
    computed_shell_points: int


def compute_numeric_overlap(grid: MolecularGrid, basis: BasisCartSoA | None = None) -> np.ndarray:
    """Quadrature overlap `S_num = X_sign^T X_nosign`, symmetrized.

    `X_nosign` uses `sqrt(|w|)` and `X_sign` additionally carries `sign(w)`, so
    the sum reproduces `sum_g w_g phi_mu(g) phi_nu(g)` for any weight sign.
    """

    basis = grid.basis if basis is None else basis
    nbf = int(basis.nao)
    S_num = np.zeros((nbf, nbf), dtype=np.float64)
    for block in grid.blocks:
        if block.nlocal == 0:
            continue
        w = block.w
        X_nosign = grid.basis_values(block) * np.sqrt(np.abs(w))[:, None]
        X_sign = np.where(w >= 0.0, 1.0, -1.0)[:, None] * X_nosign
        bf_map = block.functions_local_to_global
        S_num[np.ix_(bf_map, bf_map)] += X_sign.T @ X_nosign
    return 0.5 * (S_num + S_num.T)


def overlap_fitting_metric(S_an: np.ndarray, S_num: np.ndarray) -> np.ndarray:
    """`Q = S_an S_num^-1` from a dense solve."""

    return np.ascontiguousarray(scipy.linalg.solve(np.asarray(S_num).T, np.asarray(S_an).T).T)


def _block_contribution(
    grid: MolecularGrid,
    block: GridBlock,
    D: np.ndarray,
    Q: np.ndarray,
    esp: ESPIntegrals,
    esp_bound: np.ndarray,
    extent_map: Sequence[np.ndarray],
    kscreen: float,
    dscreen: float,
    overlap_fitted: bool,
) -> tuple[np.ndarray, int, int]:
    """`(KT_block, candidates, computed)` with `KT_block` of shape `(njk, nlocal, nbf)`."""

    basis = grid.basis
    nshell = int(basis.nshell)
    ao_starts = np.asarray(basis.shell_ao_start, dtype=np.int64)
    njk = int(D.shape[0])
    npts = block.npoints
    bf_map = block.functions_local_to_global
    w = block.w

    # density shells TAU coupled to some local KAPPA
    D_block = D[:, :, bf_map]
    D_abs = np.max(np.abs(D_block), axis=0)
    D_block_shell = np.maximum.reduceat(np.maximum.reduceat(D_abs, ao_starts, axis=0), block.shell_func_offsets[:-1], axis=1)
    tau_mask = np.any(D_block_shell > dscreen, axis=1)
    shell_map_tau = np.nonzero(tau_mask)[0]

    X = grid.basis_values(block) * np.sqrt(np.abs(w))[:, None]
    X_bfmax = np.max(np.abs(X), axis=1)
    X_max = float(np.max(X_bfmax)) if npts else 0.0

    F = np.einsum("gk,jtk->jgt", X, D_block)
    F_block_shell = np.maximum.reduceat(np.max(np.abs(F), axis=0), ao_starts, axis=1)
    F_block_gmax = np.max(F_block_shell, axis=0)

    left = X @ Q[np.ix_(bf_map, bf_map)].T if overlap_fitted else X

    points = block.points
    centers = basis.shell_cxyz
    dist_ext = np.sqrt(np.sum((points[:, None, :] - centers[None, :, :]) ** 2, axis=2)) - grid.extents[None, :]
    sign = np.where(w >= 0.0, 1.0, -1.0)

    G = np.zeros((njk, int(basis.nao), npts), dtype=np.float64)
    candidates = 0
    computed = 0
    for TAU in shell_map_tau.tolist():
        s_tau = basis.shell_slice(TAU)
        for NU in extent_map[TAU].tolist():
            symm = NU != TAU and bool(tau_mask[NU])
            if symm and TAU > NU:
                continue
            candidates += npts

            k_bound = X_max * esp_bound[NU, TAU] * F_block_gmax[TAU]
            if symm:
                k_bound = max(k_bound, X_max * esp_bound[TAU, NU] * F_block_gmax[NU])
            if k_bound < kscreen:
                continue

            decay = 1.0 / np.maximum(1.0, np.minimum(dist_ext[:, TAU], dist_ext[:, NU]))
            p_bound = X_bfmax * esp_bound[NU, TAU] * decay * F_block_shell[:, TAU]
            if symm:
                p_bound = np.maximum(p_bound, X_bfmax * esp_bound[TAU, NU] * decay * F_block_shell[:, NU])
            sel = np.nonzero(p_bound >= kscreen)[0]
            if sel.size == 0:
                continue
            computed += int(sel.size)

            A = esp.compute_shell(NU, TAU, points[sel]) * sign[sel][:, None, None]
            s_nu = basis.shell_slice(NU)
            G[:, s_nu, sel] += np.einsum("gnt,jgt->jng", A, F[:, sel, s_tau])
            if symm:
                G[:, s_tau, sel] += np.einsum("gnt,jgn->jtg", A, F[:, sel, s_nu])

    KT_block = np.einsum("gm,jng->jmn", left, G)
    return KT_block, candidates, computed


def build_cosx(
    D_list: Sequence[np.ndarray],
    *,
    pool: WorkerPool,
    grid: MolecularGrid,
    Q: np.ndarray,
    esp_engines: Sequence[ESPIntegrals],
    esp_bound: np.ndarray,
    extent_map: Sequence[np.ndarray],
    kscreen: float,
    dscreen: float,
    overlap_fitted: bool = True,
    lr_symmetric: bool = True,
) -> tuple[list[np.ndarray], COSXStats]:
    """Semi-numerical exchange for every density channel.

    `esp_engines` holds one ESP integral object per worker rank; `extent_map`
    lists, per shell, the shells whose extent spheres overlap it.
    """

    basis = grid.basis
    nbf = int(basis.nao)
    njk = len(D_list)
    D = np.stack([np.asarray(Di, dtype=np.float64) for Di in D_list], axis=0) if njk else np.zeros((0, nbf, nbf))
    if D.shape[1:] != (nbf, nbf):
        raise ValueError(f"density matrices must have shape ({nbf}, {nbf})")
    if len(esp_engines) < pool.nthreads:
        raise ValueError("one ESP integral object per worker is required")
    Q = np.asarray(Q, dtype=np.float64)
    esp_bound = np.asarray(esp_bound, dtype=np.float64)

    KT = [np.zeros((njk, nbf, nbf), dtype=np.float64) for _ in range(pool.nthreads)]

    def body(rank: int, start: int, stop: int) -> tuple[int, int]:
        candidates = 0
        computed = 0
        for bi in range(start, stop):
            block = grid.blocks[bi]
            if block.nlocal == 0 or block.npoints == 0:
                continue
            KT_block, c0, c1 = _block_contribution(
                grid, block, D, Q, esp_engines[rank], esp_bound, extent_map,
                float(kscreen), float(dscreen), bool(overlap_fitted),
            )
            KT[rank][:, block.functions_local_to_global, :] += KT_block
            candidates += c0
            computed += c1
        return candidates, computed

    counts = pool.parallel_for(len(grid.blocks), body, schedule="dynamic")

    K = np.sum(KT, axis=0)
    if lr_symmetric:
        K_list = [0.5 * (Ki + Ki.T) for Ki in K]
    else:
        K_list = [np.ascontiguousarray(Ki) for Ki in K]
    stats = COSXStats(
        candidate_shell_points=int(sum(c[0] for c in counts)),
        computed_shell_points=int(sum(c[1] for c in counts)),
    )
    return K_list, stats


__all__ = ["COSXStats", "build_cosx", "compute_numeric_overlap", "overlap_fitting_metric"]
