from __future__ import annotations

"""Numba kernels for Cartesian one-electron integrals.

- overlap S (whole matrix, parallel over shell pairs)
- electrostatic potential integrals of one shell pair at a batch of points,
  A_{ab}(C) = int phi_a(r) phi_b(r) / |r - C| dr, used by semi-numerical exchange
"""

import math

import numpy as np

import numba as nb  # type: ignore

from compjk.eri._md_numba import hermite_e_table, overlap_1d_table, r_tensor


@nb.njit(cache=True, nogil=True)
def _ncart(l: int) -> int:
    return (l + 1) * (l + 2) // 2


@nb.njit(cache=True, nogil=True)
def _fill_tile_S(
    tile: np.ndarray,
    la: int,
    lb: int,
    cA: np.ndarray,
    cB: np.ndarray,
    expA: np.ndarray,
    coefA: np.ndarray,
    expB: np.ndarray,
    coefB: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> None:
    nA = _ncart(la)
    nB = _ncart(lb)
    offA = int(comp_start[la])
    offB = int(comp_start[lb])

    for ia in range(expA.shape[0]):
        a = float(expA[ia])
        for ib in range(expB.shape[0]):
            b = float(expB[ib])
            Sx = overlap_1d_table(la, lb, a, b, cA[0], cB[0])
            Sy = overlap_1d_table(la, lb, a, b, cA[1], cB[1])
            Sz = overlap_1d_table(la, lb, a, b, cA[2], cB[2])
            c = coefA[ia] * coefB[ib]
            for i in range(nA):
                lax = int(comp_lx[offA + i])
                lay = int(comp_ly[offA + i])
                laz = int(comp_lz[offA + i])
                for j in range(nB):
                    lbx = int(comp_lx[offB + j])
                    lby = int(comp_ly[offB + j])
                    lbz = int(comp_lz[offB + j])
                    tile[i, j] += c * Sx[lax, lbx] * Sy[lay, lby] * Sz[laz, lbz]


@nb.njit(cache=True, parallel=True)
def build_S_cart_numba(
    shell_cxyz: np.ndarray,
    shell_prim_start: np.ndarray,
    shell_nprim: np.ndarray,
    shell_l: np.ndarray,
    shell_ao_start: np.ndarray,
    prim_exp: np.ndarray,
    prim_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
    pairA: np.ndarray,
    pairB: np.ndarray,
    nao: int,
) -> np.ndarray:
    out = np.zeros((nao, nao), dtype=np.float64)
    npair = int(pairA.shape[0])
    for idx in nb.prange(npair):
        shA = int(pairA[idx])
        shB = int(pairB[idx])
        la = int(shell_l[shA])
        lb = int(shell_l[shB])
        aoA = int(shell_ao_start[shA])
        aoB = int(shell_ao_start[shB])
        nA = _ncart(la)
        nB = _ncart(lb)

        sA = int(shell_prim_start[shA])
        sB = int(shell_prim_start[shB])
        expA = prim_exp[sA : sA + int(shell_nprim[shA])]
        coefA = prim_coef[sA : sA + int(shell_nprim[shA])]
        expB = prim_exp[sB : sB + int(shell_nprim[shB])]
        coefB = prim_coef[sB : sB + int(shell_nprim[shB])]

        tile = np.zeros((nA, nB), dtype=np.float64)
        _fill_tile_S(tile, la, lb, shell_cxyz[shA], shell_cxyz[shB], expA, coefA, expB, coefB, comp_start, comp_lx, comp_ly, comp_lz)

        out[aoA : aoA + nA, aoB : aoB + nB] = tile
        if shA != shB:
            out[aoB : aoB + nB, aoA : aoA + nA] = tile.T
    return out


@nb.njit(cache=True, nogil=True)
def esp_tile_points(
    la: int,
    lb: int,
    cA: np.ndarray,
    cB: np.ndarray,
    expA: np.ndarray,
    coefA: np.ndarray,
    expB: np.ndarray,
    coefB: np.ndarray,
    points: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> np.ndarray:
    """ESP integrals of the shell pair (A, B) at `points`, shape `(npts, nA, nB)`.

    The sign convention is that of a positive unit charge at each point, so
    diagonal elements are positive.
    """

    nA = _ncart(la)
    nB = _ncart(lb)
    offA = int(comp_start[la])
    offB = int(comp_start[lb])
    L = la + lb
    npts = points.shape[0]
    out = np.zeros((npts, nA, nB), dtype=np.float64)

    for ia in range(expA.shape[0]):
        a = float(expA[ia])
        for ib in range(expB.shape[0]):
            b = float(expB[ib])
            p = a + b
            inv_p = 1.0 / p
            Px = (a * cA[0] + b * cB[0]) * inv_p
            Py = (a * cA[1] + b * cB[1]) * inv_p
            Pz = (a * cA[2] + b * cB[2]) * inv_p
            Ex = hermite_e_table(la, lb, a, b, cA[0], cB[0])
            Ey = hermite_e_table(la, lb, a, b, cA[1], cB[1])
            Ez = hermite_e_table(la, lb, a, b, cA[2], cB[2])
            pref = coefA[ia] * coefB[ib] * 2.0 * math.pi * inv_p

            for g in range(npts):
                R = r_tensor(p, Px - points[g, 0], Py - points[g, 1], Pz - points[g, 2], L)
                for i in range(nA):
                    lax = int(comp_lx[offA + i])
                    lay = int(comp_ly[offA + i])
                    laz = int(comp_lz[offA + i])
                    for j in range(nB):
                        lbx = int(comp_lx[offB + j])
                        lby = int(comp_ly[offB + j])
                        lbz = int(comp_lz[offB + j])
                        s = 0.0
                        for t in range(lax + lbx + 1):
                            ex = Ex[lax, lbx, t]
                            if ex == 0.0:
                                continue
                            for u in range(lay + lby + 1):
                                ey = Ey[lay, lby, u]
                                if ey == 0.0:
                                    continue
                                for v in range(laz + lbz + 1):
                                    ez = Ez[laz, lbz, v]
                                    if ez == 0.0:
                                        continue
                                    s += ex * ey * ez * R[t, u, v]
                        out[g, i, j] += pref * s
    return out


__all__ = ["build_S_cart_numba", "esp_tile_points"]
