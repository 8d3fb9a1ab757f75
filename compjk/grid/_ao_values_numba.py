from __future__ import annotations

"""Basis-function values on grid points."""

import math

import numpy as np

import numba as nb  # type: ignore


@nb.njit(cache=True, nogil=True)
def eval_shells_at_points(
    points: np.ndarray,
    shells: np.ndarray,
    shell_cxyz: np.ndarray,
    shell_prim_start: np.ndarray,
    shell_nprim: np.ndarray,
    shell_l: np.ndarray,
    prim_exp: np.ndarray,
    prim_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
    nfunc: int,
) -> np.ndarray:
    """Values `phi[g, k]` of the Cartesian functions of `shells` (in order), shape `(npts, nfunc)`."""

    npts = points.shape[0]
    out = np.zeros((npts, nfunc), dtype=np.float64)
    col = 0
    for si in range(shells.shape[0]):
        sh = shells[si]
        l = shell_l[sh]
        n = (l + 1) * (l + 2) // 2
        off = comp_start[l]
        s0 = shell_prim_start[sh]
        np_ = shell_nprim[sh]
        cx = shell_cxyz[sh, 0]
        cy = shell_cxyz[sh, 1]
        cz = shell_cxyz[sh, 2]
        for g in range(npts):
            dx = points[g, 0] - cx
            dy = points[g, 1] - cy
            dz = points[g, 2] - cz
            r2 = dx * dx + dy * dy + dz * dz
            rad = 0.0
            for k in range(np_):
                rad += prim_coef[s0 + k] * math.exp(-prim_exp[s0 + k] * r2)
            if rad == 0.0:
                continue
            for c in range(n):
                v = rad
                for _ in range(comp_lx[off + c]):
                    v *= dx
                for _ in range(comp_ly[off + c]):
                    v *= dy
                for _ in range(comp_lz[off + c]):
                    v *= dz
                out[g, col + c] = v
        col += n
    return out


__all__ = ["eval_shells_at_points"]
