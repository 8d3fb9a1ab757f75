from __future__ import annotations

"""Spatial extents of basis-function shells."""

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA


def _radial_envelope(r: float, l: int, exps: np.ndarray, coefs: np.ndarray) -> float:
    return float(np.sum(np.abs(coefs) * r**l * np.exp(-exps * r * r)))


def shell_extents(basis: BasisCartSoA, tolerance: float) -> np.ndarray:
    """Radius beyond which each shell's envelope `sum |c| r^l exp(-a r^2)` stays below `tolerance`.

    The envelope is monotonically decreasing past `sqrt(l / (2 a_min))`; the
    crossing is bracketed by doubling and located by bisection. A shell whose
    envelope never reaches `tolerance` gets the radius of that turning point.
    """

    tolerance = float(tolerance)
    if tolerance <= 0.0:
        raise ValueError("basis tolerance must be > 0")
    out = np.zeros((basis.nshell,), dtype=np.float64)
    for sh in range(basis.nshell):
        l = int(basis.shell_l[sh])
        s0 = int(basis.shell_prim_start[sh])
        s1 = s0 + int(basis.shell_nprim[sh])
        exps = basis.prim_exp[s0:s1]
        coefs = basis.prim_coef[s0:s1]

        r_lo = float(np.sqrt(l / (2.0 * np.min(exps)))) if l > 0 else 0.0
        if _radial_envelope(r_lo, l, exps, coefs) < tolerance:
            out[sh] = r_lo
            continue
        r_hi = max(2.0 * r_lo, 1.0)
        while _radial_envelope(r_hi, l, exps, coefs) >= tolerance:
            r_lo = r_hi
            r_hi *= 2.0
        for _ in range(60):
            mid = 0.5 * (r_lo + r_hi)
            if _radial_envelope(mid, l, exps, coefs) >= tolerance:
                r_lo = mid
            else:
                r_hi = mid
            if r_hi - r_lo < 1e-10 * r_hi:
                break
        out[sh] = r_hi
    return out


__all__ = ["shell_extents"]
