from __future__ import annotations

"""Lebedev angular quadratures and Treutler pruning."""

import functools

import numpy as np
from scipy.integrate import lebedev_rule

# number of points -> polynomial order of the Lebedev rule
DEG2ORD = {
    6: 3, 14: 5, 26: 7, 38: 9, 50: 11, 74: 13, 86: 15, 110: 17,
    146: 19, 170: 21, 194: 23, 230: 25, 266: 27, 302: 29, 350: 31, 434: 35,
    590: 41, 770: 47, 974: 53, 1202: 59, 1454: 65, 1730: 71, 2030: 77, 2354: 83,
    2702: 89, 3074: 95, 3470: 101, 3890: 107, 4334: 113, 4802: 119, 5294: 125, 5810: 131,
}

PRUNING_SCHEMES = ("NONE", "TREUTLER")


@functools.lru_cache(maxsize=32)
def lebedev_grid(npoints: int) -> tuple[np.ndarray, np.ndarray]:
    """Unit-sphere Lebedev rule with `npoints` points.

    Returns `(points, weights)` with shapes `(npoints, 3)` and `(npoints,)`; the
    weights sum to `4 pi`. Both arrays are read-only.
    """

    npoints = int(npoints)
    order = DEG2ORD.get(npoints)
    if order is None:
        raise ValueError(f"no Lebedev rule with {npoints} points; valid sizes: {sorted(DEG2ORD)}")
    x, w = lebedev_rule(order)
    pts = np.ascontiguousarray(np.asarray(x, dtype=np.float64).T)
    w = np.ascontiguousarray(w, dtype=np.float64)
    pts.setflags(write=False)
    w.setflags(write=False)
    return pts, w


def angular_counts(nrad: int, nang: int, scheme: str = "NONE") -> np.ndarray:
    """Angular points per radial shell (innermost first).

    `TREUTLER` uses 14 points for the inner third of the shells, 50 up to the
    middle, and `nang` beyond (never more than `nang`).
    """

    nrad = int(nrad)
    nang = int(nang)
    scheme = str(scheme).upper().strip()
    if scheme not in PRUNING_SCHEMES:
        raise ValueError(f"Invalid pruning scheme {scheme!r}; expected one of {PRUNING_SCHEMES}")
    out = np.full((nrad,), nang, dtype=np.int64)
    if scheme == "TREUTLER":
        out[: nrad // 3] = min(14, nang)
        out[nrad // 3 : nrad // 2] = min(50, nang)
    return out


__all__ = ["DEG2ORD", "PRUNING_SCHEMES", "angular_counts", "lebedev_grid"]
