from __future__ import annotations

from functools import lru_cache

import numpy as np


def ncart(l: int) -> int:
    """Number of Cartesian components `(l + 1) * (l + 2) / 2` for angular momentum `l`."""
    if l < 0:
        raise ValueError("l must be >= 0")
    return (l + 1) * (l + 2) // 2


@lru_cache(maxsize=None)
def cartesian_components(l: int) -> tuple[tuple[int, int, int], ...]:
    """Cartesian exponent tuples `(lx, ly, lz)` for angular momentum `l`.

    Components follow the PySCF/libcint order: decreasing `lx`, then decreasing `ly`.
    For l=2 this gives xx, xy, xz, yy, yz, zz.
    """
    if l < 0:
        raise ValueError("l must be >= 0")
    out: list[tuple[int, int, int]] = []
    for lx in range(l, -1, -1):
        for ly in range(l - lx, -1, -1):
            out.append((lx, ly, l - lx - ly))
    return tuple(out)


@lru_cache(maxsize=16)
def comp_tables(lmax: int) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Flattened `(lx, ly, lz)` tables for all l <= lmax, consumed by the numba kernels.

    Returns
    -------
    (comp_start, comp_lx, comp_ly, comp_lz)
        `comp_start[l]` is the offset of the first component of angular momentum `l`.
        The arrays are read-only and shared between callers.
    """

    lmax = int(lmax)
    if lmax < 0:
        raise ValueError("lmax must be >= 0")

    start = np.zeros((lmax + 2,), dtype=np.int32)
    total = 0
    for l in range(lmax + 1):
        start[l] = total
        total += ncart(l)
    start[lmax + 1] = total

    lx = np.empty((total,), dtype=np.int16)
    ly = np.empty((total,), dtype=np.int16)
    lz = np.empty((total,), dtype=np.int16)
    off = 0
    for l in range(lmax + 1):
        for c in cartesian_components(l):
            lx[off], ly[off], lz[off] = c
            off += 1

    for arr in (start, lx, ly, lz):
        arr.setflags(write=False)
    return start, lx, ly, lz


__all__ = ["cartesian_components", "comp_tables", "ncart"]
