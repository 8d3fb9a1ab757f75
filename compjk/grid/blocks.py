from __future__ import annotations

"""Spatial blocking of grid points."""

import numpy as np

BLOCK_MIN_POINTS = 100
BLOCK_MAX_POINTS = 256
BLOCK_MAX_RADIUS = 3.0


def _bounding_sphere(points: np.ndarray) -> tuple[np.ndarray, float]:
    center = 0.5 * (points.min(axis=0) + points.max(axis=0))
    radius = float(np.sqrt(np.max(np.sum((points - center) ** 2, axis=1)))) if points.shape[0] else 0.0
    return center, radius


def octree_blocks(
    points: np.ndarray,
    *,
    min_points: int = BLOCK_MIN_POINTS,
    max_points: int = BLOCK_MAX_POINTS,
    max_radius: float = BLOCK_MAX_RADIUS,
) -> list[np.ndarray]:
    """Split points into compact blocks by recursive median bisection.

    A box is split along its longest edge while it holds more than `max_points`
    points, or while its bounding radius exceeds `max_radius` and both halves
    keep at least `min_points`. Returns index arrays, one per block.
    """

    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if int(min_points) <= 0 or int(max_points) < 2 * int(min_points) - 1:
        raise ValueError("block sizes must satisfy 0 < min_points and max_points >= 2*min_points - 1")
    out: list[np.ndarray] = []
    stack = [np.arange(points.shape[0], dtype=np.int64)]
    while stack:
        idx = stack.pop()
        if idx.size == 0:
            continue
        sub = points[idx]
        _center, radius = _bounding_sphere(sub)
        too_many = idx.size > int(max_points)
        too_wide = radius > float(max_radius) and idx.size >= 2 * int(min_points)
        if not (too_many or too_wide):
            out.append(idx)
            continue
        axis = int(np.argmax(sub.max(axis=0) - sub.min(axis=0)))
        order = np.argsort(sub[:, axis], kind="stable")
        half = idx.size // 2
        stack.append(idx[order[half:]])
        stack.append(idx[order[:half]])
    return out


__all__ = ["BLOCK_MAX_POINTS", "BLOCK_MAX_RADIUS", "BLOCK_MIN_POINTS", "octree_blocks"]
