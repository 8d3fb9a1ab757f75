from __future__ import annotations

"""Radial quadratures for atom-centered grids."""

import numpy as np


def treutler_ahlrichs(n: int, xi: float = 1.0) -> tuple[np.ndarray, np.ndarray]:
    """Treutler-Ahlrichs M4 radial grid (alpha = 0.6).

    Returns
    -------
    (r, w)
        Radii in increasing order and weights that include the `r^2` Jacobian,
        so that `sum(w * f(r)) ~ int_0^inf r^2 f(r) dr`.
    """

    n = int(n)
    if n <= 0:
        raise ValueError("number of radial points must be > 0")
    xi = float(xi)
    if xi <= 0.0:
        raise ValueError("xi must be > 0")

    step = np.pi / (n + 1)
    i = np.arange(1, n + 1, dtype=np.float64)
    x = np.cos(i * step)
    inv_ln2 = xi / np.log(2.0)
    r = -inv_ln2 * (1.0 + x) ** 0.6 * np.log((1.0 - x) / 2.0)
    dr = step * np.sin(i * step) * inv_ln2 * (1.0 + x) ** 0.6 * (
        -0.6 / (1.0 + x) * np.log((1.0 - x) / 2.0) + 1.0 / (1.0 - x)
    )
    r = r[::-1].copy()
    w = (r * r * dr[::-1]).copy()
    return r, w


__all__ = ["treutler_ahlrichs"]
