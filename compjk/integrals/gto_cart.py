from __future__ import annotations

"""Gaussian primitive normalization (Cartesian, PySCF/libcint `cart=True` conventions).

The packed basis stores unnormalized primitives `exp(-a r^2)`; the factors
below are folded into the contraction coefficients by the basis packer.
"""

from math import gamma, pi

import numpy as np


def _gaussian_int(n: int, alpha: np.ndarray) -> np.ndarray:
    """int_0^inf x^n exp(-alpha x^2) dx, elementwise in alpha."""

    n1 = 0.5 * float(int(n) + 1)
    return (gamma(n1) / 2.0) / np.power(np.asarray(alpha, dtype=np.float64), n1)


def gto_norm_radial(l: int, exp: np.ndarray) -> np.ndarray:
    """Radial normalization `1 / sqrt(int r^(2l+2) exp(-2 a r^2) dr)`."""

    l = int(l)
    if l < 0:
        raise ValueError("l must be >= 0")
    exp = np.asarray(exp, dtype=np.float64).ravel()
    return 1.0 / np.sqrt(_gaussian_int(2 * l + 2, 2.0 * exp))


def primitive_norm_cart(l: int, exp: np.ndarray) -> np.ndarray:
    """Primitive coefficient scale used for Cartesian shells.

    s and p shells get the full Cartesian normalization `(2a/pi)^(3/4) (4a)^(l/2)`;
    l >= 2 shells get the radial factor only, so that the `x^l` component is
    normalized and mixed components such as `xy` are not.
    """

    l = int(l)
    if l < 0:
        raise ValueError("l must be >= 0")
    exp = np.asarray(exp, dtype=np.float64).ravel()
    if l <= 1:
        return (2.0 * exp / pi) ** 0.75 * (4.0 * exp) ** (0.5 * l)
    return gto_norm_radial(l, exp)


__all__ = ["gto_norm_radial", "primitive_norm_cart"]
