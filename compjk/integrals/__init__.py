"""One-electron integrals and Gaussian normalization helpers."""

from __future__ import annotations

from .gto_cart import gto_norm_radial, primitive_norm_cart
from .int1e_cart import ESPIntegrals, build_esp_cart, build_S_cart

__all__ = [
    "ESPIntegrals",
    "build_S_cart",
    "build_esp_cart",
    "gto_norm_radial",
    "primitive_norm_cart",
]
