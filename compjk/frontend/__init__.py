from __future__ import annotations

"""Molecule and basis front end."""

from .basis_packer import pack_cart_basis, parse_basis_dict
from .molecule import Molecule
from .one_electron import build_ao_basis_cart, build_aux_basis_cart

__all__ = [
    "Molecule",
    "build_ao_basis_cart",
    "build_aux_basis_cart",
    "pack_cart_basis",
    "parse_basis_dict",
]
