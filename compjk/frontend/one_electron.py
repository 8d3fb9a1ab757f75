from __future__ import annotations

"""Orbital and auxiliary basis construction from a `Molecule`."""

from typing import Any

from compjk.eri.basis_cart import BasisCartSoA

from .basis_bse import load_autoaux_shells, load_basis_shells
from .basis_packer import pack_cart_basis, parse_basis_dict
from .molecule import Molecule


def _resolve_shells(basis_in: Any, elements: list[str]):
    if isinstance(basis_in, str):
        return load_basis_shells(str(basis_in), elements=elements), str(basis_in)
    if isinstance(basis_in, dict):
        return parse_basis_dict(basis_in, elements=elements), "<explicit>"
    raise TypeError("basis must be a string name or an explicit per-element basis dict")


def build_ao_basis_cart(
    mol: Molecule,
    *,
    basis: Any | None = None,
    expand_contractions: bool = True,
) -> tuple[BasisCartSoA, str]:
    """Build `(ao_basis, basis_name)` as a packed Cartesian basis."""

    basis_in = mol.basis if basis is None else basis
    if basis_in is None:
        raise ValueError("no orbital basis given (set Molecule.basis or pass basis=)")
    shells, name = _resolve_shells(basis_in, sorted(set(mol.elements)))
    ao_basis = pack_cart_basis(mol.atoms_bohr, shells, expand_contractions=bool(expand_contractions))
    return ao_basis, name


def build_aux_basis_cart(
    mol: Molecule,
    auxbasis: Any,
    *,
    orbital_basis_name: str | None = None,
) -> tuple[BasisCartSoA, str]:
    """Build `(aux_basis, auxbasis_name)` for density fitting.

    `auxbasis="autoaux"` asks Basis Set Exchange for the auxiliary set matching
    `orbital_basis_name` (or `mol.basis` when that is a name).
    """

    elements = sorted(set(mol.elements))
    if isinstance(auxbasis, str) and auxbasis.strip().lower() == "autoaux":
        orb = orbital_basis_name if orbital_basis_name is not None else mol.basis
        if not isinstance(orb, str):
            raise ValueError("auxbasis='autoaux' requires a named orbital basis")
        name, shells = load_autoaux_shells(orb, elements=elements)
    else:
        shells, name = _resolve_shells(auxbasis, elements)
    return pack_cart_basis(mol.atoms_bohr, shells, expand_contractions=True), name


__all__ = ["build_ao_basis_cart", "build_aux_basis_cart"]
