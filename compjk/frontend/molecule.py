from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from .periodic_table import ANGSTROM_TO_BOHR, atomic_number


def _parse_atom_string(atom: str) -> list[tuple[str, np.ndarray]]:
    atoms: list[tuple[str, np.ndarray]] = []
    for frag in str(atom).replace("\n", ";").split(";"):
        frag = frag.strip()
        if not frag:
            continue
        tok = frag.split()
        if len(tok) != 4:
            raise ValueError(f"invalid atom fragment: {frag!r} (expected: 'El x y z')")
        atoms.append((tok[0], np.asarray([float(t) for t in tok[1:]], dtype=np.float64)))
    if not atoms:
        raise ValueError("no atoms parsed")
    return atoms


def _parse_atoms(atoms: Any) -> list[tuple[str, np.ndarray]]:
    if isinstance(atoms, str):
        return _parse_atom_string(atoms)
    if isinstance(atoms, (list, tuple)):
        out: list[tuple[str, np.ndarray]] = []
        for item in atoms:
            if isinstance(item, str):
                out.extend(_parse_atom_string(item))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                out.append((str(item[0]), np.asarray(item[1], dtype=np.float64).reshape((3,))))
            else:
                raise ValueError(f"invalid atom entry: {item!r}")
        if not out:
            raise ValueError("no atoms parsed")
        return out
    raise TypeError("atoms must be a PySCF-like atom string or a list of (sym, (x,y,z))")


@dataclass(frozen=True)
class Molecule:
    """Nuclear framework plus the orbital basis specification."""

    atoms_bohr: tuple[tuple[str, np.ndarray], ...]
    charge: int = 0
    spin: int = 0  # nalpha - nbeta
    basis: Any = None  # basis name or explicit per-element basis dict

    @classmethod
    def from_atoms(
        cls,
        atoms: Any,
        *,
        unit: str = "Bohr",
        charge: int = 0,
        spin: int = 0,
        basis: Any = None,
    ) -> "Molecule":
        atoms_list = _parse_atoms(atoms)
        unit_norm = str(unit).strip().lower()
        if unit_norm in ("bohr", "a0", "au"):
            scale = 1.0
        elif unit_norm in ("angstrom", "ang", "a"):
            scale = ANGSTROM_TO_BOHR
        else:
            raise ValueError("unit must be 'Bohr' or 'Angstrom'")
        for sym, _xyz in atoms_list:
            atomic_number(sym)
        atoms_bohr = tuple((sym, xyz * scale) for sym, xyz in atoms_list)
        return cls(atoms_bohr=atoms_bohr, charge=int(charge), spin=int(spin), basis=basis)

    @property
    def elements(self) -> tuple[str, ...]:
        return tuple(sym for sym, _ in self.atoms_bohr)

    @property
    def natm(self) -> int:
        return int(len(self.atoms_bohr))

    @property
    def coords_bohr(self) -> np.ndarray:
        """Atomic coordinates, shape (natm, 3), in Bohr."""

        return np.asarray([xyz for _sym, xyz in self.atoms_bohr], dtype=np.float64).reshape((self.natm, 3))

    @property
    def atom_charges(self) -> np.ndarray:
        return np.asarray([atomic_number(sym) for sym in self.elements], dtype=np.int32)

    def atom_symbol(self, i: int) -> str:
        return str(self.atoms_bohr[int(i)][0])

    def distance_matrix(self) -> np.ndarray:
        """Interatomic distances in Bohr, shape (natm, natm)."""

        R = self.coords_bohr
        return np.sqrt(np.sum((R[:, None, :] - R[None, :, :]) ** 2, axis=2))

    @property
    def nelectron(self) -> int:
        return int(int(np.sum(self.atom_charges)) - int(self.charge))


__all__ = ["Molecule"]
