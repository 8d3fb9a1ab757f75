from __future__ import annotations

"""Packing per-element basis data into `BasisCartSoA`.

Accepted inputs
---------------
- Basis Set Exchange JSON (see `compjk.frontend.basis_bse`)
- PySCF-style explicit dicts:
    {"H": [[0, [exp, c1, c2, ...], ...], ...], ...}

Shells are emitted atom by atom, so the packed basis always carries a
non-decreasing `shell_atom` map.
"""

import re
from typing import Any

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.cart import ncart
from compjk.integrals.gto_cart import primitive_norm_cart

ElementShells = list[tuple[int, np.ndarray, np.ndarray]]


def _parse_shell_entry(entry: Any) -> ElementShells:
    """Parse one shell entry `[l, [exp, c...], ...]` or an SP-style `[l1, l2, [exp, ...], ...]`."""

    if not isinstance(entry, (list, tuple)) or len(entry) < 2:
        raise ValueError(f"invalid basis shell entry: {entry!r}")

    ls: list[int] = []
    prim_start = None
    for i, item in enumerate(entry):
        if isinstance(item, (int, np.integer)):
            ls.append(int(item))
            continue
        prim_start = i
        break
    if prim_start is None or not ls:
        raise ValueError(f"invalid basis shell entry header: {entry!r}")

    rows = entry[prim_start:]
    for line in rows:
        if not isinstance(line, (list, tuple)) or len(line) < 2:
            raise ValueError(f"invalid primitive line: {line!r}")
    exps = np.asarray([float(line[0]) for line in rows], dtype=np.float64)
    coeff = np.asarray([[float(x) for x in line[1:]] for line in rows], dtype=np.float64)
    if coeff.ndim != 2:
        raise ValueError(f"ragged coefficient rows in entry {entry!r}")

    ncols = int(coeff.shape[1])
    if ncols % len(ls) != 0:
        raise ValueError(f"coeff column count ({ncols}) not divisible by nL ({len(ls)}) for entry {entry!r}")
    nctr = ncols // len(ls)
    return [(l, exps, coeff[:, i * nctr : (i + 1) * nctr]) for i, l in enumerate(ls)]


def parse_basis_dict(basis: Any, *, elements: list[str]) -> dict[str, ElementShells]:
    """Parse an explicit basis dict into per-element `(l, exps, coefs)` shells."""

    if not isinstance(basis, dict):
        raise TypeError("basis must be a dict mapping element symbol -> shell list")
    elements = [str(e).strip() for e in elements]
    if not elements:
        raise ValueError("elements must be non-empty")

    norm_basis: dict[str, Any] = {}
    for key, val in basis.items():
        m = re.match(r"^([A-Za-z]{1,2})", str(key).strip())
        norm_basis.setdefault((m.group(1) if m is not None else str(key)).capitalize(), val)

    out: dict[str, ElementShells] = {}
    for sym in elements:
        spec = basis.get(sym, norm_basis.get(sym))
        if spec is None:
            raise KeyError(f"missing basis for element {sym!r}")
        if not isinstance(spec, (list, tuple)):
            raise TypeError(f"basis[{sym!r}] must be a list of shells")
        shells: ElementShells = []
        for entry in spec:
            shells.extend(_parse_shell_entry(entry))
        out[sym] = shells
    return out


def pack_cart_basis(
    atoms_bohr: list[tuple[str, np.ndarray]] | tuple[tuple[str, np.ndarray], ...],
    basis_shells: dict[str, ElementShells],
    *,
    expand_contractions: bool = True,
    normalize: bool = True,
) -> BasisCartSoA:
    """Pack per-element shells into a `BasisCartSoA` with a `shell_atom` map.

    Parameters
    ----------
    normalize : bool
        Fold the Cartesian primitive normalization into the coefficients. Auxiliary
        fitting bases are packed the same way.
    """

    shell_cxyz: list[np.ndarray] = []
    shell_prim_start: list[int] = []
    shell_nprim: list[int] = []
    shell_l: list[int] = []
    shell_ao_start: list[int] = []
    shell_atom: list[int] = []
    prim_exp: list[float] = []
    prim_coef: list[float] = []
    ao_cursor = 0

    for ia, (sym, xyz) in enumerate(atoms_bohr):
        sym = str(sym).strip()
        xyz = np.asarray(xyz, dtype=np.float64).reshape((3,))
        shells = basis_shells.get(sym)
        if shells is None:
            raise KeyError(f"missing basis shells for element {sym!r}")
        for l, exps, coefs in shells:
            l = int(l)
            exps = np.asarray(exps, dtype=np.float64).ravel()
            coefs = np.asarray(coefs, dtype=np.float64).reshape((exps.size, -1))
            nprim, nctr = int(coefs.shape[0]), int(coefs.shape[1])
            if nprim <= 0 or nctr <= 0:
                raise ValueError("invalid shell sizes")
            if np.any(exps <= 0.0):
                raise ValueError("primitive exponents must be > 0")

            norm = primitive_norm_cart(l, exps) if normalize else np.ones_like(exps)
            for ctr_id in range(nctr if expand_contractions else 1):
                shell_cxyz.append(xyz)
                shell_prim_start.append(len(prim_exp))
                shell_nprim.append(nprim)
                shell_l.append(l)
                shell_ao_start.append(ao_cursor)
                shell_atom.append(ia)
                prim_exp.extend(exps.tolist())
                prim_coef.extend((coefs[:, ctr_id] * norm).tolist())
                ao_cursor += ncart(l)

    return BasisCartSoA(
        shell_cxyz=np.asarray(shell_cxyz, dtype=np.float64).reshape((-1, 3)),
        shell_prim_start=np.asarray(shell_prim_start, dtype=np.int32),
        shell_nprim=np.asarray(shell_nprim, dtype=np.int32),
        shell_l=np.asarray(shell_l, dtype=np.int32),
        shell_ao_start=np.asarray(shell_ao_start, dtype=np.int32),
        prim_exp=np.asarray(prim_exp, dtype=np.float64),
        prim_coef=np.asarray(prim_coef, dtype=np.float64),
        shell_atom=np.asarray(shell_atom, dtype=np.int32),
    )


__all__ = ["ElementShells", "pack_cart_basis", "parse_basis_dict"]
