from __future__ import annotations

"""Named basis sets through Basis Set Exchange (optional dependency)."""

import json
from typing import Any

import numpy as np

from .basis_packer import ElementShells
from .periodic_table import atomic_number


def _require_bse():
    try:
        import basis_set_exchange as bse  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise RuntimeError(
            "basis_set_exchange is required to load basis sets by name. "
            "Install it (`pip install compjk[bse]`) or pass an explicit basis dict."
        ) from e
    return bse


def _parse_bse_shell(shell: dict[str, Any]) -> ElementShells:
    ams = [int(x) for x in shell["angular_momentum"]]
    if not ams:
        raise ValueError("invalid BSE shell: empty angular_momentum")
    exps = np.asarray(shell["exponents"], dtype=np.float64)
    if exps.ndim != 1 or exps.size == 0:
        raise ValueError("invalid BSE shell: empty exponents")
    nprim = int(exps.size)
    coeff = np.asarray(shell["coefficients"], dtype=np.float64)

    # Coefficients are stored as (nctr, nprim); SP-type shells list one row per l.
    if coeff.ndim != 2 or int(coeff.shape[1]) != nprim:
        raise ValueError("unexpected BSE coefficients shape")
    if len(ams) == 1:
        return [(ams[0], exps, coeff.T)]
    if int(coeff.shape[0]) != len(ams):
        raise ValueError("multi-l BSE shell must carry one coefficient row per angular momentum")
    return [(l, exps, coeff[i].reshape((nprim, 1))) for i, l in enumerate(ams)]


def _elements_from_json(data: dict[str, Any], elements: list[str]) -> dict[str, ElementShells]:
    out: dict[str, ElementShells] = {}
    for sym in elements:
        shells = data["elements"][str(atomic_number(sym))]["electron_shells"]
        buf: ElementShells = []
        for sh in shells:
            buf.extend(_parse_bse_shell(sh))
        out[sym] = buf
    return out


def load_basis_shells(basis_name: str, *, elements: list[str]) -> dict[str, ElementShells]:
    """Per-element `(l, exps, coefs)` shells of a named basis."""

    bse = _require_bse()
    elements = [str(e).strip() for e in elements]
    if not elements:
        raise ValueError("elements must be non-empty")
    s = bse.get_basis(str(basis_name), elements=elements, fmt="json", header=False)
    return _elements_from_json(json.loads(s), elements)


def load_autoaux_shells(orbital_basis_name: str, *, elements: list[str]) -> tuple[str, dict[str, ElementShells]]:
    """Automatically generated auxiliary basis for an orbital basis, as `(name, shells)`."""

    bse = _require_bse()
    elements = [str(e).strip() for e in elements]
    if not elements:
        raise ValueError("elements must be non-empty")
    s = bse.get_basis(str(orbital_basis_name), elements=elements, fmt="json", header=False, get_aux=1)
    data = json.loads(s)
    aux_name = str(data.get("name", ""))
    if not aux_name:
        raise ValueError("BSE did not return an auxiliary basis name")
    return aux_name, _elements_from_json(data, elements)


__all__ = ["load_autoaux_shells", "load_basis_shells"]
