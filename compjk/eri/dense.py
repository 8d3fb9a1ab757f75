from __future__ import annotations

"""Dense (unscreened) ERI tensors for small systems.

These materialize the full tensors and are meant for reference checks and for
the auxiliary Coulomb metric, which is always kept dense.
"""

import numpy as np

from ._md_numba import eri2c_dense, eri3c_dense, eri4c_dense
from .basis_cart import BasisCartSoA
from .cart import comp_tables


def _basis_arrays(basis: BasisCartSoA, *, with_ao_start: bool = True):
    out = [
        basis.shell_cxyz,
        basis.shell_prim_start,
        basis.shell_nprim,
        basis.shell_l,
    ]
    if with_ao_start:
        out.append(basis.shell_ao_start)
    out.extend([basis.prim_exp, basis.prim_coef])
    return out


def build_eri4c_dense(basis: BasisCartSoA) -> np.ndarray:
    """Full `(nao, nao, nao, nao)` tensor `(pq|rs)` in chemists' notation."""

    comp = comp_tables(basis.lmax)
    return eri4c_dense(*_basis_arrays(basis), *comp, int(basis.nao))


def build_eri3c_dense(aux_basis: BasisCartSoA, basis: BasisCartSoA) -> np.ndarray:
    """Full `(naux, nao, nao)` tensor `(P|mn)`."""

    comp = comp_tables(max(basis.lmax, aux_basis.lmax))
    return eri3c_dense(
        *_basis_arrays(aux_basis),
        *_basis_arrays(basis),
        *comp,
        int(aux_basis.nao),
        int(basis.nao),
    )


def build_coulomb_metric(aux_basis: BasisCartSoA) -> np.ndarray:
    """Two-center Coulomb metric `(P|Q)`, shape `(naux, naux)`."""

    comp = comp_tables(aux_basis.lmax)
    return eri2c_dense(*_basis_arrays(aux_basis), *comp, int(aux_basis.nao))


__all__ = ["build_coulomb_metric", "build_eri3c_dense", "build_eri4c_dense"]
