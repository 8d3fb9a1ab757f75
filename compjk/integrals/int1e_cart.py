from __future__ import annotations

"""AO one-electron integrals on the packed Cartesian basis.

Scope
-----
- Overlap S
- Electrostatic potential (ESP) integrals of one shell pair at many points

Primitives are unnormalized `exp(-a r^2)`; the coefficients in `BasisCartSoA`
already include the PySCF/libcint `cart=True` normalization.
"""

import functools

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.cart import comp_tables

from ._int1e_cart_numba import build_S_cart_numba, esp_tile_points


@functools.lru_cache(maxsize=64)
def _shell_pairs_lower(nshell: int) -> tuple[np.ndarray, np.ndarray]:
    A, B = np.tril_indices(int(nshell))
    pairA = np.ascontiguousarray(A, dtype=np.int32)
    pairB = np.ascontiguousarray(B, dtype=np.int32)
    pairA.setflags(write=False)
    pairB.setflags(write=False)
    return pairA, pairB


def build_S_cart(basis: BasisCartSoA) -> np.ndarray:
    """Build AO overlap S in cart basis (float64, shape (nao,nao))."""

    comp_start, comp_lx, comp_ly, comp_lz = comp_tables(basis.lmax)
    pairA, pairB = _shell_pairs_lower(basis.nshell)
    return build_S_cart_numba(
        basis.shell_cxyz,
        basis.shell_prim_start,
        basis.shell_nprim,
        basis.shell_l,
        basis.shell_ao_start,
        basis.prim_exp,
        basis.prim_coef,
        comp_start,
        comp_lx,
        comp_ly,
        comp_lz,
        pairA,
        pairB,
        int(basis.nao),
    )


class ESPIntegrals:
    """Shell-pair ESP integrals `A_{mn}(g) = int phi_m phi_n / |r - g|` at grid points."""

    def __init__(self, basis: BasisCartSoA) -> None:
        self.basis = basis
        self._comp = comp_tables(basis.lmax)
        self._prims = []
        for sh in range(basis.nshell):
            s0 = int(basis.shell_prim_start[sh])
            s1 = s0 + int(basis.shell_nprim[sh])
            self._prims.append((basis.prim_exp[s0:s1], basis.prim_coef[s0:s1]))

    def compute_shell(self, M: int, N: int, points: np.ndarray) -> np.ndarray:
        """ESP tile of the shell pair `(M, N)`, shape `(npts, nM, nN)`."""

        b = self.basis
        eM, cM = self._prims[M]
        eN, cN = self._prims[N]
        pts = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
        return esp_tile_points(
            int(b.shell_l[M]), int(b.shell_l[N]),
            b.shell_cxyz[M], b.shell_cxyz[N],
            eM, cM, eN, cN,
            pts,
            *self._comp,
        )

    def clone(self) -> "ESPIntegrals":
        return ESPIntegrals(self.basis)


def build_esp_cart(basis: BasisCartSoA, point: np.ndarray) -> np.ndarray:
    """Full `(nao, nao)` ESP matrix at a single point."""

    esp = ESPIntegrals(basis)
    nao = int(basis.nao)
    out = np.zeros((nao, nao), dtype=np.float64)
    pt = np.asarray(point, dtype=np.float64).reshape(1, 3)
    pairA, pairB = _shell_pairs_lower(basis.nshell)
    for M, N in zip(pairA.tolist(), pairB.tolist()):
        tile = esp.compute_shell(M, N, pt)[0]
        sm = basis.shell_slice(M)
        sn = basis.shell_slice(N)
        out[sm, sn] = tile
        out[sn, sm] = tile.T
    return out


__all__ = ["ESPIntegrals", "build_S_cart", "build_esp_cart"]
