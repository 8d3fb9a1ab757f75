from __future__ import annotations

"""Screened shell-quartet and shell-triplet ERI engines.

The engines own the Schwarz pair table `v[M, N] = max |(mn|mn)|` of the
orbital basis and answer the significance queries the JK builders need:

- pair test:      v[M, N] * max_integral >= cutoff^2
- quartet test:   v[P, Q] * v[R, S] >= cutoff^2                      (SCHWARZ)
                  v[P, Q] * v[R, S] * Dmax(PQRS)^2 >= cutoff^2       (DENSITY)
- NONE disables every test.

Engines are not thread safe. Workers get their own instance through `clone()`;
clones share the read-only basis and pair tables but own their output buffer.
"""

from enum import Enum
from typing import Sequence

import numpy as np

from ._md_numba import eri3c_tile, eri_tile, schwarz_pair_values
from .basis_cart import BasisCartSoA
from .cart import comp_tables
from .shell_pairs import ShellPairs, build_shell_pairs

SCREENING_TYPES = ("SCHWARZ", "DENSITY", "NONE")


class EngineFamily(Enum):
    """Integral-engine families kept in the per-worker pools."""

    FOUR_CENTER = "4-Center"
    THREE_CENTER = "3-Center"


def _shell_prims(basis: BasisCartSoA) -> list[tuple[np.ndarray, np.ndarray]]:
    out = []
    for sh in range(basis.nshell):
        s0 = int(basis.shell_prim_start[sh])
        s1 = s0 + int(basis.shell_nprim[sh])
        out.append((basis.prim_exp[s0:s1], basis.prim_coef[s0:s1]))
    return out


def shell_block_absmax(M: np.ndarray, basis: BasisCartSoA) -> np.ndarray:
    """Per shell-pair maxima `max_{m in M, n in N} |M_mn|`, shape `(nShell, nShell)`."""

    M = np.abs(np.asarray(M, dtype=np.float64))
    starts = np.asarray(basis.shell_ao_start, dtype=np.int64)
    if starts.size == 0:
        return np.zeros((0, 0), dtype=np.float64)
    if np.any(np.diff(starts) <= 0):
        raise ValueError("shell_ao_start must be strictly increasing")
    rows = np.maximum.reduceat(M, starts, axis=0)
    return np.maximum.reduceat(rows, starts, axis=1)


def schwarz_table(basis: BasisCartSoA) -> np.ndarray:
    """Symmetric `(nShell, nShell)` table of `max |(mn|mn)|`."""

    comp = comp_tables(basis.lmax)
    out = schwarz_pair_values(
        basis.shell_cxyz,
        basis.shell_prim_start,
        basis.shell_nprim,
        basis.shell_l,
        basis.prim_exp,
        basis.prim_coef,
        *comp,
    )
    out.setflags(write=False)
    return out


class TwoBodyAOInt:
    """Common Schwarz/density screening state of the orbital-basis ERI engines.

    Parameters
    ----------
    basis : BasisCartSoA
        Orbital basis.
    cutoff : float
        Integral screening threshold (`ints_tolerance`).
    screening : str
        One of `SCHWARZ`, `DENSITY`, `NONE`.
    pair_values : np.ndarray, optional
        Precomputed Schwarz table of `basis`; computed when omitted.
    """

    family: EngineFamily

    def __init__(
        self,
        basis: BasisCartSoA,
        *,
        cutoff: float = 1e-12,
        screening: str = "SCHWARZ",
        pair_values: np.ndarray | None = None,
    ) -> None:
        screening = str(screening).upper().strip()
        if screening not in SCREENING_TYPES:
            raise ValueError(f"Invalid screening type {screening!r}; expected one of {SCREENING_TYPES}")
        cutoff = float(cutoff)
        if cutoff < 0.0:
            raise ValueError("cutoff must be >= 0")

        self.basis = basis
        self.screening = screening
        self.cutoff = cutoff if screening != "NONE" else 0.0
        self._cutoff2 = self.cutoff * self.cutoff

        if pair_values is None:
            pair_values = schwarz_table(basis)
        pair_values = np.asarray(pair_values, dtype=np.float64)
        if pair_values.shape != (basis.nshell, basis.nshell):
            raise ValueError("pair_values must have shape (nShell, nShell)")
        self._pair_values = pair_values
        self._max_integral = float(np.max(pair_values)) if pair_values.size else 0.0
        self._pair_ok = pair_values * self._max_integral >= self._cutoff2
        self._shell_pairs = build_shell_pairs(pair_values, cutoff=self.cutoff, max_integral=self._max_integral)
        self._prims = _shell_prims(basis)
        self._comp = comp_tables(basis.lmax)
        self._max_dens: np.ndarray | None = None
        self._buffer = np.zeros((0,), dtype=np.float64)

    # --- screening tables ---------------------------------------------------

    @property
    def buffer(self) -> np.ndarray:
        """Tile written by the last successful `compute_shell` call."""

        return self._buffer

    def shell_pairs(self) -> ShellPairs:
        """Significant canonical shell pairs `(M >= N)`."""

        return self._shell_pairs

    def shell_pair_value(self, M: int, N: int) -> float:
        return float(self._pair_values[M, N])

    @property
    def pair_values(self) -> np.ndarray:
        return self._pair_values

    def max_integral(self) -> float:
        return self._max_integral

    def shell_pair_significant(self, M: int, N: int) -> bool:
        return bool(self._pair_ok[M, N])

    @property
    def pair_significance(self) -> np.ndarray:
        """Boolean `(nShell, nShell)` mask of `shell_pair_significant`."""

        return self._pair_ok

    def shell_ceiling2(self, P: int, Q: int, R: int, S: int) -> float:
        """Schwarz ceiling `(PQ|PQ) * (RS|RS)` of the quartet `(PQ|RS)`."""

        return float(self._pair_values[P, Q] * self._pair_values[R, S])

    # --- density screening --------------------------------------------------

    def update_density(self, D_list: Sequence[np.ndarray]) -> None:
        """Store per-channel shell-pair density maxima for DENSITY screening and LinK."""

        self._max_dens = np.stack([shell_block_absmax(D, self.basis) for D in D_list], axis=0)

    @property
    def max_dens_shell_pair(self) -> np.ndarray | None:
        return self._max_dens

    def shell_pair_max_density(self, M: int, N: int) -> float:
        """Largest `|D_mn|` over channels for the shell pair `(M, N)`."""

        if self._max_dens is None:
            raise RuntimeError("update_density() must be called before density screening queries")
        return float(np.max(self._max_dens[:, M, N]))

    def _quartet_max_density(self, P: int, Q: int, R: int, S: int) -> float:
        Dm = self._max_dens
        if Dm.shape[0] == 1:
            D = Dm[0]
            return float(max(4.0 * D[P, Q], 4.0 * D[R, S], D[P, R], D[P, S], D[Q, R], D[Q, S]))
        coulomb = 2.0 * max(float(np.sum(Dm[:, P, Q])), float(np.sum(Dm[:, R, S])))
        exchange = max(
            float(np.max(Dm[:, P, R])),
            float(np.max(Dm[:, P, S])),
            float(np.max(Dm[:, Q, R])),
            float(np.max(Dm[:, Q, S])),
        )
        return max(coulomb, exchange)

    def shell_significant(self, P: int, Q: int, R: int, S: int) -> bool:
        """Quartet significance under the configured screening type."""

        if self.screening == "NONE":
            return True
        ceil2 = self._pair_values[P, Q] * self._pair_values[R, S]
        if self.screening == "DENSITY" and self._max_dens is not None:
            dmax = self._quartet_max_density(P, Q, R, S)
            return bool(ceil2 * dmax * dmax >= self._cutoff2)
        return bool(ceil2 >= self._cutoff2)

    # --- cloning ------------------------------------------------------------

    def clone(self) -> "TwoBodyAOInt":
        """Independent engine sharing the read-only tables of `self`."""

        other = object.__new__(type(self))
        other.__dict__.update(self.__dict__)
        other._buffer = np.zeros((0,), dtype=np.float64)
        return other


class FourCenterERI(TwoBodyAOInt):
    """Orbital-basis shell quartets `(PQ|RS)`."""

    family = EngineFamily.FOUR_CENTER

    def compute_shell(self, P: int, Q: int, R: int, S: int) -> int:
        """Evaluate `(PQ|RS)` into `buffer` (shape `(nP, nQ, nR, nS)`).

        Returns the number of integrals computed, or 0 when the quartet is
        screened out (the buffer is then left untouched).
        """

        if not self.shell_significant(P, Q, R, S):
            return 0
        b = self.basis
        eP, cP = self._prims[P]
        eQ, cQ = self._prims[Q]
        eR, cR = self._prims[R]
        eS, cS = self._prims[S]
        self._buffer = eri_tile(
            int(b.shell_l[P]), int(b.shell_l[Q]), int(b.shell_l[R]), int(b.shell_l[S]),
            b.shell_cxyz[P], b.shell_cxyz[Q], b.shell_cxyz[R], b.shell_cxyz[S],
            eP, cP, eQ, cQ, eR, cR, eS, cS,
            *self._comp,
        )
        return int(self._buffer.size)


class ThreeCenterERI(TwoBodyAOInt):
    """Auxiliary x orbital-pair triplets `(P|MN)`.

    Screening queries refer to the orbital pair `MN`; the auxiliary side is
    screened by the caller with the metric diagonal.
    """

    family = EngineFamily.THREE_CENTER

    def __init__(
        self,
        aux_basis: BasisCartSoA,
        basis: BasisCartSoA,
        *,
        cutoff: float = 1e-12,
        screening: str = "SCHWARZ",
        pair_values: np.ndarray | None = None,
    ) -> None:
        super().__init__(basis, cutoff=cutoff, screening=screening, pair_values=pair_values)
        self.aux_basis = aux_basis
        self._aux_prims = _shell_prims(aux_basis)
        self._comp = comp_tables(max(basis.lmax, aux_basis.lmax))

    def compute_shell(self, P: int, M: int, N: int) -> int:
        """Evaluate `(P|MN)` into `buffer` (shape `(nP, nM, nN)`); returns the integral count."""

        a = self.aux_basis
        b = self.basis
        eP, cP = self._aux_prims[P]
        eM, cM = self._prims[M]
        eN, cN = self._prims[N]
        self._buffer = eri3c_tile(
            int(a.shell_l[P]), int(b.shell_l[M]), int(b.shell_l[N]),
            a.shell_cxyz[P], b.shell_cxyz[M], b.shell_cxyz[N],
            eP, cP, eM, cM, eN, cN,
            *self._comp,
        )
        return int(self._buffer.size)


__all__ = [
    "EngineFamily",
    "FourCenterERI",
    "SCREENING_TYPES",
    "ThreeCenterERI",
    "TwoBodyAOInt",
    "schwarz_table",
    "shell_block_absmax",
]
