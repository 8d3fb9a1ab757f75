from __future__ import annotations

"""Linear-scaling exact exchange (LinK, Ochsenfeld et al.).

The build works on atom pairs `(Patom >= Qatom)`. For every significant bra
shell pair `PQ` inside an atom pair, the significant ket pairs `RS` are
collected from two density-weighted mini lists (`ML_P` via `D(P, R)` and
`ML_Q` via `D(Q, R)`). Both lists walk ket and bra neighbour lists sorted by a
non-increasing bound and stop at the first entry that fails, so the sort keys
must be monotone with the test that ends each scan.

Each computed quartet is folded into four row blocks local to the atom pair:

  K1[p, r] += D[q, s] (pq|rs)      K2[p, s] += D[q, r] (pq|rs)
  K3[q, r] += D[p, s] (pq|rs)      K4[q, s] += D[p, r] (pq|rs)

with a factor 1/2 for each of `P == Q`, `R == S`, `PQ == RS`. The blocks are
doubled and written back only at the `(P or Q, S)` stripes recorded while the
mini lists were formed; the final symmetrization restores the transposed
contributions.
"""

from dataclasses import dataclass
import math
import sys
from typing import Sequence, TextIO

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.engine import EngineFamily, FourCenterERI

from .screening import shell_ceilings
from .workers import WorkerPool


@dataclass(frozen=True)
class LinKStats:
    """Work counts of one LinK build."""

    atom_pairs: int
    computed_quartets: int


def atom_shell_blocks(basis: BasisCartSoA) -> np.ndarray:
    """Shell offsets of the atoms that carry shells, shape `(natom + 1,)`.

    Uses `basis.shell_atom` when present, otherwise starts a new atom whenever
    the shell center changes.
    """

    n = int(basis.nshell)
    if n == 0:
        return np.zeros((1,), dtype=np.int64)
    if basis.shell_atom is not None:
        # atoms without shells give repeated offsets
        return np.unique(basis.atom_shell_ranges())
    c = np.asarray(basis.shell_cxyz, dtype=np.float64)
    brk = np.nonzero(np.any(np.diff(c, axis=0) != 0.0, axis=1))[0] + 1
    return np.concatenate([[0], brk, [n]]).astype(np.int64)


def print_atom_blocking(basis: BasisCartSoA, blocks: np.ndarray, file: TextIO | None = None) -> None:
    out = sys.stdout if file is None else file
    print("  ==> LinK: Atom Blocking <==\n", file=out)
    for atom in range(int(blocks.shape[0]) - 1):
        a0 = int(blocks[atom])
        a1 = int(blocks[atom + 1])
        print(f"  Atom: {atom:3d}, Atom Start: {a0:4d}, Atom End: {a1:4d}", file=out)
        for P in range(a0, a1):
            size = int(basis.shell_nfunc[P])
            off = int(basis.shell_ao_start[P])
            print(f"    Shell: {P:4d}, Size: {size:4d}, Offset: {off:4d}", file=out)
    print("", file=out)


def max_atom_functions(basis: BasisCartSoA, blocks: np.ndarray) -> int:
    """Largest number of basis functions on one atom; sizes the LinK scratch blocks."""

    nfunc = np.asarray(basis.shell_nfunc, dtype=np.int64)
    out = 0
    for atom in range(int(blocks.shape[0]) - 1):
        out = max(out, int(np.sum(nfunc[int(blocks[atom]) : int(blocks[atom + 1])])))
    return out


def significant_atom_pairs(eng: FourCenterERI, blocks: np.ndarray) -> list[tuple[int, int]]:
    """Atom pairs `Patom >= Qatom` containing at least one significant shell pair."""

    natom = int(blocks.shape[0]) - 1
    out: list[tuple[int, int]] = []
    for Pa in range(natom):
        for Qa in range(Pa + 1):
            sub = eng.pair_significance[int(blocks[Pa]) : int(blocks[Pa + 1]), int(blocks[Qa]) : int(blocks[Qa + 1])]
            if np.any(sub):
                out.append((Pa, Qa))
    return out


def _sorted_neighbours(values: np.ndarray, threshold: float) -> list[np.ndarray]:
    """Per row, the column indices with `value >= threshold`, by non-increasing value."""

    out = []
    for row in values:
        idx = np.nonzero(row >= threshold)[0]
        order = np.argsort(-row[idx], kind="stable")
        out.append(idx[order].astype(np.int64))
    return out


def significant_bras(eng: FourCenterERI, cutoff: float) -> list[np.ndarray]:
    """`Q` for each `P`, kept when `sqrt((PQ|PQ) * max_integral) >= cutoff`."""

    return _sorted_neighbours(np.sqrt(eng.pair_values * eng.max_integral()), float(cutoff))


def significant_kets(ceilings: np.ndarray, Dmax: np.ndarray, link_cutoff: float) -> list[np.ndarray]:
    """`R` for each `P`, kept when `ceil[P] ceil[R] Dmax[P, R] >= link_cutoff`."""

    return _sorted_neighbours(ceilings[:, None] * ceilings[None, :] * Dmax, float(link_cutoff))


def _mini_list(eng, P, Q, X, kets, bras, Dmax, link_cutoff, nshell, ML, stripe):
    """Walk the `X`-chain (`X` is `P` or `Q`) and collect canonical `RS` keys."""

    pq_key = P * nshell + Q
    for R in kets[X]:
        R = int(R)
        dxr = Dmax[X, R]
        is_significant = False
        for S in bras[R]:
            S = int(S)
            if dxr * math.sqrt(eng.shell_ceiling2(P, Q, R, S)) >= link_cutoff:
                is_significant = True
                RS = R * nshell + S if R >= S else S * nshell + R
                if RS > pq_key:
                    continue
                ML.add(RS)
                stripe.add(S)
            else:
                break
        if not is_significant:
            break


def _atom_pair_body(pool, D, blocks, atom_pairs, bras, kets, Dmax, link_cutoff, scratch):
    def body(rank: int, start: int, stop: int):
        eng = pool.engine(EngineFamily.FOUR_CENTER, rank)
        basis = eng.basis
        nshell = int(basis.nshell)
        nbf = int(basis.nao)
        njk = int(D.shape[0])
        ao = basis.shell_ao_start
        records = []
        computed = 0
        for ipair in range(start, stop):
            Pa, Qa = atom_pairs[ipair]
            Pstart, Pstop = int(blocks[Pa]), int(blocks[Pa + 1])
            Qstart, Qstop = int(blocks[Qa]), int(blocks[Qa + 1])
            Pbf0 = int(ao[Pstart])
            Qbf0 = int(ao[Qstart])
            nPbasis = int(basis.shell_slice(Pstop - 1).stop) - Pbf0
            nQbasis = int(basis.shell_slice(Qstop - 1).stop) - Qbf0

            K1, K2 = scratch[rank][0, :, :nPbasis], scratch[rank][1, :, :nPbasis]
            K3, K4 = scratch[rank][2, :, :nQbasis], scratch[rank][3, :, :nQbasis]
            for KX in (K1, K2, K3, K4):
                KX.fill(0.0)
            P_stripe = [set() for _ in range(Pstop - Pstart)]
            Q_stripe = [set() for _ in range(Qstop - Qstart)]

            touched = False
            for P in range(Pstart, Pstop):
                for Q in range(Qstart, Qstop):
                    if Q > P:
                        continue
                    if not eng.shell_pair_significant(P, Q):
                        continue
                    dP = P - Pstart
                    dQ = Q - Qstart

                    ML: set[int] = set()
                    _mini_list(eng, P, Q, P, kets, bras, Dmax, link_cutoff, nshell, ML, Q_stripe[dQ])
                    _mini_list(eng, P, Q, Q, kets, bras, Dmax, link_cutoff, nshell, ML, P_stripe[dP])

                    sP = basis.shell_slice(P)
                    sQ = basis.shell_slice(Q)
                    lP = slice(sP.start - Pbf0, sP.stop - Pbf0)
                    lQ = slice(sQ.start - Qbf0, sQ.stop - Qbf0)
                    for RS in sorted(ML):
                        R = RS // nshell
                        S = RS % nshell
                        if not eng.shell_pair_significant(R, S):
                            continue
                        if not eng.shell_significant(P, Q, R, S):
                            continue
                        if eng.compute_shell(P, Q, R, S) == 0:
                            continue
                        computed += 1
                        buf = eng.buffer

                        pf = 1.0
                        if P == Q:
                            pf *= 0.5
                        if R == S:
                            pf *= 0.5
                        if P == R and Q == S:
                            pf *= 0.5
                        sR = basis.shell_slice(R)
                        sS = basis.shell_slice(S)
                        K1[:, lP, sR] += pf * np.einsum("pqrs,kqs->kpr", buf, D[:, sQ, sS])
                        K2[:, lP, sS] += pf * np.einsum("pqrs,kqr->kps", buf, D[:, sQ, sR])
                        K3[:, lQ, sR] += pf * np.einsum("pqrs,kps->kqr", buf, D[:, sP, sS])
                        K4[:, lQ, sS] += pf * np.einsum("pqrs,kpr->kqs", buf, D[:, sP, sR])
                        touched = True

            if not touched:
                continue

            KP = 2.0 * (K1 + K2)
            KQ = 2.0 * (K3 + K4)
            for Xstart, Xstop, X0, KX, stripes in (
                (Pstart, Pstop, Pbf0, KP, P_stripe),
                (Qstart, Qstop, Qbf0, KQ, Q_stripe),
            ):
                for X in range(Xstart, Xstop):
                    sX = basis.shell_slice(X)
                    lX = slice(sX.start - X0, sX.stop - X0)
                    for S in sorted(stripes[X - Xstart]):
                        sS = basis.shell_slice(S)
                        records.append((sX, sS, KX[:, lX, sS].copy()))
        return records, computed

    return body


def build_link(
    D_list: Sequence[np.ndarray],
    *,
    pool: WorkerPool,
    cutoff: float,
    link_cutoff: float,
    lr_symmetric: bool = True,
    debug: int = 0,
    file: TextIO | None = None,
) -> tuple[list[np.ndarray], LinKStats]:
    """Exchange matrices `K_pr = sum_qs (pq|rs) D_qs` for every channel.

    The four-center engines of `pool` must have received the densities via
    `update_density` before the call; their shell-pair maxima drive the ket
    lists and the mini-list tests.
    """

    if not lr_symmetric:
        raise RuntimeError("Non-symmetric K matrix builds are currently not supported in the LinK algorithm.")

    eng0 = pool.engine(EngineFamily.FOUR_CENTER, 0)
    basis: BasisCartSoA = eng0.basis
    nbf = int(basis.nao)
    njk = len(D_list)
    D = np.stack([np.asarray(Di, dtype=np.float64) for Di in D_list], axis=0) if njk else np.zeros((0, nbf, nbf))
    if D.shape[1:] != (nbf, nbf):
        raise ValueError(f"density matrices must have shape ({nbf}, {nbf})")
    if eng0.max_dens_shell_pair is None:
        raise RuntimeError("LinK requires update_density() on the four-center engines")

    blocks = atom_shell_blocks(basis)
    if debug:
        print_atom_blocking(basis, blocks, file=file)

    atom_pairs = significant_atom_pairs(eng0, blocks)
    bras = significant_bras(eng0, cutoff)
    ceilings = shell_ceilings(eng0.pair_values)
    Dmax = np.max(eng0.max_dens_shell_pair, axis=0)
    kets = significant_kets(ceilings, Dmax, link_cutoff)

    # K1..K4 per worker
    max_nbf = max_atom_functions(basis, blocks)
    scratch = [np.zeros((4, njk, max_nbf, nbf), dtype=np.float64) for _ in range(pool.nthreads)]

    results = pool.parallel_for(
        len(atom_pairs),
        _atom_pair_body(pool, D, blocks, atom_pairs, bras, kets, Dmax, float(link_cutoff), scratch),
        schedule="dynamic",
    )

    K = np.zeros((njk, nbf, nbf), dtype=np.float64)
    computed = 0
    for records, count in results:
        computed += int(count)
        for rows, cols, blk in records:
            K[:, rows, cols] += blk
    K_list = [0.5 * (Ki + Ki.T) for Ki in K]
    return K_list, LinKStats(atom_pairs=len(atom_pairs), computed_quartets=computed)


__all__ = [
    "LinKStats",
    "atom_shell_blocks",
    "build_link",
    "max_atom_functions",
    "print_atom_blocking",
    "significant_atom_pairs",
    "significant_bras",
    "significant_kets",
]
