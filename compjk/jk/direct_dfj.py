from __future__ import annotations

"""Integral-direct density-fitted Coulomb build (DFDIRJ).

Weigend's three-step scheme over screened shell triplets `(P|MN)`:

  G_P  = sum_mn (P|mn) D_mn                  forward contraction
  H    = M^-1 G                              metric solve (LU)
  J_mn = sum_P  (P|mn) H_P                   back contraction

Triplets are enumerated as the flat index `MNP = P * nPair + MN` over the
significant canonical orbital pairs of the three-center engine. A triplet is
skipped when `Xshell^2 * (P|P)_max * (MN|MN) < tol^2`, with `Xshell` the
density shell maximum in the forward pass and the fitted-coefficient shell
maximum in the back pass.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.linalg import lu_solve

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.engine import EngineFamily

from .screening import density_shell_maxima, vector_shell_maxima
from .workers import WorkerPool


@dataclass(frozen=True)
class DirectDFJStats:
    """Triplet counts of one DFDIRJ build."""

    total_triplets: int
    forward_triplets: int
    backward_triplets: int

    @property
    def computed_triplets(self) -> int:
        return int(self.forward_triplets + self.backward_triplets)


def _forward_body(pool, D, Dshell, metric_diag, tol2, G_thread):
    def body(rank: int, start: int, stop: int) -> int:
        eng = pool.engine(EngineFamily.THREE_CENTER, rank)
        pairs = eng.shell_pairs()
        npair = len(pairs)
        aux = eng.aux_basis
        basis = eng.basis
        G = G_thread[rank]
        computed = 0
        for MNP in range(start, stop):
            MN = MNP % npair
            P = MNP // npair
            M = int(pairs.sp_A[MN])
            N = int(pairs.sp_B[MN])
            if Dshell[M, N] * Dshell[M, N] * metric_diag[P] * eng.shell_pair_value(M, N) < tol2:
                continue
            computed += 1
            eng.compute_shell(P, M, N)
            buf = eng.buffer
            sp = aux.shell_slice(P)
            sm = basis.shell_slice(M)
            sn = basis.shell_slice(N)
            G[:, sp] += np.einsum("pmn,kmn->kp", buf, D[:, sm, sn])
            if M != N:
                G[:, sp] += np.einsum("pmn,knm->kp", buf, D[:, sn, sm])
        return computed

    return body


def _backward_body(pool, H, Hshell, metric_diag, tol2, J_thread):
    def body(rank: int, start: int, stop: int) -> int:
        eng = pool.engine(EngineFamily.THREE_CENTER, rank)
        pairs = eng.shell_pairs()
        npair = len(pairs)
        aux = eng.aux_basis
        basis = eng.basis
        J = J_thread[rank]
        computed = 0
        for MNP in range(start, stop):
            MN = MNP % npair
            P = MNP // npair
            M = int(pairs.sp_A[MN])
            N = int(pairs.sp_B[MN])
            if Hshell[P] * Hshell[P] * metric_diag[P] * eng.shell_pair_value(M, N) < tol2:
                continue
            computed += 1
            eng.compute_shell(P, M, N)
            buf = eng.buffer
            sp = aux.shell_slice(P)
            sm = basis.shell_slice(M)
            sn = basis.shell_slice(N)
            blk = np.einsum("pmn,kp->kmn", buf, H[:, sp])
            J[:, sm, sn] += blk
            if M != N:
                J[:, sn, sm] += blk.transpose(0, 2, 1)
        return computed

    return body


def build_direct_dfj(
    D_list: Sequence[np.ndarray],
    *,
    pool: WorkerPool,
    metric_lu: tuple[np.ndarray, np.ndarray],
    metric_diag: np.ndarray,
    tolerance: float,
    chunk: int = 1,
) -> tuple[list[np.ndarray], DirectDFJStats]:
    """Coulomb matrices for every density channel.

    Parameters
    ----------
    D_list : sequence of (nbf, nbf) arrays
        Reference densities.
    pool : WorkerPool
        Must hold `EngineFamily.THREE_CENTER` engines.
    metric_lu : tuple
        `scipy.linalg.lu_factor` of the auxiliary Coulomb metric.
    metric_diag : np.ndarray
        Per auxiliary shell maxima of the metric diagonal.
    tolerance : float
        Integral screening threshold (`ints_tolerance`).
    """

    eng0 = pool.engine(EngineFamily.THREE_CENTER, 0)
    basis: BasisCartSoA = eng0.basis
    aux: BasisCartSoA = eng0.aux_basis
    nbf = int(basis.nao)
    naux = int(aux.nao)
    njk = len(D_list)
    D = np.stack([np.asarray(Di, dtype=np.float64) for Di in D_list], axis=0) if njk else np.zeros((0, nbf, nbf))
    if D.shape[1:] != (nbf, nbf):
        raise ValueError(f"density matrices must have shape ({nbf}, {nbf})")

    npair = len(eng0.shell_pairs())
    ntriplet = int(aux.nshell) * npair
    tol2 = float(tolerance) ** 2
    metric_diag = np.asarray(metric_diag, dtype=np.float64)

    Dshell = density_shell_maxima(list(D), basis)
    G_thread = [np.zeros((njk, naux), dtype=np.float64) for _ in range(pool.nthreads)]
    counts1 = pool.parallel_for(
        ntriplet, _forward_body(pool, D, Dshell, metric_diag, tol2, G_thread), schedule="guided", chunk=chunk
    )

    G = np.sum(G_thread, axis=0)
    H = np.ascontiguousarray(lu_solve(metric_lu, G.T).T) if njk else np.zeros((0, naux))
    Hshell = vector_shell_maxima(list(H), aux)

    J_thread = [np.zeros((njk, nbf, nbf), dtype=np.float64) for _ in range(pool.nthreads)]
    counts2 = pool.parallel_for(
        ntriplet, _backward_body(pool, H, Hshell, metric_diag, tol2, J_thread), schedule="guided", chunk=chunk
    )

    J = np.sum(J_thread, axis=0)
    J_list = [0.5 * (Ji + Ji.T) for Ji in J]
    stats = DirectDFJStats(
        total_triplets=ntriplet,
        forward_triplets=int(sum(counts1)),
        backward_triplets=int(sum(counts2)),
    )
    return J_list, stats


__all__ = ["DirectDFJStats", "build_direct_dfj"]
