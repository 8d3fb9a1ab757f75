from __future__ import annotations

"""Dense reference Coulomb/exchange contractions.

These contract fully materialized ERI tensors (see `compjk.eri.dense`) and are
only meant for small systems and for validating the screened builders.
"""

import numpy as np
import scipy.linalg


def _symmetrize(A: np.ndarray) -> np.ndarray:
    return 0.5 * (A + A.T)


def _check_density(D, nao: int) -> np.ndarray:
    D = np.asarray(D, dtype=np.float64)
    if D.ndim != 2 or D.shape != (nao, nao):
        raise ValueError(f"D must have shape ({nao}, {nao}), got {D.shape}")
    return D


def dense_J(eri: np.ndarray, D) -> np.ndarray:
    """Coulomb matrix `J_mn = sum_ls (mn|ls) D_ls` from a `(nao,)*4` tensor."""

    nao = int(eri.shape[0])
    D = _check_density(D, nao)
    J = np.einsum("mnls,ls->mn", eri, D, optimize=True)
    return _symmetrize(J)


def dense_K(eri: np.ndarray, D) -> np.ndarray:
    """Exchange matrix `K_mn = sum_ls (ml|ns) D_ls` from a `(nao,)*4` tensor."""

    nao = int(eri.shape[0])
    D = _check_density(D, nao)
    K = np.einsum("mlns,ls->mn", eri, D, optimize=True)
    return _symmetrize(K)


def dense_JK(eri: np.ndarray, D, *, want_J: bool = True, want_K: bool = True):
    """`(J, K)` from dense ERIs; an entry is `None` when not requested."""

    J = dense_J(eri, D) if bool(want_J) else None
    K = dense_K(eri, D) if bool(want_K) else None
    return J, K


def df_J(eri3: np.ndarray, metric: np.ndarray, D) -> np.ndarray:
    """Density-fitted Coulomb matrix `J = (mn|P) M^-1 (P|ls) D_ls`.

    `eri3` is the `(naux, nao, nao)` tensor `(P|mn)` and `metric` the
    auxiliary Coulomb metric `(P|Q)`.
    """

    nao = int(eri3.shape[1])
    D = _check_density(D, nao)
    G = np.einsum("pls,ls->p", eri3, D, optimize=True)
    H = scipy.linalg.solve(np.asarray(metric, dtype=np.float64), G, assume_a="sym")
    J = np.einsum("pmn,p->mn", eri3, H, optimize=True)
    return _symmetrize(J)


__all__ = ["dense_J", "dense_JK", "dense_K", "df_J"]
