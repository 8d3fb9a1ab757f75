from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ShellPairs:
    """Significant shell-pair list with A>=B, ordered by (A, B)."""

    sp_A: np.ndarray  # int32, shape (nSP,)
    sp_B: np.ndarray  # int32, shape (nSP,)
    sp_value: np.ndarray  # float64, shape (nSP,) = max |(ab|ab)|

    def __post_init__(self) -> None:
        for name, arr in (("sp_A", self.sp_A), ("sp_B", self.sp_B)):
            if arr.dtype != np.int32:
                raise TypeError(f"{name} must be int32")
        if self.sp_A.shape != self.sp_B.shape or self.sp_A.ndim != 1:
            raise ValueError("sp_A/sp_B must be 1D arrays with identical shape")
        if self.sp_value.shape != self.sp_A.shape:
            raise ValueError("sp_value must have shape (nSP,)")
        if np.any(self.sp_A < self.sp_B):
            raise ValueError("shell pairs must be canonical (A >= B)")

    def __len__(self) -> int:
        return int(self.sp_A.shape[0])

    def __iter__(self):
        for a, b in zip(self.sp_A.tolist(), self.sp_B.tolist()):
            yield int(a), int(b)

    def keys(self, n_shell: int) -> np.ndarray:
        """Canonical pair keys `A * n_shell + B`."""

        return self.sp_A.astype(np.int64) * int(n_shell) + self.sp_B.astype(np.int64)


def build_shell_pairs(pair_values: np.ndarray, *, cutoff: float, max_integral: float | None = None) -> ShellPairs:
    """Canonical shell pairs surviving the Schwarz test `(AB|AB) * max_integral >= cutoff^2`.

    Parameters
    ----------
    pair_values : np.ndarray
        Symmetric `(nShell, nShell)` table of `max |(ab|ab)|` per shell pair.
    cutoff : float
        Integral screening threshold. `cutoff <= 0` keeps every pair.
    max_integral : float, optional
        Largest pair value; computed from `pair_values` if omitted.
    """

    pair_values = np.asarray(pair_values, dtype=np.float64)
    if pair_values.ndim != 2 or pair_values.shape[0] != pair_values.shape[1]:
        raise ValueError("pair_values must be a square 2D array")
    n_shell = int(pair_values.shape[0])
    if max_integral is None:
        max_integral = float(np.max(pair_values)) if n_shell else 0.0

    A, B = np.tril_indices(n_shell)
    vals = pair_values[A, B]
    keep = vals * float(max_integral) >= float(cutoff) * float(cutoff)
    return ShellPairs(
        sp_A=np.asarray(A[keep], dtype=np.int32),
        sp_B=np.asarray(B[keep], dtype=np.int32),
        sp_value=np.asarray(vals[keep], dtype=np.float64),
    )


__all__ = ["ShellPairs", "build_shell_pairs"]
