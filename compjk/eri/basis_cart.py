from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .cart import ncart


@dataclass(frozen=True)
class BasisCartSoA:
    """Structure-of-arrays Cartesian Gaussian basis (general l, one contraction per shell).

    Parameters
    ----------
    shell_cxyz : np.ndarray
        Shell centers in Bohr. Shape: `(nShell, 3)`.
    shell_prim_start : np.ndarray
        Offset of each shell's first primitive in `prim_exp`/`prim_coef`. Shape: `(nShell,)`.
    shell_nprim : np.ndarray
        Number of primitives per shell. Shape: `(nShell,)`.
    shell_l : np.ndarray
        Angular momentum per shell. Shape: `(nShell,)`.
    shell_ao_start : np.ndarray
        Index of the first Cartesian AO of each shell. Shape: `(nShell,)`.
    prim_exp : np.ndarray
        Primitive exponents of the unnormalized Gaussians `exp(-a r^2)`. Shape: `(nPrim,)`.
    prim_coef : np.ndarray
        Contraction coefficients with the primitive normalization folded in. Shape: `(nPrim,)`.
    shell_atom : np.ndarray | None, optional
        Atom index of each shell. Shells must be grouped atom by atom (non-decreasing).

    Notes
    -----
    General contractions are expanded into one shell per contraction column by
    `compjk.frontend.basis_packer.pack_cart_basis`.
    """

    shell_cxyz: np.ndarray
    shell_prim_start: np.ndarray
    shell_nprim: np.ndarray
    shell_l: np.ndarray
    shell_ao_start: np.ndarray
    prim_exp: np.ndarray
    prim_coef: np.ndarray
    shell_atom: np.ndarray | None = None

    def __post_init__(self) -> None:
        if self.shell_cxyz.dtype != np.float64:
            raise TypeError("shell_cxyz must be float64")
        if self.shell_cxyz.ndim != 2 or self.shell_cxyz.shape[1] != 3:
            raise ValueError("shell_cxyz must have shape (nShell, 3)")
        n_shell = int(self.shell_cxyz.shape[0])
        arrays = [
            ("shell_prim_start", self.shell_prim_start),
            ("shell_nprim", self.shell_nprim),
            ("shell_l", self.shell_l),
            ("shell_ao_start", self.shell_ao_start),
        ]
        if self.shell_atom is not None:
            arrays.append(("shell_atom", self.shell_atom))
        for name, arr in arrays:
            if arr.dtype != np.int32:
                raise TypeError(f"{name} must be int32")
            if arr.shape != (n_shell,):
                raise ValueError(f"{name} must have shape (nShell,)")
        if self.prim_exp.dtype != np.float64 or self.prim_coef.dtype != np.float64:
            raise TypeError("prim_exp/prim_coef must be float64")
        if self.prim_exp.shape != self.prim_coef.shape or self.prim_exp.ndim != 1:
            raise ValueError("prim_exp and prim_coef must be 1D arrays with identical shape")
        if self.shell_atom is not None and n_shell > 1 and np.any(np.diff(self.shell_atom) < 0):
            raise ValueError("shells must be grouped by atom (shell_atom non-decreasing)")

    @property
    def nshell(self) -> int:
        return int(self.shell_l.shape[0])

    @property
    def nao(self) -> int:
        """Total number of Cartesian AOs."""

        if self.nshell == 0:
            return 0
        last = int(np.argmax(self.shell_ao_start))
        return int(self.shell_ao_start[last]) + ncart(int(self.shell_l[last]))

    @property
    def lmax(self) -> int:
        return int(np.max(self.shell_l)) if self.nshell else 0

    @property
    def shell_nfunc(self) -> np.ndarray:
        return ((self.shell_l + 1) * (self.shell_l + 2) // 2).astype(np.int32)

    def shell_slice(self, sh: int) -> slice:
        a0 = int(self.shell_ao_start[int(sh)])
        return slice(a0, a0 + ncart(int(self.shell_l[int(sh)])))

    def atom_shell_ranges(self, natm: int | None = None) -> np.ndarray:
        """Shell offsets per atom, shape `(natm + 1,)`: atom `a` owns shells `[r[a], r[a+1])`."""

        if self.shell_atom is None:
            raise ValueError("basis has no shell_atom map")
        if natm is None:
            natm = int(self.shell_atom[-1]) + 1 if self.nshell else 0
        counts = np.bincount(self.shell_atom, minlength=natm)
        out = np.zeros((natm + 1,), dtype=np.int64)
        out[1:] = np.cumsum(counts)
        return out


__all__ = ["BasisCartSoA"]
