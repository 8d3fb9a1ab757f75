from __future__ import annotations

"""Atom-centered molecular quadrature grids split into spatial blocks.

Each atom carries a Treutler-Ahlrichs radial grid times Lebedev spheres; the
atomic grids are glued together with Becke partition weights. The points are
then blocked (see `octree_blocks`) and every block records which basis shells
can be non-negligible on it, so that basis values and densities only need to
be formed over the block's local functions.
"""

from dataclasses import dataclass, field

import numpy as np

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.cart import comp_tables
from compjk.frontend.molecule import Molecule
from compjk.frontend.periodic_table import bragg_radius_bohr, treutler_xi

from ._ao_values_numba import eval_shells_at_points
from .angular import angular_counts, lebedev_grid
from .becke import becke_weights
from .blocks import BLOCK_MAX_POINTS, BLOCK_MAX_RADIUS, BLOCK_MIN_POINTS, octree_blocks
from .extents import shell_extents
from .radial import treutler_ahlrichs

WEIGHTS_TOLERANCE = 1e-15


@dataclass(frozen=True)
class GridBlock:
    """One spatial block of grid points plus its local basis maps."""

    index: int
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray
    w: np.ndarray
    center: np.ndarray  # (3,)
    radius: float
    shells_local_to_global: np.ndarray  # int64, (nlocal_shells,)
    functions_local_to_global: np.ndarray  # int64, (nlocal,)
    shell_func_offsets: np.ndarray  # int64, (nlocal_shells + 1,) local function offsets

    @property
    def npoints(self) -> int:
        return int(self.w.shape[0])

    @property
    def nlocal(self) -> int:
        return int(self.functions_local_to_global.shape[0])

    @property
    def points(self) -> np.ndarray:
        return np.stack([self.x, self.y, self.z], axis=1)


@dataclass
class MolecularGrid:
    """Blocked quadrature grid bound to a basis.

    Attributes
    ----------
    blocks : list[GridBlock]
    extents : np.ndarray
        Per-shell extent radii (Bohr) at the grid's basis tolerance.
    """

    basis: BasisCartSoA
    blocks: list[GridBlock]
    extents: np.ndarray
    basis_tolerance: float
    options: dict = field(default_factory=dict)

    @property
    def npoints(self) -> int:
        return int(sum(b.npoints for b in self.blocks))

    @property
    def max_points(self) -> int:
        return int(max((b.npoints for b in self.blocks), default=0))

    @property
    def max_functions(self) -> int:
        return int(max((b.nlocal for b in self.blocks), default=0))

    @property
    def weights(self) -> np.ndarray:
        if not self.blocks:
            return np.zeros((0,), dtype=np.float64)
        return np.concatenate([b.w for b in self.blocks])

    @property
    def points(self) -> np.ndarray:
        if not self.blocks:
            return np.zeros((0, 3), dtype=np.float64)
        return np.concatenate([b.points for b in self.blocks], axis=0)

    def has_negative_weights(self) -> bool:
        return bool(any(np.any(b.w < 0.0) for b in self.blocks))

    def basis_values(self, block: GridBlock) -> np.ndarray:
        """Local basis-function values on the block, shape `(npoints, nlocal)`."""

        b = self.basis
        comp = comp_tables(b.lmax)
        return eval_shells_at_points(
            np.ascontiguousarray(block.points),
            block.shells_local_to_global,
            b.shell_cxyz,
            b.shell_prim_start,
            b.shell_nprim,
            b.shell_l,
            b.prim_exp,
            b.prim_coef,
            *comp,
            block.nlocal,
        )

    # --- construction -------------------------------------------------------

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        weights: np.ndarray,
        basis: BasisCartSoA,
        *,
        basis_tolerance: float = 1e-12,
        min_points: int = BLOCK_MIN_POINTS,
        max_points: int = BLOCK_MAX_POINTS,
        max_radius: float = BLOCK_MAX_RADIUS,
    ) -> "MolecularGrid":
        """Block an arbitrary weighted point set."""

        points = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
        weights = np.ascontiguousarray(weights, dtype=np.float64).ravel()
        if weights.shape[0] != points.shape[0]:
            raise ValueError("points and weights must have the same length")
        extents = shell_extents(basis, basis_tolerance)
        nfunc = basis.shell_nfunc.astype(np.int64)
        blocks: list[GridBlock] = []
        for idx in octree_blocks(points, min_points=min_points, max_points=max_points, max_radius=max_radius):
            sub = points[idx]
            center = 0.5 * (sub.min(axis=0) + sub.max(axis=0))
            radius = float(np.sqrt(np.max(np.sum((sub - center) ** 2, axis=1))))
            d = np.sqrt(np.sum((basis.shell_cxyz - center) ** 2, axis=1))
            shells = np.nonzero(d <= extents + radius)[0].astype(np.int64)
            offsets = np.zeros((shells.size + 1,), dtype=np.int64)
            offsets[1:] = np.cumsum(nfunc[shells])
            funcs = (
                np.concatenate([np.arange(int(basis.shell_ao_start[s]), int(basis.shell_ao_start[s]) + int(nfunc[s])) for s in shells])
                if shells.size
                else np.zeros((0,), dtype=np.int64)
            ).astype(np.int64)
            blocks.append(
                GridBlock(
                    index=len(blocks),
                    x=np.ascontiguousarray(sub[:, 0]),
                    y=np.ascontiguousarray(sub[:, 1]),
                    z=np.ascontiguousarray(sub[:, 2]),
                    w=np.ascontiguousarray(weights[idx]),
                    center=center,
                    radius=radius,
                    shells_local_to_global=shells,
                    functions_local_to_global=funcs,
                    shell_func_offsets=offsets,
                )
            )
        return cls(basis=basis, blocks=blocks, extents=extents, basis_tolerance=float(basis_tolerance))

    @classmethod
    def build(
        cls,
        mol: Molecule,
        basis: BasisCartSoA,
        *,
        radial_points: int,
        spherical_points: int,
        pruning_scheme: str = "NONE",
        basis_tolerance: float = 1e-12,
        use_treutler_xi: bool = True,
        min_points: int = BLOCK_MIN_POINTS,
        max_points: int = BLOCK_MAX_POINTS,
        max_radius: float = BLOCK_MAX_RADIUS,
    ) -> "MolecularGrid":
        """Treutler radial x Lebedev angular grid with Becke/Treutler partitioning."""

        radial_points = int(radial_points)
        spherical_points = int(spherical_points)
        if radial_points <= 0:
            raise ValueError("radial_points must be > 0")
        lebedev_grid(spherical_points)
        counts = angular_counts(radial_points, spherical_points, pruning_scheme)

        coords = mol.coords_bohr
        radii = np.asarray([bragg_radius_bohr(sym) for sym in mol.elements], dtype=np.float64)
        pts_all: list[np.ndarray] = []
        wts_all: list[np.ndarray] = []
        owner_all: list[np.ndarray] = []
        for ia, sym in enumerate(mol.elements):
            xi = treutler_xi(sym) if use_treutler_xi else 1.0
            r, wr = treutler_ahlrichs(radial_points, xi)
            for ir in range(radial_points):
                ang_pts, ang_w = lebedev_grid(int(counts[ir]))
                pts_all.append(coords[ia] + r[ir] * ang_pts)
                wts_all.append(wr[ir] * ang_w)
                owner_all.append(np.full((ang_w.shape[0],), ia, dtype=np.int64))

        points = np.concatenate(pts_all, axis=0)
        weights = np.concatenate(wts_all)
        owner = np.concatenate(owner_all)
        weights = weights * becke_weights(points, owner, coords, radii)
        keep = np.abs(weights) >= WEIGHTS_TOLERANCE
        grid = cls.from_points(
            points[keep],
            weights[keep],
            basis,
            basis_tolerance=basis_tolerance,
            min_points=min_points,
            max_points=max_points,
            max_radius=max_radius,
        )
        grid.options = {
            "radial_points": radial_points,
            "spherical_points": spherical_points,
            "pruning_scheme": str(pruning_scheme).upper(),
            "basis_tolerance": float(basis_tolerance),
        }
        return grid


__all__ = ["GridBlock", "MolecularGrid", "WEIGHTS_TOLERANCE"]
