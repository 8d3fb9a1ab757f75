"""Molecular quadrature grids for semi-numerical exchange."""

from __future__ import annotations

from .angular import DEG2ORD, PRUNING_SCHEMES, angular_counts, lebedev_grid
from .becke import becke_weights
from .blocks import octree_blocks
from .extents import shell_extents
from .molecular_grid import GridBlock, MolecularGrid
from .radial import treutler_ahlrichs

__all__ = [
    "DEG2ORD",
    "GridBlock",
    "MolecularGrid",
    "PRUNING_SCHEMES",
    "angular_counts",
    "becke_weights",
    "lebedev_grid",
    "octree_blocks",
    "shell_extents",
    "treutler_ahlrichs",
]
