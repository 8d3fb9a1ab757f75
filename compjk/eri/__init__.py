"""Cartesian Gaussian basis containers and two-electron integral engines.

The engines here are CPU/numba only. `FourCenterERI` and `ThreeCenterERI`
evaluate one shell quartet/triplet at a time and carry the Schwarz and
density screening state used by the JK builders.
"""

from __future__ import annotations

from .basis_cart import BasisCartSoA
from .cart import cartesian_components, comp_tables, ncart
from .dense import build_coulomb_metric, build_eri3c_dense, build_eri4c_dense
from .engine import (
    SCREENING_TYPES,
    EngineFamily,
    FourCenterERI,
    ThreeCenterERI,
    TwoBodyAOInt,
    schwarz_table,
    shell_block_absmax,
)
from .shell_pairs import ShellPairs, build_shell_pairs

__all__ = [
    "BasisCartSoA",
    "EngineFamily",
    "FourCenterERI",
    "SCREENING_TYPES",
    "ShellPairs",
    "ThreeCenterERI",
    "TwoBodyAOInt",
    "build_coulomb_metric",
    "build_eri3c_dense",
    "build_eri4c_dense",
    "build_shell_pairs",
    "cartesian_components",
    "comp_tables",
    "ncart",
    "schwarz_table",
    "shell_block_absmax",
]
