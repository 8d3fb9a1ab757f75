"""Composite (mix-and-match) Coulomb and exchange matrix builders."""

from __future__ import annotations

from .composite import CompositeJK, JKResult
from .cosx import COSXStats, build_cosx, compute_numeric_overlap, overlap_fitting_metric
from .dense_jk import dense_J, dense_JK, dense_K, df_J
from .direct_dfj import DirectDFJStats, build_direct_dfj
from .incfock import IncrementalFock, density_rms_change
from .link import LinKStats, build_link
from .options import J_TYPES, K_TYPES, CompositeJKOptions, split_jk_type
from .screening import compute_esp_bound, shell_extent_map
from .workers import WorkerPool, default_num_threads

__all__ = [
    "COSXStats",
    "CompositeJK",
    "CompositeJKOptions",
    "DirectDFJStats",
    "IncrementalFock",
    "JKResult",
    "J_TYPES",
    "K_TYPES",
    "LinKStats",
    "WorkerPool",
    "build_cosx",
    "build_direct_dfj",
    "build_link",
    "compute_esp_bound",
    "compute_numeric_overlap",
    "default_num_threads",
    "dense_J",
    "dense_JK",
    "dense_K",
    "density_rms_change",
    "df_J",
    "overlap_fitting_metric",
    "shell_extent_map",
    "split_jk_type",
]
