from __future__ import annotations

"""Incremental Fock build controller.

Incremental iterations contract the density *difference* against the
integrals, so the caller receives J/K deltas and adds them onto the J/K it
kept from the previous iteration. Every `full_fock_every`-th counted iteration
is a full rebuild to stop the accumulated round-off from drifting.
"""

from typing import Sequence

import numpy as np


def density_rms_change(D_list: Sequence[np.ndarray], D_prev: Sequence[np.ndarray] | None) -> float:
    """Largest RMS element change over channels; `inf` without a comparable previous density."""

    if D_prev is None or len(D_prev) != len(D_list):
        return float("inf")
    out = 0.0
    for D, Dp in zip(D_list, D_prev):
        diff = np.asarray(D, dtype=np.float64) - np.asarray(Dp, dtype=np.float64)
        out = max(out, float(np.sqrt(np.mean(diff * diff))) if diff.size else 0.0)
    return out


class IncrementalFock:
    """Decides per build whether J/K are rebuilt fully or as deltas.

    Parameters
    ----------
    enabled : bool
        Master switch (`incfock`).
    full_fock_every : int
        Full rebuild cadence (`incfock_full_fock_every`), must be > 0.
    convergence : float
        Density-change floor (`incfock_convergence`); smaller changes force a
        full build.
    """

    def __init__(self, *, enabled: bool, full_fock_every: int, convergence: float) -> None:
        full_fock_every = int(full_fock_every)
        if full_fock_every <= 0:
            raise ValueError("Invalid input for option INCFOCK_FULL_FOCK_EVERY (<= 0)")
        self.enabled = bool(enabled)
        self.full_fock_every = full_fock_every
        self.convergence = float(convergence)
        self.count = 0
        self.initial = True
        self._D_prev: list[np.ndarray] | None = None
        self.last_incremental = False

    @property
    def previous_density(self) -> list[np.ndarray] | None:
        return self._D_prev

    def reset(self) -> None:
        """Drop the cached density; the next build is full."""

        self._D_prev = None
        self.initial = True
        self.count = 0
        self.last_incremental = False

    def setup(
        self,
        D_list: Sequence[np.ndarray],
        density_change: float | None = None,
    ) -> tuple[list[np.ndarray], bool]:
        """Reference densities for this build and whether the build is incremental."""

        D_list = [np.asarray(D, dtype=np.float64) for D in D_list]
        if not self.enabled:
            self.last_incremental = False
            return D_list, False

        if density_change is None:
            density_change = density_rms_change(D_list, self._D_prev)
        dnorm = float(density_change)
        reset = self.full_fock_every

        do_inc = (dnorm >= self.convergence) and not self.initial and (self.count % reset != reset - 1)
        if not self.initial and dnorm >= self.convergence:
            self.count += 1

        if do_inc and (self._D_prev is None or len(self._D_prev) != len(D_list)):
            self.initial = True
            do_inc = False

        self.last_incremental = bool(do_inc)
        if not do_inc:
            return D_list, False
        return [D - Dp for D, Dp in zip(D_list, self._D_prev)], True

    def finish(self, D_list: Sequence[np.ndarray]) -> None:
        """Cache a copy of the current densities after a build."""

        if self.enabled:
            self._D_prev = [np.array(D, dtype=np.float64, copy=True) for D in D_list]
        self.initial = False


__all__ = ["IncrementalFock", "density_rms_change"]
