from __future__ import annotations

"""Mix-and-match J/K builder.

`CompositeJK` pairs one Coulomb algorithm (`DFDIRJ`) with one exchange
algorithm (`LINK`, `COSX` or none), chosen by the `scf_type` tag
`"<J>+<K>"`. Construction does all work that depends only on the geometry
and basis (engines, fitting metric, COSX grids and overlap metrics);
`compute()` is called once per SCF iteration with the current densities.
"""

from dataclasses import dataclass
import sys
import time
from typing import Any, Mapping, Sequence, TextIO
import warnings

import numpy as np
from scipy.linalg import lu_factor

from compjk.eri.basis_cart import BasisCartSoA
from compjk.eri.dense import build_coulomb_metric
from compjk.eri.engine import EngineFamily, FourCenterERI, ThreeCenterERI, schwarz_table
from compjk.frontend.molecule import Molecule
from compjk.grid.molecular_grid import MolecularGrid
from compjk.integrals.int1e_cart import ESPIntegrals, build_S_cart

from .cosx import build_cosx, compute_numeric_overlap, overlap_fitting_metric
from .direct_dfj import build_direct_dfj
from .incfock import IncrementalFock
from .link import build_link
from .options import CompositeJKOptions
from .screening import compute_esp_bound, metric_shell_diagonal, shell_extent_map
from .workers import WorkerPool, default_num_threads


@dataclass(frozen=True)
class JKResult:
    """Output of one `CompositeJK.compute` call.

    `J`/`K` are lists aligned with the input densities (`None` when not
    tasked). With `incremental=True` they are changes to be added onto the
    J/K of the previous iteration.
    """

    J: list[np.ndarray] | None
    K: list[np.ndarray] | None
    incremental: bool


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _negative_weight_warning(grid_name: str) -> None:
    warnings.warn(
        f"The definition of the current {grid_name} grid includes negative weights, which the "
        "standard COSX formulation does not support! If this is of concern, please choose another "
        f"{grid_name} grid through adjusting either COSX_PRUNING_SCHEME or "
        f"COSX_SPHERICAL_POINTS_{grid_name.upper()}.",
        RuntimeWarning,
        stacklevel=3,
    )


class CompositeJK:
    """Composite J/K engine.

    Parameters
    ----------
    mol : Molecule | None
        Geometry; required for `COSX` (grid construction).
    basis : BasisCartSoA
        Orbital basis, shells grouped atom by atom.
    aux_basis : BasisCartSoA
        Coulomb fitting basis for `DFDIRJ`.
    options : CompositeJKOptions | Mapping | None
        Options object or upper-case option dictionary.
    """

    def __init__(
        self,
        mol: Molecule | None,
        basis: BasisCartSoA,
        aux_basis: BasisCartSoA,
        options: CompositeJKOptions | Mapping[str, Any] | None = None,
    ) -> None:
        if options is None:
            options = CompositeJKOptions()
        elif not isinstance(options, CompositeJKOptions):
            options = CompositeJKOptions.from_mapping(options)
        self.options = options
        self.mol = mol
        self.basis = basis
        self.aux_basis = aux_basis

        self.j_type = options.j_type
        self.k_type = options.k_type
        self.nthreads = int(options.nthreads) if options.nthreads is not None else default_num_threads()
        self.cutoff = float(options.ints_tolerance)
        self.density_screening = options.screening == "DENSITY"
        self.early_screening = self.k_type == "COSX"
        self.lr_symmetric = True
        self.bench = int(options.bench)
        self.debug = int(options.debug)
        self.print = int(options.print)

        self.do_J = True
        self.do_K = self.k_type != "NONE"
        self.do_wK = False
        self.omega = 0.0

        self.incfock = IncrementalFock(
            enabled=bool(options.incfock),
            full_fock_every=int(options.incfock_full_fock_every),
            convergence=float(options.incfock_convergence),
        )

        self.computed_shells_per_iter: dict[str, list[int]] = {"Quartets": []}
        self._num_computed_shells = 0
        self.last_build_stats: dict[str, Any] = {}

        # per-worker integral engines
        pair_values = schwarz_table(basis)
        eri4 = FourCenterERI(basis, cutoff=self.cutoff, screening=options.screening, pair_values=pair_values)
        eri3 = ThreeCenterERI(aux_basis, basis, cutoff=self.cutoff, screening=options.screening, pair_values=pair_values)
        self.pool = WorkerPool(
            self.nthreads,
            {EngineFamily.FOUR_CENTER: eri4, EngineFamily.THREE_CENTER: eri3},
        )

        # J algorithm
        if self.j_type == "DFDIRJ":
            self.J_metric = build_coulomb_metric(aux_basis)
            self.J_metric_lu = lu_factor(self.J_metric)
            self.J_metric_shell_diag = metric_shell_diagonal(self.J_metric, aux_basis)
            self.computed_shells_per_iter["Triplets"] = []
        else:
            raise ValueError("Invalid Composite J algorithm selected!")

        # K algorithm
        self.link_cutoff = options.link_cutoff
        self.grid_init: MolecularGrid | None = None
        self.grid_final: MolecularGrid | None = None
        self.Q_init: np.ndarray | None = None
        self.Q_final: np.ndarray | None = None
        if self.k_type == "COSX":
            self._setup_cosx()
        elif self.k_type not in ("LINK", "NONE"):
            raise ValueError("Invalid Composite K algorithm selected!")

    # --- setup --------------------------------------------------------------

    def _build_grid(self, stage: str) -> MolecularGrid:
        o = self.options
        return MolecularGrid.build(
            self.mol,
            self.basis,
            radial_points=int(getattr(o, f"cosx_radial_points_{stage}")),
            spherical_points=int(getattr(o, f"cosx_spherical_points_{stage}")),
            pruning_scheme=o.cosx_pruning_scheme,
            basis_tolerance=float(o.cosx_basis_tolerance),
        )

    def _setup_cosx(self) -> None:
        if self.mol is None:
            raise ValueError("COSX requires a Molecule to build its integration grids")

        self.grid_init = self._build_grid("initial")
        self.grid_final = self._build_grid("final")
        if self.grid_init.has_negative_weights():
            _negative_weight_warning("initial")
        if self.grid_final.has_negative_weights():
            _negative_weight_warning("final")

        # Q = S_an S_num^-1 per grid
        S_an = build_S_cart(self.basis)
        self.Q_init = overlap_fitting_metric(S_an, compute_numeric_overlap(self.grid_init, self.basis))
        self.Q_final = overlap_fitting_metric(S_an, compute_numeric_overlap(self.grid_final, self.basis))

        self.esp_bound = compute_esp_bound(self.basis)
        self._extent_maps = {
            "initial": shell_extent_map(self.basis, self.grid_init.extents),
            "final": shell_extent_map(self.basis, self.grid_final.extents),
        }
        esp = ESPIntegrals(self.basis)
        self.esp_engines = [esp] + [esp.clone() for _ in range(self.nthreads - 1)]

    # --- task switches ------------------------------------------------------

    def set_do_J(self, do_J: bool) -> None:
        self.do_J = bool(do_J)

    def set_do_K(self, do_K: bool) -> None:
        do_K = bool(do_K)
        if do_K and self.k_type == "NONE":
            raise RuntimeError(
                "No composite K build algorithm was specified, but K matrix is required for current method! "
                f"Please specify a composite K build algorithm by setting SCF_TYPE to {self.j_type}+{{K_ALGO}}."
            )
        if not do_K and self.k_type != "NONE":
            warnings.warn(
                f"A K algorithm ({self.k_type}) was specified in SCF_TYPE, but the current method does not use "
                "a K matrix! Thus, the specified K algorithm will be unused.",
                RuntimeWarning,
                stacklevel=2,
            )
        self.do_K = do_K

    def set_do_wK(self, do_wK: bool) -> None:
        self.do_wK = bool(do_wK)

    def set_omega(self, omega: float) -> None:
        self.omega = float(omega)

    def set_early_screening(self, early: bool) -> None:
        """Select the small COSX grid (`True`) or the final one (`False`)."""

        self.early_screening = bool(early)

    def num_computed_shells(self) -> int:
        return int(self._num_computed_shells)

    def memory_estimate(self) -> int:
        return 0

    def reset(self) -> None:
        """Forget the incremental-Fock history; the next build is full."""

        self.incfock.reset()

    def print_header(self, file: TextIO | None = None) -> None:
        if not self.print:
            return
        out = sys.stdout if file is None else file

        print("  ==> CompositeJK: Mix-and-Match J+K Algorithm Combos <==\n", file=out)
        print(f"    J tasked:          {_yes_no(self.do_J):>11s}", file=out)
        if self.do_J:
            print(f"    J algorithm:       {self.j_type:>11s}", file=out)
        print(f"    K tasked:          {_yes_no(self.do_K):>11s}", file=out)
        if self.do_K:
            print(f"    K algorithm:       {self.k_type:>11s}", file=out)
        print(f"    wK tasked:         {_yes_no(self.do_wK):>11s}", file=out)
        if self.do_wK:
            print(f"    Omega:             {self.omega:11.3E}", file=out)
        print(f"    Integrals threads: {self.nthreads:11d}", file=out)
        print(f"    Incremental Fock:  {_yes_no(self.incfock.enabled):>11s}", file=out)
        print(f"    Screening Type:    {self.options.screening:>11s}", file=out)

        if self.do_J and self.j_type == "DFDIRJ":
            print("\n  ==> DF-DirJ: Integral-Direct Density-Fitted J <==\n", file=out)
            print(f"    J Screening Cutoff:{self.cutoff:11.0E}", file=out)
        if self.do_K and self.k_type == "LINK":
            print("\n  ==> LinK: Linear Exchange K <==\n", file=out)
            print(f"    K Screening Cutoff:{self.link_cutoff:11.0E}", file=out)
        elif self.do_K and self.k_type == "COSX":
            o = self.options
            print("\n  ==> COSX: Chain-of-Spheres Semi-Numerical K <==\n", file=out)
            print(f"    K Screening Cutoff: {o.cosx_ints_tolerance:11.0E}", file=out)
            print(f"    K Density Cutoff:   {o.cosx_density_tolerance:11.0E}", file=out)
            print(f"    K Basis Cutoff:     {o.cosx_basis_tolerance:11.0E}", file=out)
            print(f"    K Overlap Fitting:  {_yes_no(o.cosx_overlap_fitting):>11s}", file=out)
        print("", file=out)

    # --- builds -------------------------------------------------------------

    def compute(
        self,
        D_list: Sequence[np.ndarray] | np.ndarray,
        *,
        density_change: float | None = None,
        profile: dict | None = None,
    ) -> JKResult:
        """Build J and/or K for the densities of this iteration.

        Parameters
        ----------
        D_list : sequence of (nbf, nbf) arrays, or one array
            Densities (one per channel).
        density_change : float, optional
            Change measure of the density for the incremental-Fock decision;
            defaults to the largest RMS element change over channels.
        profile : dict, optional
            Filled with stage timings (seconds).
        """

        if self.do_wK:
            raise NotImplementedError("CompositeJK algorithms do not support wK integrals yet!")

        if isinstance(D_list, np.ndarray) and D_list.ndim == 2:
            D_list = [D_list]
        D_list = [np.asarray(D, dtype=np.float64) for D in D_list]
        if not D_list:
            raise ValueError("CompositeJK.compute needs at least one density matrix")
        nbf = int(self.basis.nao)
        for D in D_list:
            if D.shape != (nbf, nbf):
                raise ValueError(f"density matrices must have shape ({nbf}, {nbf}), got {D.shape}")

        t0 = time.perf_counter()
        D_ref, incremental = self.incfock.setup(D_list, density_change)

        if self.density_screening or (self.do_K and self.k_type == "LINK"):
            for eng in self.pool.engines(EngineFamily.FOUR_CENTER):
                eng.update_density(D_ref)
        t_setup = time.perf_counter()

        self.last_build_stats = {}
        J = None
        if self.do_J:
            J, jstats = build_direct_dfj(
                D_ref,
                pool=self.pool,
                metric_lu=self.J_metric_lu,
                metric_diag=self.J_metric_shell_diag,
                tolerance=self.cutoff,
            )
            self._num_computed_shells = jstats.computed_triplets
            self.last_build_stats["J"] = jstats
            if self.bench:
                self.computed_shells_per_iter["Triplets"].append(self.num_computed_shells())
        t_J = time.perf_counter()

        K = None
        if self.do_K:
            if self.k_type == "LINK":
                K, kstats = build_link(
                    D_ref,
                    pool=self.pool,
                    cutoff=self.cutoff,
                    link_cutoff=self.link_cutoff,
                    lr_symmetric=self.lr_symmetric,
                    debug=self.debug,
                )
                self._num_computed_shells = kstats.computed_quartets
            elif self.k_type == "COSX":
                stage = "initial" if self.early_screening else "final"
                o = self.options
                K, kstats = build_cosx(
                    D_ref,
                    pool=self.pool,
                    grid=self.grid_init if self.early_screening else self.grid_final,
                    Q=self.Q_init if self.early_screening else self.Q_final,
                    esp_engines=self.esp_engines,
                    esp_bound=self.esp_bound,
                    extent_map=self._extent_maps[stage],
                    kscreen=float(o.cosx_ints_tolerance),
                    dscreen=float(o.cosx_density_tolerance),
                    overlap_fitted=bool(o.cosx_overlap_fitting),
                    lr_symmetric=self.lr_symmetric,
                )
                self._num_computed_shells = kstats.computed_shell_points
            else:
                raise RuntimeError("Invalid Composite K algorithm selected!")
            self.last_build_stats["K"] = kstats
            if self.bench:
                self.computed_shells_per_iter["Quartets"].append(self.num_computed_shells())
        t_K = time.perf_counter()

        self.incfock.finish(D_list)

        if profile is not None:
            profile["t_setup_s"] = float(t_setup - t0)
            profile["t_J_s"] = float(t_J - t_setup)
            profile["t_K_s"] = float(t_K - t_J)
            profile["t_total_s"] = float(time.perf_counter() - t0)
            profile["incremental"] = bool(incremental)
        return JKResult(J=J, K=K, incremental=bool(incremental))


__all__ = ["CompositeJK", "JKResult"]
