from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from compjk.eri.engine import SCREENING_TYPES
from compjk.grid.angular import DEG2ORD, PRUNING_SCHEMES

J_TYPES = ("DFDIRJ",)
K_TYPES = ("LINK", "COSX", "NONE")


def split_jk_type(scf_type: str) -> tuple[str, str]:
    """Split a composite tag `"<J>+<K>"` into upper-case `(j_type, k_type)`.

    A tag without `+` (or with identical halves) names a J-only build and
    yields `k_type == "NONE"`.
    """

    tag = str(scf_type).strip().upper()
    if "+" not in tag:
        return tag, "NONE"
    j_type, k_type = (s.strip() for s in tag.split("+", 1))
    if k_type == j_type:
        k_type = "NONE"
    return j_type, k_type


@dataclass(frozen=True)
class CompositeJKOptions:
    """Options of a composite J/K build (SCF option names, lower case).

    `link_ints_tolerance=None` uses `ints_tolerance`; `nthreads=None` uses
    `COMPJK_NUM_THREADS` or the CPU count.
    """

    scf_type: str = "DFDIRJ+LINK"
    screening: str = "SCHWARZ"
    ints_tolerance: float = 1e-12
    link_ints_tolerance: float | None = None
    incfock: bool = False
    incfock_full_fock_every: int = 100
    incfock_convergence: float = 1e-5
    cosx_ints_tolerance: float = 1e-11
    cosx_density_tolerance: float = 1e-11
    cosx_basis_tolerance: float = 1e-10
    cosx_overlap_fitting: bool = True
    cosx_spherical_points_initial: int = 50
    cosx_radial_points_initial: int = 25
    cosx_spherical_points_final: int = 110
    cosx_radial_points_final: int = 35
    cosx_pruning_scheme: str = "NONE"
    bench: int = 0
    debug: int = 0
    print: int = 1
    nthreads: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "scf_type", str(self.scf_type).strip().upper())
        object.__setattr__(self, "screening", str(self.screening).strip().upper())
        object.__setattr__(self, "cosx_pruning_scheme", str(self.cosx_pruning_scheme).strip().upper())

        if int(self.incfock_full_fock_every) <= 0:
            raise ValueError("Invalid input for option INCFOCK_FULL_FOCK_EVERY (<= 0)")
        j_type, k_type = split_jk_type(self.scf_type)
        if j_type not in J_TYPES:
            raise ValueError("Invalid Composite J algorithm selected!")
        if k_type not in K_TYPES:
            raise ValueError("Invalid Composite K algorithm selected!")
        if self.screening not in SCREENING_TYPES:
            raise ValueError(f"Invalid SCREENING {self.screening!r} for CompositeJK; expected one of {SCREENING_TYPES}")
        if self.cosx_pruning_scheme not in PRUNING_SCHEMES:
            raise ValueError(f"Invalid COSX_PRUNING_SCHEME {self.cosx_pruning_scheme!r}; expected one of {PRUNING_SCHEMES}")

        for name in (
            "ints_tolerance",
            "incfock_convergence",
            "cosx_ints_tolerance",
            "cosx_density_tolerance",
        ):
            if float(getattr(self, name)) < 0.0:
                raise ValueError(f"{name.upper()} must be >= 0")
        if self.link_ints_tolerance is not None and float(self.link_ints_tolerance) < 0.0:
            raise ValueError("LINK_INTS_TOLERANCE must be >= 0")
        if float(self.cosx_basis_tolerance) <= 0.0:
            raise ValueError("COSX_BASIS_TOLERANCE must be > 0")
        for stage in ("initial", "final"):
            nang = int(getattr(self, f"cosx_spherical_points_{stage}"))
            nrad = int(getattr(self, f"cosx_radial_points_{stage}"))
            if nang not in DEG2ORD:
                raise ValueError(f"COSX_SPHERICAL_POINTS_{stage.upper()}={nang} is not a Lebedev grid size")
            if nrad <= 0:
                raise ValueError(f"COSX_RADIAL_POINTS_{stage.upper()} must be > 0")
        if self.nthreads is not None and int(self.nthreads) < 1:
            raise ValueError("nthreads must be >= 1")

    @property
    def j_type(self) -> str:
        return split_jk_type(self.scf_type)[0]

    @property
    def k_type(self) -> str:
        return split_jk_type(self.scf_type)[1]

    @property
    def link_cutoff(self) -> float:
        return float(self.ints_tolerance if self.link_ints_tolerance is None else self.link_ints_tolerance)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "CompositeJKOptions":
        """Build options from an upper-case option dict such as `{"SCF_TYPE": "DFDIRJ+COSX"}`.

        Keys are case-insensitive; unknown keys raise `KeyError`.
        """

        names = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, val in mapping.items():
            name = str(key).strip().lower()
            if name not in names:
                raise KeyError(f"unknown CompositeJK option: {key!r}")
            kwargs[name] = val
        return cls(**kwargs)


__all__ = ["CompositeJKOptions", "J_TYPES", "K_TYPES", "split_jk_type"]
