"""compjk: mix-and-match Coulomb (J) and exchange (K) builders for Gaussian-basis SCF."""

from importlib.metadata import PackageNotFoundError, version as _dist_version

from compjk._version import __version__ as _src_version
from compjk.frontend import Molecule, build_ao_basis_cart
from compjk.jk import CompositeJK, CompositeJKOptions, JKResult, split_jk_type

try:
    __version__ = _dist_version("compjk")
except PackageNotFoundError:  # pragma: no cover
    __version__ = _src_version

__all__ = [
    "__version__",
    "CompositeJK",
    "CompositeJKOptions",
    "JKResult",
    "Molecule",
    "build_ao_basis_cart",
    "split_jk_type",
]
