from __future__ import annotations

import os
import re

from setuptools import find_packages, setup


def _read_version() -> str:
    here = os.path.abspath(os.path.dirname(__file__))
    with open(os.path.join(here, "compjk", "_version.py"), encoding="utf-8") as f:
        m = re.search(r'^__version__\s*=\s*"([^"]+)"', f.read(), re.M)
    if m is None:
        raise SystemExit("unable to find __version__ in compjk/_version.py")
    return m.group(1)


setup(
    name="compjk",
    version=_read_version(),
    description="Composite (mix-and-match) Coulomb and exchange matrix builders for Gaussian basis SCF",
    packages=find_packages(include=["compjk", "compjk.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.15",
        "numba>=0.59",
        "threadpoolctl>=3.1",
    ],
    extras_require={
        "bse": ["basis_set_exchange"],
        "test": ["pytest>=7"],
    },
)
