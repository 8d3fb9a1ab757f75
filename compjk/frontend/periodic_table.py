from __future__ import annotations

"""Element data used by the molecule front end and the quadrature grids."""

_SYMBOLS = (None,) + tuple(
    """
    H He Li Be B C N O F Ne Na Mg Al Si P S Cl Ar K Ca Sc Ti V Cr Mn Fe Co Ni Cu Zn
    Ga Ge As Se Br Kr Rb Sr Y Zr Nb Mo Tc Ru Rh Pd Ag Cd In Sn Sb Te I Xe Cs Ba La Ce
    Pr Nd Pm Sm Eu Gd Tb Dy Ho Er Tm Yb Lu Hf Ta W Re Os Ir Pt Au Hg Tl Pb Bi Po At Rn
    Fr Ra Ac Th Pa U Np Pu Am Cm Bk Cf Es Fm Md No Lr Rf Db Sg Bh Hs Mt Ds Rg Cn Nh Fl
    Mc Lv Ts Og
    """.split()
)

_SYMBOL_TO_Z = {s.upper(): i for i, s in enumerate(_SYMBOLS) if s is not None}

ANGSTROM_TO_BOHR = 1.8897259886

# Bragg-Slater radii (Angstrom) through Kr, used for Becke cell size adjustment.
_BRAGG_RADII_ANG: tuple[float, ...] = (
    0.0,
    0.35, 1.40,
    1.45, 1.05, 0.85, 0.70, 0.65, 0.60, 0.50, 1.50,
    1.80, 1.50, 1.25, 1.10, 1.00, 1.00, 1.00, 1.80,
    2.20, 1.80,
    1.60, 1.40, 1.35, 1.40, 1.40, 1.40, 1.35, 1.35, 1.35, 1.35,
    1.30, 1.25, 1.15, 1.15, 1.15, 1.90,
)
_BRAGG_DEFAULT_ANG = 2.0

# Treutler-Ahlrichs radial scaling factors xi (H-Ar).
_TREUTLER_XI: tuple[float, ...] = (
    1.0,
    0.8, 0.9,
    1.8, 1.4, 1.3, 1.1, 0.9, 0.9, 0.9, 0.9,
    1.4, 1.3, 1.3, 1.2, 1.1, 1.0, 1.0, 1.0,
)


def atomic_number(symbol: str) -> int:
    """Atomic number of an element symbol (case-insensitive, ghost prefixes stripped)."""

    sym = str(symbol).strip()
    # "X-H" / "GHOST-H" style ghost atoms keep the element's grid and basis.
    if "-" in sym:
        sym = sym.split("-")[-1]
    sym = "".join(ch for ch in sym if ch.isalpha())
    Z = _SYMBOL_TO_Z.get(sym.upper())
    if Z is None:
        raise KeyError(f"unknown element symbol: {symbol!r}")
    return int(Z)


def element_symbol(Z: int) -> str:
    Z = int(Z)
    if Z <= 0 or Z >= len(_SYMBOLS):
        raise ValueError(f"atomic number out of range: {Z}")
    return str(_SYMBOLS[Z])


def bragg_radius_bohr(symbol: str) -> float:
    """Bragg-Slater radius in Bohr (2.0 Angstrom beyond Kr)."""

    Z = atomic_number(symbol)
    r = _BRAGG_RADII_ANG[Z] if Z < len(_BRAGG_RADII_ANG) else _BRAGG_DEFAULT_ANG
    return float(r) * ANGSTROM_TO_BOHR


def treutler_xi(symbol: str) -> float:
    Z = atomic_number(symbol)
    return float(_TREUTLER_XI[Z]) if Z < len(_TREUTLER_XI) else 1.0


__all__ = ["ANGSTROM_TO_BOHR", "atomic_number", "bragg_radius_bohr", "element_symbol", "treutler_xi"]
