import numpy as np
import pytest

STO3G = {
    "H": [
        [0, [3.42525091, 0.15432897], [0.62391373, 0.53532814], [0.16885540, 0.44463454]],
    ],
    "O": [
        [0, [130.7093200, 0.15432897], [23.8088610, 0.53532814], [6.4436083, 0.44463454]],
        [0, [5.0331513, -0.09996723], [1.1695961, 0.39951283], [0.3803890, 0.70011547]],
        [1, [5.0331513, 0.15591627], [1.1695961, 0.60768372], [0.3803890, 0.39195739]],
    ],
}

EVEN_TEMPERED_AUX = {
    "H": [
        [0, [8.0, 1.0]],
        [0, [2.0, 1.0]],
        [0, [0.5, 1.0]],
        [1, [1.0, 1.0]],
    ],
    "O": [
        [0, [120.0, 1.0]],
        [0, [30.0, 1.0]],
        [0, [7.5, 1.0]],
        [0, [1.9, 1.0]],
        [0, [0.5, 1.0]],
        [1, [6.0, 1.0]],
        [1, [1.5, 1.0]],
        [1, [0.4, 1.0]],
        [2, [1.2, 1.0]],
    ],
}

WATER = [
    ("O", (0.0, 0.0, 0.2217)),
    ("H", (0.0, 1.4309, -0.8867)),
    ("H", (0.0, -1.4309, -0.8867)),
]


@pytest.fixture(scope="session")
def water():
    from compjk.frontend import Molecule, build_ao_basis_cart
    from compjk.frontend.one_electron import build_aux_basis_cart

    mol = Molecule.from_atoms(WATER, unit="Bohr", basis=STO3G)
    basis, _ = build_ao_basis_cart(mol)
    aux, _ = build_aux_basis_cart(mol, EVEN_TEMPERED_AUX)
    return mol, basis, aux


@pytest.fixture(scope="session")
def h2():
    from compjk.frontend import Molecule, build_ao_basis_cart
    from compjk.frontend.one_electron import build_aux_basis_cart

    mol = Molecule.from_atoms([("H", (0.0, 0.0, 0.0)), ("H", (0.0, 0.0, 1.4))], unit="Bohr", basis=STO3G)
    basis, _ = build_ao_basis_cart(mol)
    aux, _ = build_aux_basis_cart(mol, EVEN_TEMPERED_AUX)
    return mol, basis, aux


@pytest.fixture(scope="session")
def water_dense(water):
    from compjk.eri.dense import build_coulomb_metric, build_eri3c_dense, build_eri4c_dense

    _mol, basis, aux = water
    return {
        "eri4": build_eri4c_dense(basis),
        "eri3": build_eri3c_dense(aux, basis),
        "metric": build_coulomb_metric(aux),
    }


def orthonormal_density(basis, nocc: int, seed: int) -> np.ndarray:
    """Idempotent-like density `C C^T` from `nocc` S-orthonormal random orbitals."""

    from compjk.integrals import build_S_cart

    S = build_S_cart(basis)
    e, V = np.linalg.eigh(S)
    X = (V * (1.0 / np.sqrt(e))) @ V.T
    rng = np.random.default_rng(seed)
    U, _ = np.linalg.qr(rng.normal(size=(basis.nao, basis.nao)))
    C = X @ U[:, :nocc]
    return C @ C.T


@pytest.fixture(scope="session")
def water_densities(water):
    _mol, basis, _aux = water
    return orthonormal_density(basis, 5, seed=7), orthonormal_density(basis, 4, seed=11)
