import numpy as np
import pytest


@pytest.fixture(scope="module")
def cosx_jk(water):
    from compjk.jk import CompositeJK, CompositeJKOptions

    mol, basis, aux = water
    return CompositeJK(mol, basis, aux, CompositeJKOptions(scf_type="DFDIRJ+COSX", nthreads=1))


def test_esp_integrals_far_point_approach_overlap(water):
    from compjk.integrals import ESPIntegrals, build_esp_cart, build_S_cart

    _mol, basis, _aux = water
    S = build_S_cart(basis)
    R = 1000.0
    A = build_esp_cart(basis, np.array([0.0, 0.0, R]))
    assert np.allclose(A, A.T)
    assert np.allclose(A * R, S, atol=1e-2)

    esp = ESPIntegrals(basis)
    pts = np.array([[0.0, 0.0, R], [0.3, -0.2, 0.1]])
    tile = esp.compute_shell(2, 3, pts)
    assert tile.shape == (2, 3, 1)
    assert np.allclose(tile[0], A[basis.shell_slice(2), basis.shell_slice(3)])


def test_numeric_overlap_approximates_analytic_overlap(cosx_jk, water):
    from compjk.integrals import build_S_cart
    from compjk.jk import compute_numeric_overlap

    _mol, basis, _aux = water
    S = build_S_cart(basis)
    S_num = compute_numeric_overlap(cosx_jk.grid_final, basis)
    assert np.allclose(S_num, S_num.T)
    assert np.max(np.abs(S_num - S)) < 1e-2
    # Q = S_an S_num^-1
    assert np.allclose(cosx_jk.Q_final @ S_num, S, atol=1e-10)


def test_cosx_grids_and_blocks(cosx_jk):
    init, final = cosx_jk.grid_init, cosx_jk.grid_final
    assert init.npoints < final.npoints
    assert not final.has_negative_weights()
    for grid in (init, final):
        assert 0 < grid.max_points <= 256
        assert grid.max_functions <= cosx_jk.basis.nao
        assert sum(b.npoints for b in grid.blocks) == grid.npoints


@pytest.mark.parametrize(
    "grid",
    [
        {},
        {"cosx_radial_points_final": 50, "cosx_spherical_points_final": 194, "cosx_ints_tolerance": 1e-13},
    ],
)
def test_cosx_exchange_close_to_exact(water, water_dense, water_densities, grid):
    from compjk.jk import CompositeJK, CompositeJKOptions, dense_K

    mol, basis, aux = water
    D, _ = water_densities
    ref = dense_K(water_dense["eri4"], D)

    out = {}
    for fitted in (True, False):
        opts = CompositeJKOptions(scf_type="DFDIRJ+COSX", cosx_overlap_fitting=fitted, nthreads=1, **grid)
        jk = CompositeJK(mol, basis, aux, opts)
        jk.set_early_screening(False)
        K = jk.compute([D]).K[0]
        assert np.allclose(K, K.T)
        out[fitted] = K
        stats = jk.last_build_stats["K"]
        assert 0 < stats.computed_shell_points <= stats.candidate_shell_points
        assert jk.num_computed_shells() == stats.computed_shell_points

    norm = np.linalg.norm(ref)
    err_fitted = np.linalg.norm(out[True] - ref) / norm
    err_unfitted = np.linalg.norm(out[False] - ref) / norm
    assert err_fitted < 2e-2
    assert err_unfitted < 1e-1
    assert err_fitted < err_unfitted


def test_cosx_early_grid_is_used_first(cosx_jk, water_densities):
    D, _ = water_densities
    cosx_jk.set_early_screening(True)
    K_init = cosx_jk.compute([D]).K[0]
    n_init = cosx_jk.last_build_stats["K"].candidate_shell_points
    cosx_jk.set_early_screening(False)
    K_final = cosx_jk.compute([D]).K[0]
    n_final = cosx_jk.last_build_stats["K"].candidate_shell_points
    assert n_init < n_final
    assert np.linalg.norm(K_init - K_final) / np.linalg.norm(K_final) < 5e-2


def test_cosx_thread_invariance(water, water_densities):
    from compjk.jk import CompositeJK, CompositeJKOptions

    mol, basis, aux = water
    D1, D2 = water_densities
    res = []
    for nthreads in (1, 3):
        jk = CompositeJK(mol, basis, aux, CompositeJKOptions(scf_type="DFDIRJ+COSX", nthreads=nthreads))
        res.append(jk.compute([D1, D2]).K)
    for Ka, Kb in zip(*res):
        assert np.allclose(Ka, Kb, atol=1e-11)


def test_cosx_warns_on_negative_grid_weights(water):
    from compjk.jk import CompositeJK, CompositeJKOptions

    mol, basis, aux = water
    opts = CompositeJKOptions(scf_type="DFDIRJ+COSX", cosx_spherical_points_initial=74, nthreads=1)
    with pytest.warns(RuntimeWarning, match="initial grid includes negative weights"):
        jk = CompositeJK(mol, basis, aux, opts)
    assert jk.grid_init.has_negative_weights()


def test_cosx_requires_molecule(water):
    from compjk.jk import CompositeJK, CompositeJKOptions

    _mol, basis, aux = water
    with pytest.raises(ValueError, match="Molecule"):
        CompositeJK(None, basis, aux, CompositeJKOptions(scf_type="DFDIRJ+COSX"))
