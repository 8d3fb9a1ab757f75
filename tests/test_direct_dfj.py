import numpy as np
import pytest


def _pool(basis, aux, nthreads, cutoff=1e-12):
    from compjk.eri import EngineFamily, ThreeCenterERI
    from compjk.jk import WorkerPool

    return WorkerPool(nthreads, {EngineFamily.THREE_CENTER: ThreeCenterERI(aux, basis, cutoff=cutoff)})


def _metric(aux):
    from scipy.linalg import lu_factor

    from compjk.eri import build_coulomb_metric
    from compjk.jk.screening import metric_shell_diagonal

    M = build_coulomb_metric(aux)
    return M, lu_factor(M), metric_shell_diagonal(M, aux)


def test_metric_round_trip(water):
    from scipy.linalg import lu_solve

    _mol, _basis, aux = water
    M, lu, _diag = _metric(aux)
    assert np.allclose(M, M.T, atol=1e-12)
    rng = np.random.default_rng(0)
    v = rng.normal(size=(aux.nao,))
    assert np.allclose(lu_solve(lu, M @ v), v, atol=1e-8)


def test_direct_dfj_matches_dense_density_fitting(water, water_dense, water_densities):
    from compjk.jk import build_direct_dfj, df_J

    _mol, basis, aux = water
    D1, D2 = water_densities
    _M, lu, diag = _metric(aux)

    J, stats = build_direct_dfj([D1, D2], pool=_pool(basis, aux, 1), metric_lu=lu, metric_diag=diag, tolerance=1e-12)
    for D, Jd in zip((D1, D2), J):
        ref = df_J(water_dense["eri3"], water_dense["metric"], D)
        assert np.allclose(Jd, ref, atol=1e-9)
        assert np.allclose(Jd, Jd.T)

    npair = basis.nshell * (basis.nshell + 1) // 2
    assert stats.total_triplets == aux.nshell * npair
    assert 0 < stats.forward_triplets <= stats.total_triplets
    assert 0 < stats.backward_triplets <= stats.total_triplets
    assert stats.computed_triplets == stats.forward_triplets + stats.backward_triplets


def test_direct_dfj_is_close_to_exact_coulomb(water, water_dense, water_densities):
    from compjk.jk import build_direct_dfj, dense_J

    _mol, basis, aux = water
    D, _ = water_densities
    _M, lu, diag = _metric(aux)
    (J,), _ = build_direct_dfj([D], pool=_pool(basis, aux, 1), metric_lu=lu, metric_diag=diag, tolerance=1e-12)
    ref = dense_J(water_dense["eri4"], D)
    assert np.linalg.norm(J - ref) / np.linalg.norm(ref) < 1e-1


@pytest.mark.parametrize("nthreads", [2, 3])
def test_direct_dfj_thread_invariance(water, water_densities, nthreads):
    from compjk.jk import build_direct_dfj

    _mol, basis, aux = water
    D, _ = water_densities
    _M, lu, diag = _metric(aux)
    (J1,), s1 = build_direct_dfj([D], pool=_pool(basis, aux, 1), metric_lu=lu, metric_diag=diag, tolerance=1e-12)
    (Jn,), sn = build_direct_dfj([D], pool=_pool(basis, aux, nthreads), metric_lu=lu, metric_diag=diag, tolerance=1e-12)
    assert np.allclose(J1, Jn, atol=1e-11)
    assert s1 == sn


def test_direct_dfj_screening_is_sound(water, water_densities):
    from compjk.jk import build_direct_dfj

    _mol, basis, aux = water
    D, _ = water_densities
    _M, lu, diag = _metric(aux)
    (Jt,), st = build_direct_dfj([D], pool=_pool(basis, aux, 1), metric_lu=lu, metric_diag=diag, tolerance=1e-14)
    (Jl,), sl = build_direct_dfj(
        [D], pool=_pool(basis, aux, 1, cutoff=1e-9), metric_lu=lu, metric_diag=diag, tolerance=1e-9
    )
    assert sl.computed_triplets <= st.computed_triplets
    assert np.max(np.abs(Jt - Jl)) < 1e-4


def test_back_contraction_screens_with_fitted_coefficients(water, water_dense, water_densities, monkeypatch):
    from scipy.linalg import lu_solve

    import compjk.jk.direct_dfj as direct_dfj
    from compjk.eri import EngineFamily

    _mol, basis, aux = water
    D, _ = water_densities
    _M, lu, diag = _metric(aux)
    tol = 1e-6

    seen = []
    shell_maxima = direct_dfj.vector_shell_maxima

    def spy(v_list, basis_):
        out = shell_maxima(v_list, basis_)
        seen.append((np.array(v_list), out))
        return out

    monkeypatch.setattr(direct_dfj, "vector_shell_maxima", spy)
    pool = _pool(basis, aux, 1)
    (J,), stats = direct_dfj.build_direct_dfj([D], pool=pool, metric_lu=lu, metric_diag=diag, tolerance=tol)

    # bounds come from H = M^-1 G, not from the density
    G = np.einsum("pmn,mn->p", water_dense["eri3"], D)
    H = lu_solve(lu, G)
    (H_seen, Hshell), = seen
    assert np.allclose(H_seen[0], H, atol=1e-10)

    eng = pool.engine(EngineFamily.THREE_CENTER, 0)
    pairs = eng.shell_pairs()
    expected = 0
    for P in range(aux.nshell):
        for MN in range(len(pairs)):
            v = eng.shell_pair_value(int(pairs.sp_A[MN]), int(pairs.sp_B[MN]))
            if not Hshell[P] * Hshell[P] * diag[P] * v < tol**2:
                expected += 1
    assert stats.backward_triplets == expected

    # zero coefficient bounds skip the whole back contraction
    monkeypatch.setattr(direct_dfj, "vector_shell_maxima", lambda v_list, basis_: np.zeros(aux.nshell))
    (J0,), stats0 = direct_dfj.build_direct_dfj([D], pool=pool, metric_lu=lu, metric_diag=diag, tolerance=tol)
    assert stats0.backward_triplets == 0
    assert np.all(J0 == 0.0)
    assert np.linalg.norm(J) > 0.0
