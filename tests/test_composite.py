import io

import numpy as np
import pytest


def _jk(water, **kwargs):
    from compjk.jk import CompositeJK, CompositeJKOptions

    mol, basis, aux = water
    kwargs.setdefault("nthreads", 1)
    return CompositeJK(mol, basis, aux, CompositeJKOptions(**kwargs))


def test_dfdirj_link_matches_dense_references(water, water_dense, water_densities):
    from compjk.jk import dense_K, df_J

    jk = _jk(water, scf_type="DFDIRJ+LINK")
    D1, D2 = water_densities
    res = jk.compute([D1, D2])
    assert res.incremental is False
    for D, J, K in zip((D1, D2), res.J, res.K):
        assert np.allclose(J, df_J(water_dense["eri3"], water_dense["metric"], D), atol=1e-9)
        assert np.allclose(K, dense_K(water_dense["eri4"], D), atol=1e-9)
        assert np.allclose(J, J.T)
        assert np.allclose(K, K.T)


def test_single_matrix_input_and_shape_check(water, water_densities):
    jk = _jk(water)
    D, _ = water_densities
    res = jk.compute(D)
    assert len(res.J) == 1 and len(res.K) == 1
    with pytest.raises(ValueError):
        jk.compute([np.zeros((3, 3))])


def test_options_mapping_is_accepted(water, water_densities):
    from compjk.jk import CompositeJK

    mol, basis, aux = water
    jk = CompositeJK(mol, basis, aux, {"SCF_TYPE": "DFDIRJ", "NTHREADS": 1})
    assert jk.k_type == "NONE"
    assert jk.do_K is False
    res = jk.compute([water_densities[0]])
    assert res.K is None
    assert res.J is not None


def test_set_do_K_errors_and_warnings(water):
    jk = _jk(water, scf_type="DFDIRJ")
    with pytest.raises(RuntimeError, match=r"Please specify a composite K build algorithm by setting SCF_TYPE to DFDIRJ\+\{K_ALGO\}"):
        jk.set_do_K(True)

    jk = _jk(water, scf_type="DFDIRJ+LINK")
    with pytest.warns(RuntimeWarning, match=r"A K algorithm \(LINK\) was specified"):
        jk.set_do_K(False)
    assert jk.do_K is False


def test_J_and_K_tasking(water, water_densities):
    jk = _jk(water, scf_type="DFDIRJ+LINK")
    D, _ = water_densities
    jk.set_do_J(False)
    res = jk.compute([D])
    assert res.J is None and res.K is not None
    jk.set_do_J(True)
    with pytest.warns(RuntimeWarning):
        jk.set_do_K(False)
    res = jk.compute([D])
    assert res.J is not None and res.K is None


def test_range_separated_exchange_not_supported(water, water_densities):
    jk = _jk(water)
    jk.set_do_wK(True)
    with pytest.raises(NotImplementedError, match="do not support wK integrals"):
        jk.compute([water_densities[0]])


def test_benchmark_statistics(water, water_densities):
    jk = _jk(water, scf_type="DFDIRJ+LINK", bench=1)
    D1, D2 = water_densities
    jk.compute([D1])
    jk.compute([D2])
    assert len(jk.computed_shells_per_iter["Triplets"]) == 2
    assert len(jk.computed_shells_per_iter["Quartets"]) == 2
    assert jk.computed_shells_per_iter["Triplets"][-1] == jk.last_build_stats["J"].computed_triplets
    assert jk.computed_shells_per_iter["Quartets"][-1] == jk.last_build_stats["K"].computed_quartets
    assert jk.num_computed_shells() == jk.last_build_stats["K"].computed_quartets
    assert jk.memory_estimate() == 0

    quiet = _jk(water, scf_type="DFDIRJ+LINK")
    quiet.compute([D1])
    assert quiet.computed_shells_per_iter == {"Quartets": [], "Triplets": []}


def test_density_screening_and_thread_count(water, water_densities):
    D, _ = water_densities
    ref = _jk(water, scf_type="DFDIRJ+LINK").compute([D])
    res = _jk(water, scf_type="DFDIRJ+LINK", screening="DENSITY", nthreads=3).compute([D])
    assert np.allclose(ref.J[0], res.J[0], atol=1e-9)
    assert np.allclose(ref.K[0], res.K[0], atol=1e-9)


def test_print_header(water):
    jk = _jk(water, scf_type="DFDIRJ+LINK", link_ints_tolerance=1e-10)
    buf = io.StringIO()
    jk.print_header(file=buf)
    text = buf.getvalue()
    assert "CompositeJK: Mix-and-Match J+K Algorithm Combos" in text
    assert "DF-DirJ: Integral-Direct Density-Fitted J" in text
    assert "LinK: Linear Exchange K" in text
    assert "1E-10" in text
    assert "Screening Type:" in text and "SCHWARZ" in text

    silent = _jk(water, print=0)
    buf = io.StringIO()
    silent.print_header(file=buf)
    assert buf.getvalue() == ""


def test_profile_is_filled(water, water_densities):
    jk = _jk(water)
    profile = {}
    jk.compute([water_densities[0]], profile=profile)
    for key in ("t_setup_s", "t_J_s", "t_K_s", "t_total_s"):
        assert profile[key] >= 0.0
    assert profile["incremental"] is False


def test_h2_minimal_basis_matches_direct_references(h2):
    from compjk.eri.dense import build_coulomb_metric, build_eri3c_dense, build_eri4c_dense
    from compjk.integrals import build_S_cart
    from compjk.jk import CompositeJK, CompositeJKOptions, dense_J, dense_K, df_J

    mol, basis, aux = h2
    assert basis.nao == 2

    # sigma_g bonding orbital
    S = build_S_cart(basis)
    c = np.ones(2) / np.sqrt(2.0 * (1.0 + S[0, 1]))
    D = np.outer(c, c)

    jk = CompositeJK(mol, basis, aux, CompositeJKOptions(scf_type="DFDIRJ+LINK", nthreads=1))
    res = jk.compute([D])
    eri4 = build_eri4c_dense(basis)
    assert np.allclose(res.K[0], dense_K(eri4, D), atol=1e-10)
    assert np.allclose(res.J[0], df_J(build_eri3c_dense(aux, basis), build_coulomb_metric(aux), D), atol=1e-10)
    assert np.max(np.abs(res.J[0] - dense_J(eri4, D))) < 2e-4


def test_empty_channel_list_is_rejected(water):
    for tag in ("DFDIRJ+LINK", "DFDIRJ+COSX"):
        jk = _jk(water, scf_type=tag)
        with pytest.raises(ValueError, match="at least one density matrix"):
            jk.compute([])
