import numpy as np
import pytest


def test_four_center_tiles_match_dense_tensor(water, water_dense):
    from compjk.eri import FourCenterERI

    _mol, basis, _aux = water
    eri = water_dense["eri4"]
    eng = FourCenterERI(basis, cutoff=0.0, screening="NONE")
    quartets = [(0, 0, 0, 0), (2, 1, 3, 0), (4, 2, 2, 4), (3, 3, 1, 0)]
    for P, Q, R, S in quartets:
        n = eng.compute_shell(P, Q, R, S)
        sl = [basis.shell_slice(X) for X in (P, Q, R, S)]
        ref = eri[sl[0], sl[1], sl[2], sl[3]]
        assert n == ref.size
        assert np.allclose(eng.buffer, ref, atol=1e-12)


def test_three_center_tiles_match_dense_tensor(water, water_dense):
    from compjk.eri import ThreeCenterERI

    _mol, basis, aux = water
    eri3 = water_dense["eri3"]
    eng = ThreeCenterERI(aux, basis)
    for P, M, N in [(0, 0, 0), (8, 2, 1), (aux.nshell - 1, 4, 3)]:
        eng.compute_shell(P, M, N)
        ref = eri3[aux.shell_slice(P), basis.shell_slice(M), basis.shell_slice(N)]
        assert np.allclose(eng.buffer, ref, atol=1e-12)


def test_schwarz_table_bounds_quartets(water, water_dense):
    from compjk.eri import schwarz_table

    _mol, basis, _aux = water
    eri = water_dense["eri4"]
    pv = schwarz_table(basis)
    assert np.allclose(pv, pv.T)
    n = basis.nshell
    for P in range(n):
        for Q in range(n):
            sP, sQ = basis.shell_slice(P), basis.shell_slice(Q)
            assert np.max(np.abs(eri[sP, sQ, sP, sQ])) == pytest.approx(pv[P, Q], rel=1e-12, abs=1e-14)
    # Cauchy-Schwarz: |(PQ|RS)| <= sqrt((PQ|PQ)(RS|RS))
    for P, Q, R, S in [(0, 1, 2, 3), (4, 4, 0, 1), (2, 0, 3, 3)]:
        tile = eri[basis.shell_slice(P), basis.shell_slice(Q), basis.shell_slice(R), basis.shell_slice(S)]
        assert np.max(np.abs(tile)) <= np.sqrt(pv[P, Q] * pv[R, S]) + 1e-14


def test_screening_modes(water, water_densities):
    from compjk.eri import FourCenterERI

    _mol, basis, _aux = water
    D, _ = water_densities

    none = FourCenterERI(basis, cutoff=1e-3, screening="NONE")
    assert none.cutoff == 0.0
    assert none.shell_significant(0, 0, 4, 4)

    loose = FourCenterERI(basis, cutoff=1e3, screening="SCHWARZ")
    assert not loose.shell_significant(0, 1, 2, 3)
    assert loose.compute_shell(0, 1, 2, 3) == 0
    assert len(loose.shell_pairs()) == 0

    dens = FourCenterERI(basis, cutoff=1e-10, screening="DENSITY")
    assert dens.shell_significant(1, 0, 1, 0)
    with pytest.raises(RuntimeError):
        dens.shell_pair_max_density(0, 0)
    dens.update_density([np.zeros_like(D)])
    assert not dens.shell_significant(1, 0, 1, 0)
    dens.update_density([D])
    assert dens.shell_significant(1, 0, 1, 0)
    assert dens.shell_pair_max_density(2, 1) == pytest.approx(
        np.max(np.abs(D[basis.shell_slice(2), basis.shell_slice(1)]))
    )

    with pytest.raises(ValueError):
        FourCenterERI(basis, screening="CSAM")


def test_clone_shares_tables_but_not_buffer(water):
    from compjk.eri import FourCenterERI

    _mol, basis, _aux = water
    eng = FourCenterERI(basis)
    eng.compute_shell(0, 0, 0, 0)
    other = eng.clone()
    assert other.pair_values is eng.pair_values
    assert other.buffer.size == 0
    other.compute_shell(2, 2, 2, 2)
    assert eng.buffer.shape == (1, 1, 1, 1)


def test_bound_tables(water, water_dense, water_densities):
    from compjk.grid import shell_extents
    from compjk.jk.screening import (
        compute_esp_bound,
        density_shell_maxima,
        metric_shell_diagonal,
        shell_ceilings,
        shell_extent_map,
    )
    from compjk.eri import schwarz_table

    _mol, basis, aux = water
    D1, D2 = water_densities

    Dmax = density_shell_maxima([D1, D2], basis)
    sl1, sl3 = basis.shell_slice(1), basis.shell_slice(3)
    assert Dmax[1, 3] == pytest.approx(max(np.max(np.abs(D1[sl1, sl3])), np.max(np.abs(D2[sl1, sl3]))))

    diag = metric_shell_diagonal(water_dense["metric"], aux)
    assert diag.shape == (aux.nshell,)
    assert np.all(diag > 0.0)

    pv = schwarz_table(basis)
    ceil = shell_ceilings(pv)
    assert np.all(ceil >= np.diag(pv))

    esp = compute_esp_bound(basis)
    assert esp.shape == (basis.nshell, basis.nshell)
    assert np.all(esp >= 0.0)
    assert np.allclose(esp, esp.T)

    emap = shell_extent_map(basis, shell_extents(basis, 1e-10))
    for s in range(basis.nshell):
        assert s in emap[s]
        for t in emap[s]:
            assert s in emap[t]
