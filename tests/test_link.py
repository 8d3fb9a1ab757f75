import io

import numpy as np
import pytest


def _link(basis, D_list, *, nthreads=1, cutoff=1e-12, link_cutoff=None, screening="SCHWARZ", **kwargs):
    from compjk.eri import EngineFamily, FourCenterERI
    from compjk.jk import WorkerPool, build_link

    pool = WorkerPool(nthreads, {EngineFamily.FOUR_CENTER: FourCenterERI(basis, cutoff=cutoff, screening=screening)})
    for eng in pool.engines(EngineFamily.FOUR_CENTER):
        eng.update_density(D_list)
    return build_link(
        D_list,
        pool=pool,
        cutoff=cutoff,
        link_cutoff=cutoff if link_cutoff is None else link_cutoff,
        **kwargs,
    )


@pytest.mark.parametrize("screening", ["SCHWARZ", "DENSITY", "NONE"])
def test_link_matches_dense_exchange(water, water_dense, water_densities, screening):
    from compjk.jk import dense_K

    _mol, basis, _aux = water
    D1, D2 = water_densities
    K, stats = _link(basis, [D1, D2], screening=screening)
    for D, Kd in zip((D1, D2), K):
        assert np.allclose(Kd, dense_K(water_dense["eri4"], D), atol=1e-9)
        assert np.allclose(Kd, Kd.T)
    assert stats.computed_quartets > 0
    # water: (O,O), (H1,O), (H1,H1), (H2,O), (H2,H1), (H2,H2)
    assert stats.atom_pairs == 6


def test_link_quartet_count_is_unique_quartets_without_screening(water, water_densities):
    _mol, basis, _aux = water
    D, _ = water_densities
    _K, stats = _link(basis, [D], cutoff=0.0, screening="NONE")
    npair = basis.nshell * (basis.nshell + 1) // 2
    assert stats.computed_quartets == npair * (npair + 1) // 2


@pytest.mark.parametrize("nthreads", [2, 4])
def test_link_thread_invariance(water, water_densities, nthreads):
    _mol, basis, _aux = water
    D, _ = water_densities
    (K1,), s1 = _link(basis, [D], nthreads=1)
    (Kn,), sn = _link(basis, [D], nthreads=nthreads)
    assert np.allclose(K1, Kn, atol=1e-12)
    assert s1 == sn


def test_link_screening_is_sound(water, water_densities):
    _mol, basis, _aux = water
    D, _ = water_densities
    (Kt,), st = _link(basis, [D], cutoff=1e-14)
    (Kl,), sl = _link(basis, [D], cutoff=1e-12, link_cutoff=1e-8)
    assert sl.computed_quartets <= st.computed_quartets
    assert np.max(np.abs(Kt - Kl)) < 1e-5


def test_link_rejects_non_symmetric_builds(water, water_densities):
    _mol, basis, _aux = water
    D, _ = water_densities
    with pytest.raises(RuntimeError, match="Non-symmetric K matrix builds"):
        _link(basis, [D], lr_symmetric=False)


def test_link_debug_prints_atom_blocking(water, water_densities):
    from compjk.jk.link import atom_shell_blocks

    _mol, basis, _aux = water
    D, _ = water_densities
    blocks = atom_shell_blocks(basis)
    assert blocks.tolist() == [0, 3, 4, 5]

    buf = io.StringIO()
    _link(basis, [D], debug=1, file=buf)
    text = buf.getvalue()
    assert "LinK: Atom Blocking" in text
    assert text.count("Atom:") == 3
    assert text.count("Shell:") == basis.nshell


def test_neighbour_lists_are_sorted_by_bound(water, water_densities):
    from compjk.eri import FourCenterERI
    from compjk.jk.link import significant_bras, significant_kets
    from compjk.jk.screening import shell_ceilings

    _mol, basis, _aux = water
    D, _ = water_densities
    eng = FourCenterERI(basis)
    eng.update_density([D])
    bras = significant_bras(eng, 1e-12)
    key = np.sqrt(eng.pair_values * eng.max_integral())
    for P, lst in enumerate(bras):
        vals = key[P, lst]
        assert np.all(np.diff(vals) <= 0.0)

    ceil = shell_ceilings(eng.pair_values)
    Dmax = np.max(eng.max_dens_shell_pair, axis=0)
    kets = significant_kets(ceil, Dmax, 1e-12)
    for P, lst in enumerate(kets):
        vals = ceil[P] * ceil[lst] * Dmax[P, lst]
        assert np.all(np.diff(vals) <= 0.0)
        assert np.all(vals >= 1e-12)


def test_atom_blocking_skips_atoms_without_shells(water):
    import dataclasses

    from compjk.jk.link import atom_shell_blocks, max_atom_functions

    _mol, basis, _aux = water
    moved = dataclasses.replace(basis, shell_atom=np.asarray([0, 0, 0, 2, 3], dtype=np.int32))
    assert moved.atom_shell_ranges().tolist() == [0, 3, 3, 4, 5]
    assert atom_shell_blocks(moved).tolist() == [0, 3, 4, 5]
    # O: 1s, 2s, 2p
    assert max_atom_functions(basis, atom_shell_blocks(basis)) == 5


def test_mini_lists_use_engine_quartet_ceiling(water, water_densities, monkeypatch):
    from compjk.eri import FourCenterERI

    _mol, basis, _aux = water
    D, _ = water_densities
    (K,), stats = _link(basis, [D])
    assert stats.computed_quartets > 0

    monkeypatch.setattr(FourCenterERI, "shell_ceiling2", lambda self, P, Q, R, S: 0.0)
    (K0,), stats0 = _link(basis, [D])
    assert stats0.computed_quartets == 0
    assert np.all(K0 == 0.0)
