import numpy as np
import pytest


def _densities(n, count, seed):
    rng = np.random.default_rng(seed)
    out = []
    for _ in range(count):
        a = rng.normal(size=(n, n))
        out.append(a + a.T)
    return out


def test_incfock_cadence_and_floor():
    from compjk.jk import IncrementalFock

    inc = IncrementalFock(enabled=True, full_fock_every=3, convergence=1e-5)
    Ds = _densities(4, 6, seed=3)

    flags = []
    for D in Ds[:5]:
        D_ref, flag = inc.setup([D])
        flags.append(flag)
        inc.finish([D])
    # first build is full; counted iterations 0,1 incremental, 2 full, 3 incremental
    assert flags == [False, True, True, False, True]
    assert inc.count == 4

    # below the convergence floor: full build, not counted
    D_ref, flag = inc.setup([Ds[5]], density_change=1e-9)
    assert flag is False
    assert inc.count == 4
    assert np.allclose(D_ref[0], Ds[5])


def test_incfock_returns_density_difference():
    from compjk.jk import IncrementalFock

    inc = IncrementalFock(enabled=True, full_fock_every=100, convergence=1e-5)
    D1, D2 = _densities(5, 2, seed=4)
    inc.setup([D1])
    inc.finish([D1])
    D_ref, flag = inc.setup([D2])
    assert flag
    assert np.allclose(D_ref[0], D2 - D1)


def test_incfock_channel_change_and_reset_force_full_builds():
    from compjk.jk import IncrementalFock

    inc = IncrementalFock(enabled=True, full_fock_every=100, convergence=1e-5)
    D1, D2, D3 = _densities(3, 3, seed=5)
    inc.setup([D1])
    inc.finish([D1])

    _, flag = inc.setup([D2, D3])
    assert flag is False
    inc.finish([D2, D3])

    _, flag = inc.setup([D3, D2])
    assert flag is True
    inc.finish([D3, D2])

    inc.reset()
    assert inc.previous_density is None
    _, flag = inc.setup([D1, D2])
    assert flag is False


def test_incfock_disabled_and_invalid_cadence():
    from compjk.jk import IncrementalFock, density_rms_change

    inc = IncrementalFock(enabled=False, full_fock_every=1, convergence=0.0)
    D1, D2 = _densities(3, 2, seed=6)
    inc.finish([D1])
    D_ref, flag = inc.setup([D2])
    assert flag is False
    assert np.allclose(D_ref[0], D2)
    assert inc.previous_density is None

    assert density_rms_change([D1], None) == float("inf")
    assert density_rms_change([D1], [D1]) == 0.0

    with pytest.raises(ValueError, match="INCFOCK_FULL_FOCK_EVERY"):
        IncrementalFock(enabled=True, full_fock_every=0, convergence=1e-5)


def test_incremental_builds_add_up_to_full_build(water, water_densities):
    from compjk.jk import CompositeJK, CompositeJKOptions

    mol, basis, aux = water
    D1, Dx = water_densities
    Da = 0.7 * D1 + 0.3 * Dx
    Db = 0.4 * D1 + 0.6 * Dx

    opts = CompositeJKOptions(scf_type="DFDIRJ+LINK", incfock=True, nthreads=1)
    jk = CompositeJK(mol, basis, aux, opts)
    results = [jk.compute([D]) for D in (D1, Da, Db)]
    assert [r.incremental for r in results] == [False, True, True]

    ref = CompositeJK(mol, basis, aux, CompositeJKOptions(scf_type="DFDIRJ+LINK", nthreads=1)).compute([Db])
    J = sum(r.J[0] for r in results)
    K = sum(r.K[0] for r in results)
    assert np.allclose(J, ref.J[0], atol=1e-9)
    assert np.allclose(K, ref.K[0], atol=1e-9)

    jk.reset()
    r = jk.compute([Db])
    assert r.incremental is False
    assert np.allclose(r.J[0], ref.J[0], atol=1e-10)
