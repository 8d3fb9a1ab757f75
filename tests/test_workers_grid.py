import threading

import numpy as np
import pytest


@pytest.mark.parametrize("schedule", ["dynamic", "guided"])
@pytest.mark.parametrize("nthreads", [1, 3])
def test_parallel_for_covers_range_in_order(schedule, nthreads):
    from compjk.jk import WorkerPool

    pool = WorkerPool(nthreads)
    seen = []
    lock = threading.Lock()

    def body(rank, start, stop):
        assert 0 <= rank < nthreads
        with lock:
            seen.extend(range(start, stop))
        return (start, stop)

    spans = pool.parallel_for(37, body, schedule=schedule, chunk=2)
    assert sorted(seen) == list(range(37))
    assert [s for s, _ in spans] == sorted(s for s, _ in spans)
    assert spans[0][0] == 0 and spans[-1][1] == 37
    assert pool.parallel_for(0, body) == []


def test_parallel_for_rejects_unknown_schedule_and_propagates_errors():
    from compjk.jk import WorkerPool

    pool = WorkerPool(2)
    with pytest.raises(ValueError):
        pool.parallel_for(4, lambda r, a, b: None, schedule="static")

    def boom(rank, start, stop):
        raise KeyError(start)

    with pytest.raises(KeyError):
        pool.parallel_for(4, boom)
    with pytest.raises(ValueError):
        WorkerPool(0)


def test_default_num_threads_reads_environment(monkeypatch):
    from compjk.jk import default_num_threads

    monkeypatch.setenv("COMPJK_NUM_THREADS", "3")
    assert default_num_threads() == 3
    monkeypatch.setenv("COMPJK_NUM_THREADS", "0")
    with pytest.raises(ValueError):
        default_num_threads()
    monkeypatch.delenv("COMPJK_NUM_THREADS")
    assert default_num_threads() >= 1


def test_molecule_units_and_basis(water):
    from compjk.frontend import Molecule
    from compjk.frontend.periodic_table import ANGSTROM_TO_BOHR

    mol, basis, aux = water
    assert mol.natm == 3
    assert mol.nelectron == 10
    assert basis.nao == 7
    assert basis.nshell == 5

    ang = Molecule.from_atoms("H 0 0 0; H 0 0 0.74", unit="Angstrom")
    assert ang.distance_matrix()[0, 1] == pytest.approx(0.74 * ANGSTROM_TO_BOHR)
    with pytest.raises(ValueError):
        Molecule.from_atoms("H 0 0 0", unit="nm")


def test_lebedev_and_radial_quadratures():
    from compjk.grid import angular_counts, lebedev_grid
    from compjk.grid.radial import treutler_ahlrichs

    for n in (14, 50, 110):
        pts, w = lebedev_grid(n)
        assert pts.shape == (n, 3)
        assert np.sum(w) == pytest.approx(4.0 * np.pi)
        assert np.allclose(np.linalg.norm(pts, axis=1), 1.0)
    with pytest.raises(ValueError):
        lebedev_grid(51)

    r, w = treutler_ahlrichs(50)
    assert np.all(np.diff(r) > 0.0)
    # int_0^inf r^2 exp(-r^2) dr = sqrt(pi) / 4
    assert np.sum(w * np.exp(-r * r)) == pytest.approx(np.sqrt(np.pi) / 4.0, rel=1e-5)

    counts = angular_counts(30, 110, "TREUTLER")
    assert counts[0] == 14 and counts[12] == 50 and counts[-1] == 110
    assert np.all(angular_counts(30, 110) == 110)


def test_becke_weights_partition_unity(water):
    from compjk.frontend.periodic_table import bragg_radius_bohr
    from compjk.grid.becke import becke_weights

    mol, _basis, _aux = water
    coords = mol.coords_bohr
    radii = np.array([bragg_radius_bohr(s) for s in mol.elements])
    rng = np.random.default_rng(2)
    pts = rng.normal(scale=1.5, size=(20, 3))
    total = np.zeros(20)
    for atom in range(mol.natm):
        w = becke_weights(pts, np.full(20, atom), coords, radii)
        assert np.all(w >= 0.0)
        total += w
    assert np.allclose(total, 1.0)
