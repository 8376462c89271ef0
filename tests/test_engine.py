import numpy as np
import pytest

from boids import Boid, ConfigurationError, FlockPolicy, ForceEngine, PerformanceMode, partition_chunks
from tools.presets import generate_distribution


@pytest.mark.parametrize("count, chunk_size", [(0, 4), (1, 4), (10, 3), (256, 256), (1000, 256)])
def test_partition_chunks_covers_range_exactly(count, chunk_size):
    starts, ends = partition_chunks(count, chunk_size)
    covered = np.concatenate([np.arange(s, e) for s, e in zip(starts, ends)]) if count else np.array([])
    assert covered.tolist() == list(range(count))
    assert ((ends - starts) <= chunk_size).all()
    assert ((ends - starts) > 0).all()


def test_partition_chunks_rejects_non_positive_size():
    with pytest.raises(ConfigurationError):
        partition_chunks(10, 0)


def test_output_length_matches_snapshot(mode):
    with ForceEngine(capacity=50, cell_size=10.0, mode=mode) as engine:
        boids = [Boid(position=(i, i, 0.0)) for i in range(20)]
        forces = engine.compute(boids)
        assert forces.shape == (20, 3)
        assert forces.dtype == np.float32

        forces = engine.compute([Boid(position=(i, 0.0, 0.0)) for i in range(80)])
        assert forces.shape == (50, 3)

        assert engine.compute([]).shape == (0, 3)


def test_single_boid_seeks_target(mode):
    with ForceEngine(capacity=4, cell_size=50.0, mode=mode) as engine:
        forces = engine.compute([Boid()], FlockPolicy(target=(10.0, 0.0, 0.0)))
    assert forces[0] == pytest.approx([0.8, 0.0, 0.0], abs=1e-6)


def test_isolated_boid_has_zero_force(mode):
    with ForceEngine(capacity=4, cell_size=50.0, mode=mode) as engine:
        forces = engine.compute([Boid(), Boid(position=(1000.0, 0.0, 0.0))])
    assert not forces.any()


def test_stacked_boids_never_produce_nan(mode):
    positions = np.zeros((30, 3))
    velocities = np.ones((30, 3))
    with ForceEngine(capacity=30, cell_size=5.0, mode=mode) as engine:
        forces = engine.compute_arrays(positions, velocities)
    assert np.isfinite(forces).all()


def test_close_pair_pushes_apart_along_x(mode):
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    with ForceEngine(capacity=2, cell_size=50.0, mode=mode) as engine:
        forces = engine.compute_arrays(positions, np.zeros((2, 3)), FlockPolicy(separation=625.0))
    assert forces[0, 0] < 0.0 < forces[1, 0]
    assert forces[:, 1:] == pytest.approx(np.zeros((2, 2)), abs=1e-6)


def test_safe_and_fast_paths_agree(rng):
    positions, velocities = generate_distribution("cluster", 1500, 200.0, seed=7)
    traits = np.column_stack([rng.uniform(2.0, 6.0, 1500), rng.uniform(0.5, 1.5, 1500),
                              rng.uniform(0.5, 2.0, (1500, 4))])
    policy = FlockPolicy(400.0, 1600.0, 2500.0, target=(50.0, -20.0, 10.0))

    with ForceEngine(capacity=1500, cell_size=40.0, mode="safe", chunk_size=128) as safe:
        expected = safe.compute_arrays(positions, velocities, policy, traits)
    with ForceEngine(capacity=1500, cell_size=40.0, mode="fast", chunk_size=128) as fast:
        actual = fast.compute_arrays(positions, velocities, policy, traits)

    np.testing.assert_allclose(actual, expected, atol=1e-4)


def test_planar_paths_agree():
    positions, velocities = generate_distribution("disk", 800, 150.0, seed=3)
    positions[::2, 2] = 30.0
    policy = FlockPolicy(planar=True)

    with ForceEngine(capacity=800, cell_size=25.0, mode="safe") as safe:
        expected = safe.compute_arrays(positions, velocities, policy)
    with ForceEngine(capacity=800, cell_size=25.0, mode="fast") as fast:
        actual = fast.compute_arrays(positions, velocities, policy)

    np.testing.assert_allclose(actual, expected, atol=1e-4)


def test_uniform_10k_forces_independent_of_chunk_size():
    positions, velocities = generate_distribution("uniform", 10_000, 1000.0, seed=11)
    policy = FlockPolicy(625.0, 625.0, 625.0)
    results = []
    for chunk_size in (64, 256, 10_000):
        with ForceEngine(capacity=10_000, cell_size=50.0, mode="fast", chunk_size=chunk_size) as engine:
            assert len(engine.grid.query_cells(positions[0], policy.interaction_radius)) == 27
            results.append(engine.compute_arrays(positions, velocities, policy))

    assert results[0].shape == (10_000, 3)
    np.testing.assert_allclose(results[0], results[1], rtol=0, atol=1e-6)
    np.testing.assert_allclose(results[0], results[2], rtol=0, atol=1e-6)


def test_safe_mode_chunk_size_does_not_change_forces():
    positions, velocities = generate_distribution("sphere", 600, 120.0, seed=5)
    results = []
    for chunk_size in (1, 50, 600):
        with ForceEngine(capacity=600, cell_size=30.0, mode="safe", chunk_size=chunk_size, workers=4) as engine:
            results.append(engine.compute_arrays(positions, velocities))
    np.testing.assert_array_equal(results[0], results[1])
    np.testing.assert_array_equal(results[0], results[2])


def test_engine_is_reusable_across_ticks(mode):
    with ForceEngine(capacity=100, cell_size=20.0, mode=mode) as engine:
        first = engine.compute_arrays(np.zeros((1, 3)), np.zeros((1, 3)), FlockPolicy(target=(5.0, 0.0, 0.0)))
        positions, velocities = generate_distribution("uniform", 100, 100.0, seed=1)
        engine.compute_arrays(positions, velocities)
        again = engine.compute_arrays(np.zeros((1, 3)), np.zeros((1, 3)), FlockPolicy(target=(5.0, 0.0, 0.0)))
    np.testing.assert_array_equal(first, again)


def test_mode_accepts_enum_and_name():
    with ForceEngine(capacity=4, mode=PerformanceMode.SAFE) as engine:
        assert engine.mode is PerformanceMode.SAFE
    with ForceEngine(capacity=4, mode="fast") as engine:
        assert engine.mode is PerformanceMode.FAST


@pytest.mark.parametrize("kwargs", [
    {"capacity": 0},
    {"cell_size": 0.0},
    {"cell_size": -5.0},
    {"chunk_size": 0},
    {"workers": 0},
    {"mode": "turbo"},
])
def test_invalid_configuration_is_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        ForceEngine(**kwargs)


def test_close_keeps_engine_usable():
    engine = ForceEngine(capacity=8, mode="safe")
    engine.compute([Boid()], FlockPolicy(target=(1.0, 0.0, 0.0)))
    engine.close()
    forces = engine.compute([Boid()], FlockPolicy(target=(1.0, 0.0, 0.0)))
    engine.close()
    assert forces[0, 0] > 0.0


def test_huge_finite_threshold_spans_whole_flock(mode):
    positions, velocities = generate_distribution("sphere", 60, 30.0, seed=6)
    policy = FlockPolicy(separation=1.0, alignment=1e12, cohesion=1e12)
    with ForceEngine(capacity=60, cell_size=1.0, mode=mode) as engine:
        forces = engine.compute_arrays(positions, velocities, policy)
    assert forces.shape == (60, 3)
    assert np.isfinite(forces).all()
    assert np.abs(forces).sum() > 0.0


def test_huge_threshold_paths_agree():
    positions, velocities = generate_distribution("cluster", 120, 40.0, seed=12)
    policy = FlockPolicy(separation=16.0, alignment=1e10, cohesion=1e10)
    with ForceEngine(capacity=120, cell_size=2.0, mode="safe") as safe:
        expected = safe.compute_arrays(positions, velocities, policy)
    with ForceEngine(capacity=120, cell_size=2.0, mode="fast") as fast:
        actual = fast.compute_arrays(positions, velocities, policy)
    np.testing.assert_allclose(actual, expected, atol=1e-4)
