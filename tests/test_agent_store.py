import numpy as np
import pytest

from boids import AgentStore, Boid, BoidTraits, ConfigurationError


def make_boids(n):
    return [Boid(position=(i, 0.0, 0.0), velocity=(0.0, i, 0.0)) for i in range(n)]


def test_load_copies_records_in_order():
    store = AgentStore(capacity=8)
    boids = make_boids(3)
    boids[1].traits = BoidTraits(max_speed=7.0, targeting=0.1)

    assert store.load(boids) == 3
    assert store.count == 3
    assert store.get_position(2).tolist() == [2.0, 0.0, 0.0]
    assert store.get_velocity(1).tolist() == [0.0, 1.0, 0.0]
    assert store.get_traits(1)[0] == 7.0
    assert store.get_traits(1)[5] == pytest.approx(0.1)
    assert store.get_traits(0).tolist() == BoidTraits().as_array().tolist()


def test_load_truncates_past_capacity():
    store = AgentStore(capacity=2)
    assert store.load(make_boids(5)) == 2
    assert store.count == 2
    assert store.store().shape == (2, 3)


def test_load_zeroes_forces():
    store = AgentStore(capacity=4)
    store.load(make_boids(3))
    store.set_force(1, (1.0, 2.0, 3.0))
    assert store.get_force(1).tolist() == [1.0, 2.0, 3.0]

    store.load(make_boids(3))
    assert not store.forces[:3].any()


def test_clear_resets_count_and_forces():
    store = AgentStore(capacity=4)
    store.load(make_boids(2))
    store.set_force(0, (5.0, 5.0, 5.0))
    store.clear()
    assert store.count == 0
    assert not store.forces.any()


def test_store_returns_float32_in_snapshot_order():
    store = AgentStore(capacity=4)
    store.load(make_boids(3))
    for i in range(3):
        store.set_force(i, (i, -i, 0.5))

    out = store.store()
    assert out.dtype == np.float32
    assert out[:, 0].tolist() == [0.0, 1.0, 2.0]

    buffer = np.full((4, 3), -1.0, dtype=np.float32)
    view = store.store(buffer)
    assert view.shape == (3, 3)
    assert buffer[3].tolist() == [-1.0, -1.0, -1.0]
    assert buffer[2].tolist() == [2.0, -2.0, 0.5]


def test_load_arrays_with_and_without_traits():
    store = AgentStore(capacity=10)
    positions = np.arange(12, dtype=float).reshape(4, 3)
    velocities = np.ones((4, 3))

    assert store.load_arrays(positions, velocities) == 4
    assert np.array_equal(store.active_positions, positions)
    assert store.get_traits(3).tolist() == BoidTraits().as_array().tolist()

    traits = np.tile([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], (4, 1))
    store.load_arrays(positions, velocities, traits)
    assert store.get_traits(0).tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def test_load_arrays_truncates_and_validates_shapes():
    store = AgentStore(capacity=3)
    assert store.load_arrays(np.zeros((5, 3)), np.zeros((5, 3))) == 3

    with pytest.raises(ValueError):
        store.load_arrays(np.zeros((5, 2)), np.zeros((5, 2)))
    with pytest.raises(ValueError):
        store.load_arrays(np.zeros((5, 3)), np.zeros((4, 3)))
    with pytest.raises(ValueError):
        store.load_arrays(np.zeros((2, 3)), np.zeros((2, 3)), np.zeros((2, 5)))


def test_non_positive_capacity_is_rejected():
    with pytest.raises(ConfigurationError):
        AgentStore(capacity=0)
