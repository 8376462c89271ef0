import numpy as np
import pytest

from tools.bench import default_settings, main, parse_number, run_benchmark
from tools.presets import DISTRIBUTIONS, PRESETS, generate_distribution, get_preset_config


@pytest.mark.parametrize("value, expected", [("10000", 10_000), ("10k", 10_000), ("1.5K", 1_500), ("2m", 2_000_000)])
def test_parse_number(value, expected):
    assert parse_number(value) == expected


@pytest.mark.parametrize("distribution", sorted(DISTRIBUTIONS))
def test_distributions_have_expected_shapes(distribution):
    positions, velocities = generate_distribution(distribution, 300, 100.0, speed=2.0, seed=4)
    assert positions.shape == (300, 3)
    assert velocities.shape == (300, 3)
    assert np.isfinite(positions).all()


def test_disk_distribution_is_flat():
    positions, velocities = generate_distribution("disk", 200, 50.0, seed=2)
    assert not positions[:, 2].any()
    assert not velocities[:, 2].any()
    assert (np.linalg.norm(positions[:, :2], axis=1) <= 50.0).all()


def test_distribution_seed_is_repeatable():
    a, _ = generate_distribution("cluster", 100, 50.0, seed=8)
    b, _ = generate_distribution("cluster", 100, 50.0, seed=8)
    assert np.array_equal(a, b)


def test_unknown_distribution_raises():
    with pytest.raises(ValueError):
        generate_distribution("torus", 10, 1.0)


def test_preset_lookup_returns_copy():
    preset = get_preset_config("uniform_10k")
    preset["count"] = 1
    assert PRESETS["uniform_10k"]["count"] == 10_000
    assert get_preset_config("missing") is None


def test_run_benchmark_small_safe():
    settings = default_settings()
    settings.update({"count": 200, "bounds": 100.0, "ticks": 2, "mode": "safe"})
    result = run_benchmark(settings)
    assert result["ticks"] == 2
    assert result["forces"].shape == (200, 3)
    assert result["min_ms"] <= result["mean_ms"] <= result["max_ms"]


def test_bench_cli(capsys):
    assert main(["--count", "300", "--ticks", "1", "--mode", "safe", "--bounds", "100"]) == 0
    out = capsys.readouterr().out
    assert "[Bench] 300 boids" in out

    assert main(["--list"]) == 0
    assert "uniform_10k" in capsys.readouterr().out

    assert main(["--preset", "nope"]) == 1
