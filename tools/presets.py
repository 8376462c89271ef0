"""
Spawn Distributions and Benchmark Presets
=========================================

Initial boid layouts for the demo and the benchmark, plus a few named
benchmark scenarios.

Distributions:
- uniform: Filled cube
- sphere: Filled ball
- shell: Hollow spherical shell
- cluster: Several dense gaussian blobs
- disk: Flat disk in the XY plane (for planar flocks)
"""

import numpy as np
from typing import Dict, Optional, Tuple

# =============================================================================
# SPAWN DISTRIBUTIONS
# =============================================================================

DISTRIBUTIONS = {
    "uniform": "Filled cube",
    "sphere": "Filled ball",
    "shell": "Hollow spherical shell",
    "cluster": "Dense gaussian blobs",
    "disk": "Flat disk in the XY plane",
}


def _random_directions(rng: np.random.Generator, n: int) -> np.ndarray:
    """Unit vectors uniformly distributed on the sphere."""
    v = rng.normal(0.0, 1.0, (n, 3))
    norms = np.linalg.norm(v, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return v / norms


def generate_distribution(distribution: str, n: int, R: float, speed: float = 2.0,
                          seed: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Generate initial positions and velocities.

    Args:
        distribution: Key of DISTRIBUTIONS
        n: Number of boids
        R: Size of the layout (cube edge for uniform, radius otherwise)
        speed: Initial speed of every boid (random headings)
        seed: RNG seed

    Returns:
        positions: (n, 3) array
        velocities: (n, 3) array
    """
    if distribution not in DISTRIBUTIONS:
        raise ValueError(f"Unknown distribution: {distribution!r} (choose from {', '.join(DISTRIBUTIONS)})")

    rng = np.random.default_rng(seed)
    velocities = _random_directions(rng, n) * speed

    if distribution == "uniform":
        positions = rng.uniform(0.0, R, (n, 3))

    elif distribution == "sphere":
        # Cube root keeps density uniform in volume
        r = R * np.cbrt(rng.uniform(0.0, 1.0, n))
        positions = _random_directions(rng, n) * r[:, None]

    elif distribution == "shell":
        r = R * rng.uniform(0.9, 1.0, n)
        positions = _random_directions(rng, n) * r[:, None]

    elif distribution == "cluster":
        num_clusters = max(1, min(8, n // 50))
        centers = rng.uniform(-R, R, (num_clusters, 3))
        membership = rng.integers(0, num_clusters, n)
        positions = centers[membership] + rng.normal(0.0, R * 0.08, (n, 3))

    else:  # disk
        r = R * np.sqrt(rng.uniform(0.0, 1.0, n))
        theta = rng.uniform(0.0, 2.0 * np.pi, n)
        positions = np.zeros((n, 3))
        positions[:, 0] = r * np.cos(theta)
        positions[:, 1] = r * np.sin(theta)
        velocities[:, 2] = 0.0

    return positions.astype(np.float64), velocities.astype(np.float64)


# =============================================================================
# BENCHMARK PRESETS
# =============================================================================

PRESETS: Dict[str, dict] = {}

PRESETS["uniform_10k"] = {
    "name": "Uniform 10K",
    "description": "10,000 boids in a 1000^3 cube, 25-unit radius, cell 50",
    "count": 10_000,
    "bounds": 1000.0,
    "cell_size": 50.0,
    "distribution": "uniform",
    "thresholds": (625.0, 625.0, 625.0),
    "planar": False,
}

PRESETS["dense_flock"] = {
    "name": "Dense Flock",
    "description": "5,000 boids packed in clusters, default thresholds",
    "count": 5_000,
    "bounds": 300.0,
    "cell_size": 50.0,
    "distribution": "cluster",
    "thresholds": (625.0, 2500.0, 2500.0),
    "planar": False,
}

PRESETS["flat_school"] = {
    "name": "Flat School",
    "description": "20,000 boids on a disk, planar queries",
    "count": 20_000,
    "bounds": 1500.0,
    "cell_size": 50.0,
    "distribution": "disk",
    "thresholds": (625.0, 2500.0, 2500.0),
    "planar": True,
}


def get_preset_config(key: str) -> Optional[dict]:
    """Copy of a preset, or None if the key is unknown."""
    preset = PRESETS.get(key)
    return dict(preset) if preset is not None else None
