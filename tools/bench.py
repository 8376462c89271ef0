"""
Force Engine Benchmark
======================

Times ForceEngine.compute_arrays on a spawned layout.

Usage:
    python -m tools.bench                              # 10K uniform boids, fast mode
    python -m tools.bench --mode safe --count 2k       # numpy + thread pool path
    python -m tools.bench --preset flat_school         # Named scenario
    python -m tools.bench --chunk-size 64 --ticks 50   # Tuning runs
    python -m tools.bench --list                       # List presets
"""

import argparse
import logging
import time
import numpy as np

from config import boids as config
from boids import FlockPolicy, ForceEngine, PerformanceMode
from tools.presets import DISTRIBUTIONS, PRESETS, generate_distribution, get_preset_config


def parse_number(value: str) -> int:
    """Parse number with optional suffix (k, m, K, M)."""
    value = value.strip().lower()
    multipliers = {'k': 1_000, 'm': 1_000_000}

    for suffix, mult in multipliers.items():
        if value.endswith(suffix):
            return int(float(value[:-1]) * mult)

    return int(value)


def default_settings() -> dict:
    return {
        "count": config.BENCH["count"],
        "bounds": config.BENCH["bounds"],
        "cell_size": config.BENCH["cell_size"],
        "distribution": config.BENCH["distribution"],
        "thresholds": (config.FLOCK["separation"], config.FLOCK["alignment"], config.FLOCK["cohesion"]),
        "planar": False,
        "ticks": config.BENCH["ticks"],
        "mode": config.ENGINE["mode"],
        "chunk_size": config.ENGINE["chunk_size"],
        "workers": config.ENGINE["workers"],
        "target": None,
        "seed": 0,
    }


def run_benchmark(settings: dict) -> dict:
    """
    Run the engine for settings["ticks"] ticks on one fixed layout.

    Returns:
        Timing summary: count, ticks, mean/min/max milliseconds per tick,
        and the forces of the last tick
    """
    positions, velocities = generate_distribution(
        settings["distribution"], settings["count"], settings["bounds"], seed=settings["seed"]
    )
    separation, alignment, cohesion = settings["thresholds"]
    policy = FlockPolicy(separation, alignment, cohesion, target=settings["target"], planar=settings["planar"])

    timings = []
    forces = None
    with ForceEngine(
        capacity=settings["count"],
        cell_size=settings["cell_size"],
        mode=settings["mode"],
        chunk_size=settings["chunk_size"],
        workers=settings["workers"],
    ) as engine:
        for _ in range(settings["ticks"]):
            start = time.perf_counter()
            forces = engine.compute_arrays(positions, velocities, policy)
            timings.append((time.perf_counter() - start) * 1000.0)

    timings = np.array(timings) if timings else np.zeros(1)
    return {
        "count": settings["count"],
        "ticks": settings["ticks"],
        "mean_ms": float(timings.mean()),
        "min_ms": float(timings.min()),
        "max_ms": float(timings.max()),
        "forces": forces,
    }


def list_presets():
    print(f"\n[List] {len(PRESETS)} preset(s):\n")
    for key in sorted(PRESETS):
        preset = PRESETS[key]
        print(f"  {key:15s} | {preset['count']:>8,} boids | {preset['description']}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Boids force engine benchmark")
    parser.add_argument("--list", action="store_true", help="List benchmark presets")
    parser.add_argument("--preset", type=str, help="Use preset by name (e.g., 'uniform_10k')")
    parser.add_argument("--count", "-n", type=str, help="Number of boids (e.g., 10000, 10k)")
    parser.add_argument("--bounds", type=float, help="Layout size")
    parser.add_argument("--distribution", type=str, choices=sorted(DISTRIBUTIONS), help="Spawn layout")
    parser.add_argument("--cell-size", type=float, help="Spatial hash cell size")
    parser.add_argument("--chunk-size", type=int, help="Boids per parallel task")
    parser.add_argument("--mode", type=str, choices=[m.value for m in PerformanceMode], help="Engine path")
    parser.add_argument("--workers", type=int, help="Thread pool size (safe mode)")
    parser.add_argument("--ticks", "-t", type=int, help="Number of timed ticks")
    parser.add_argument("--planar", action="store_true", help="Planar (2D) neighbor queries")
    parser.add_argument("--target", type=float, nargs=3, metavar=("X", "Y", "Z"), help="Target point")
    parser.add_argument("--seed", type=int, help="Layout seed")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show engine log messages")
    args = parser.parse_args(argv)

    if args.list:
        list_presets()
        return 0

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(message)s")

    settings = default_settings()
    if args.preset:
        preset = get_preset_config(args.preset)
        if preset is None:
            print(f"[Bench] Unknown preset: {args.preset}")
            list_presets()
            return 1
        settings.update({k: preset[k] for k in ("count", "bounds", "cell_size", "distribution", "thresholds", "planar")})
        print(f"[Bench] Using preset: {preset['name']}")

    if args.count:
        try:
            settings["count"] = parse_number(args.count)
        except ValueError:
            print(f"[Bench] Invalid count value: {args.count}")
            return 1

    overrides = {
        "bounds": args.bounds,
        "distribution": args.distribution,
        "cell_size": args.cell_size,
        "chunk_size": args.chunk_size,
        "mode": args.mode,
        "workers": args.workers,
        "ticks": args.ticks,
        "seed": args.seed,
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})
    if args.planar:
        settings["planar"] = True
    if args.target:
        settings["target"] = args.target

    print(f"[Bench] {settings['count']:,} boids | {settings['distribution']} | "
          f"mode={settings['mode']} | cell={settings['cell_size']} | chunk={settings['chunk_size']}")

    result = run_benchmark(settings)

    print(f"[Bench] {result['ticks']} ticks: mean {result['mean_ms']:.2f} ms | "
          f"min {result['min_ms']:.2f} ms | max {result['max_ms']:.2f} ms")
    if result["forces"] is not None and len(result["forces"]):
        magnitudes = np.linalg.norm(result["forces"], axis=1)
        print(f"[Bench] Force magnitude: mean {magnitudes.mean():.3f} | max {magnitudes.max():.3f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
