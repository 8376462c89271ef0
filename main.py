"""
Headless Boids Demo
===================

Several flocks chase targets that orbit the origin. Prints flock statistics
every few ticks; no window, no rendering.

Usage:
    python main.py                    # Defaults from config.DEMO
    python main.py --mode safe        # numpy + thread pool engine path
    python main.py --planar           # 2D flocks on a disk
    python main.py --ticks 300 --flocks 2 --stride 2
"""

import argparse
import logging
import math
import time
import numpy as np

from config import boids as config
from boids import Boid, Flock, FlockSimulation
from tools.presets import DISTRIBUTIONS, generate_distribution


def build_flocks(num_flocks: int, boids_per_flock: int, bounds: float,
                 distribution: str, planar: bool = False, seed: int = 0):
    """Spawn flocks of boids from a preset distribution."""
    flocks = []
    for f in range(num_flocks):
        positions, velocities = generate_distribution(distribution, boids_per_flock, bounds, seed=seed + f)
        if planar:
            positions[:, 2] = 0.0
            velocities[:, 2] = 0.0
        flock = Flock(planar=planar)
        for pos, vel in zip(positions, velocities):
            flock.register(Boid(position=pos, velocity=vel))
        flocks.append(flock)
    return flocks


def orbit_target(index: int, count: int, tick: int, radius: float) -> tuple:
    """Target of flock `index`: a point circling the origin, phase-shifted per flock."""
    angle = tick * 0.01 + 2.0 * math.pi * index / max(count, 1)
    return (radius * math.cos(angle), radius * math.sin(angle), 0.0)


def flock_stats(flock: Flock) -> dict:
    boids = flock.boids()
    if not boids:
        return {"center": np.zeros(3), "speed": 0.0, "spread": 0.0}
    positions = np.array([b.position for b in boids])
    speeds = np.linalg.norm(np.array([b.velocity for b in boids]), axis=1)
    center = positions.mean(axis=0)
    return {
        "center": center,
        "speed": float(speeds.mean()),
        "spread": float(np.linalg.norm(positions - center, axis=1).mean()),
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Headless boids flocking demo")
    parser.add_argument("--flocks", type=int, default=config.DEMO["flocks"], help="Number of flocks")
    parser.add_argument("--boids", type=int, default=config.DEMO["boids_per_flock"], help="Boids per flock")
    parser.add_argument("--ticks", type=int, default=config.DEMO["ticks"], help="Ticks to simulate")
    parser.add_argument("--distribution", type=str, default=config.DEMO["distribution"],
                        choices=sorted(DISTRIBUTIONS), help="Spawn layout")
    parser.add_argument("--mode", type=str, default=config.ENGINE["mode"], help="Engine path (fast/safe)")
    parser.add_argument("--stride", type=int, default=config.SIMULATION["process_per_tick"],
                        help="Run the engine every N ticks")
    parser.add_argument("--planar", action="store_true", help="Flat 2D flocks")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show engine log messages")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(message)s")

    distribution = "disk" if args.planar else args.distribution
    flocks = build_flocks(args.flocks, args.boids, config.DEMO["bounds"], distribution, args.planar)
    capacity = max(config.ENGINE["capacity"], args.boids)
    radius = config.DEMO["target_radius"]
    report_every = config.DEMO["report_every"]

    print(f"[Demo] {args.flocks} flock(s) x {args.boids} boids | {distribution} | mode={args.mode}")

    with FlockSimulation(capacity=capacity, mode=args.mode, process_per_tick=args.stride) as sim:
        for flock in flocks:
            sim.register_flock(flock)

        start = time.perf_counter()
        for tick in range(args.ticks):
            for i, flock in enumerate(flocks):
                flock.target = orbit_target(i, len(flocks), tick, radius)
            sim.step(tick)

            if tick % report_every == 0 or tick == args.ticks - 1:
                for i, flock in enumerate(flocks):
                    stats = flock_stats(flock)
                    cx, cy, cz = stats["center"]
                    print(f"[Demo] tick {tick:5d} | flock {i} | center ({cx:7.1f}, {cy:7.1f}, {cz:7.1f}) "
                          f"| speed {stats['speed']:.2f} | spread {stats['spread']:.1f}")

        elapsed = time.perf_counter() - start

    if args.ticks > 0:
        print(f"[Demo] {args.ticks} ticks in {elapsed:.2f}s ({elapsed / args.ticks * 1000:.2f} ms/tick)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
