"""Configuration for the boids steering engine."""

ENGINE = {
    "capacity": 1000,          # Max agents per compute call (excess is dropped)
    "cell_size": 50.0,         # Spatial hash bucket size
    "chunk_size": 256,         # Agents per worker task, L2-sized
    "mode": "fast",            # "fast" (numba) or "safe" (numpy + thread pool)
    "workers": None,           # None = one per CPU
}

# Per-boid traits (used when a boid does not specify its own)
TRAITS = {
    "max_speed": 4.0,
    "max_force": 1.0,
    "separation": 1.2,
    "alignment": 1.5,
    "cohesion": 1.0,
    "targeting": 0.8,
}

# Flocking thresholds are squared distances
FLOCK = {
    "separation": 625.0,       # 25 units
    "alignment": 2500.0,       # 50 units
    "cohesion": 2500.0,        # 50 units
}

SIMULATION = {
    "process_per_tick": 1,     # Run the engine every N ticks
}

DEMO = {
    "flocks": 3,
    "boids_per_flock": 400,
    "bounds": 300.0,
    "distribution": "cluster",
    "ticks": 600,
    "report_every": 60,
    "target_radius": 150.0,    # Targets orbit the origin at this radius
}

BENCH = {
    "count": 10000,
    "bounds": 1000.0,
    "cell_size": 50.0,
    "ticks": 20,
    "distribution": "uniform",
}
