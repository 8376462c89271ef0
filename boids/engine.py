"""
Parallel flocking force engine.

One engine, two interchangeable paths chosen at construction:
- FAST: Numba JIT kernel, prange over chunks of boids
- SAFE: numpy per-boid math, chunks submitted to a thread pool

Every call is a synchronous fork-join: load the snapshot, rebuild the spatial
hash, partition [0, count) into contiguous chunks, compute every chunk, then
return the forces. Each chunk owns an exclusive slice of the force array, so
no two workers ever write the same slot.
"""

import logging
import os
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional, Tuple

from config import boids as config
from .agent_store import AgentStore
from .boid import FlockPolicy
from .errors import ConfigurationError
from .forces import compute_forces_chunked, steering_force, warmup
from .spatial_hash import SpatialHash

logger = logging.getLogger(__name__)


class PerformanceMode(Enum):
    SAFE = "safe"    # numpy + thread pool
    FAST = "fast"    # Numba parallel kernel


def partition_chunks(count: int, chunk_size: int) -> Tuple[np.ndarray, np.ndarray]:
    """Split [0, count) into contiguous [start, end) chunks of at most chunk_size."""
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
    starts = np.arange(0, count, chunk_size, dtype=np.int64)
    ends = np.minimum(starts + chunk_size, count)
    return starts, ends


class ForceEngine:
    """
    Computes one steering force per boid from its spatial neighbors.

    Args:
        capacity: Max boids per call; longer snapshots are truncated
        cell_size: Spatial hash bucket size
        mode: PerformanceMode or its name
        chunk_size: Boids per parallel task
        workers: Thread pool size for SAFE mode (None = CPU count)
    """

    def __init__(
        self,
        capacity: int = config.ENGINE["capacity"],
        cell_size: float = config.ENGINE["cell_size"],
        mode=config.ENGINE["mode"],
        chunk_size: int = config.ENGINE["chunk_size"],
        workers: Optional[int] = config.ENGINE["workers"],
    ):
        try:
            self.mode = PerformanceMode(mode)
        except ValueError:
            raise ConfigurationError(f"unknown performance mode: {mode!r}") from None
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        if workers is not None and workers <= 0:
            raise ConfigurationError(f"workers must be positive, got {workers}")

        self.store = AgentStore(capacity)
        self.grid = SpatialHash(cell_size, capacity)
        self.chunk_size = int(chunk_size)
        self.workers = workers or os.cpu_count() or 1
        self._pool: Optional[ThreadPoolExecutor] = None

        if self.mode is PerformanceMode.FAST:
            warmup()

        logger.info(
            "[Engine] %s mode, capacity=%d, cell_size=%.2f, chunk_size=%d",
            self.mode.value, capacity, self.grid.cell_size, self.chunk_size,
        )

    @property
    def capacity(self) -> int:
        return self.store.capacity

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Shut down the worker pool (SAFE mode). The engine stays usable."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def compute(self, snapshot, policy: Optional[FlockPolicy] = None) -> np.ndarray:
        """
        Forces for a snapshot of Boid records.

        Returns:
            float32 array (n, 3), index-aligned with the snapshot after truncation
        """
        self.store.load(snapshot)
        return self._run(policy or FlockPolicy())

    def compute_arrays(self, positions, velocities, policy: Optional[FlockPolicy] = None,
                       traits=None) -> np.ndarray:
        """Forces for (n, 3) position/velocity arrays and optional (n, 6) traits."""
        self.store.load_arrays(positions, velocities, traits)
        return self._run(policy or FlockPolicy())

    def _run(self, policy: FlockPolicy) -> np.ndarray:
        store = self.store
        count = store.count
        if count == 0:
            return store.store()

        self.grid.rebuild(store.active_positions)
        starts, ends = partition_chunks(count, self.chunk_size)

        if self.mode is PerformanceMode.FAST:
            self._dispatch_fast(policy, starts, ends)
        else:
            self._dispatch_safe(policy, starts, ends)

        return store.store()

    def _dispatch_fast(self, policy: FlockPolicy, starts: np.ndarray, ends: np.ndarray):
        store = self.store
        grid = self.grid
        count = store.count
        has_target = policy.target is not None
        target = policy.target if has_target else np.zeros(3)

        compute_forces_chunked(
            store.positions[:count],
            store.velocities[:count],
            store.max_speeds[:count],
            store.max_forces[:count],
            store.separations[:count],
            store.alignments[:count],
            store.cohesions[:count],
            store.targetings[:count],
            grid.cells,
            grid.sorted_indices,
            grid.cell_keys,
            grid.cell_starts,
            grid.cell_counts,
            grid.cell_bounds[0],
            grid.cell_bounds[1],
            grid.grid_radius(policy.interaction_radius),
            bool(policy.planar),
            float(policy.separation),
            float(policy.alignment),
            float(policy.cohesion),
            has_target,
            target,
            starts,
            ends,
            store.forces[:count],
        )

    def _dispatch_safe(self, policy: FlockPolicy, starts: np.ndarray, ends: np.ndarray):
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="boids")

        forces = self.store.forces
        futures = [
            self._pool.submit(self._compute_chunk, int(start), forces[start:end], policy)
            for start, end in zip(starts, ends)
        ]
        # Fork-join barrier; re-raises anything a worker raised
        for future in futures:
            future.result()

    def _compute_chunk(self, start: int, out: np.ndarray, policy: FlockPolicy):
        store = self.store
        grid = self.grid
        radius = policy.interaction_radius
        for offset in range(out.shape[0]):
            i = start + offset
            neighbors = grid.query_neighbors(store.positions[i], radius, policy.planar)
            out[offset] = steering_force(store, i, neighbors, policy)
