"""
Flocks of registered boids and the tick driver that steers them.

The engine never sees these objects: every tick the simulation copies each
enabled flock into a fresh snapshot, computes forces and integrates them back
into the boids. Stable identity lives here, as the ids handed out by
``register``.
"""

import logging
import numpy as np
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from config import boids as config
from .boid import Boid, FlockPolicy
from .engine import ForceEngine
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Flock:
    """
    A group of boids sharing thresholds and a target.

    Args:
        policy: Thresholds (squared distances); defaults from config.FLOCK
        target: Optional point every boid in the flock seeks
        planar: Keep the flock in its z layer (2D flocking)
        enabled: Skipped by the simulation while False
    """

    def __init__(self, policy: Optional[FlockPolicy] = None, target=None,
                 planar: bool = False, enabled: bool = True):
        self._policy = policy or FlockPolicy()
        self.planar = planar
        self.enabled = enabled
        self.target = target
        self._boids: Dict[int, Boid] = {}
        self._next_id = 0

    @property
    def target(self) -> Optional[np.ndarray]:
        return self._target

    @target.setter
    def target(self, value):
        if value is None:
            self._target = None
            return
        target = np.array(value, dtype=np.float64).reshape(3)
        if self.planar:
            target[2] = 0.0
        self._target = target

    def register(self, boid: Boid) -> int:
        """Add a boid; returns its id within this flock."""
        boid_id = self._next_id
        self._next_id += 1
        self._boids[boid_id] = boid
        return boid_id

    def unregister(self, boid_id: int) -> Boid:
        """Remove a boid by id. Raises KeyError for unknown ids."""
        return self._boids.pop(boid_id)

    def get(self, boid_id: int) -> Boid:
        return self._boids[boid_id]

    def ids(self) -> List[int]:
        return list(self._boids)

    def boids(self) -> List[Boid]:
        return list(self._boids.values())

    def policy(self) -> FlockPolicy:
        """Policy for this tick: the flock's thresholds with its current target."""
        return replace(self._policy, target=self._target, planar=self.planar)

    def __len__(self) -> int:
        return len(self._boids)

    def __iter__(self) -> Iterator[Boid]:
        return iter(self._boids.values())

    def __contains__(self, boid_id: int) -> bool:
        return boid_id in self._boids


class FlockSimulation:
    """
    Owns a ForceEngine and drives every registered flock once per tick.

    Args:
        capacity: Max boids per flock per tick
        cell_size: Spatial hash bucket size
        mode: Engine performance mode ("fast" or "safe")
        chunk_size: Boids per parallel task
        workers: Thread pool size for SAFE mode
        process_per_tick: Only ticks divisible by this run the engine
    """

    def __init__(
        self,
        capacity: int = config.ENGINE["capacity"],
        cell_size: float = config.ENGINE["cell_size"],
        mode=config.ENGINE["mode"],
        chunk_size: int = config.ENGINE["chunk_size"],
        workers: Optional[int] = config.ENGINE["workers"],
        process_per_tick: int = config.SIMULATION["process_per_tick"],
    ):
        if process_per_tick < 1:
            raise ConfigurationError(f"process_per_tick must be at least 1, got {process_per_tick}")

        self.engine = ForceEngine(capacity, cell_size, mode, chunk_size, workers)
        self.process_per_tick = int(process_per_tick)
        self._flocks: Dict[int, Flock] = {}
        self._next_id = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.engine.close()

    def register_flock(self, flock: Flock) -> int:
        flock_id = self._next_id
        self._next_id += 1
        self._flocks[flock_id] = flock
        logger.debug("[Flock] Registered flock %d (%d boids)", flock_id, len(flock))
        return flock_id

    def unregister_flock(self, flock_id: int) -> Flock:
        """Remove a flock by id. Raises KeyError for unknown ids."""
        return self._flocks.pop(flock_id)

    def flocks(self) -> List[Flock]:
        return list(self._flocks.values())

    def process_flock(self, flock: Flock, dt: float = 1.0) -> int:
        """
        Steer one flock now, regardless of its enabled flag.

        Boids past the engine capacity get no force this tick.

        Returns:
            Number of boids that received a force
        """
        boids = flock.boids()
        if not boids:
            return 0

        forces = self.engine.compute(boids, flock.policy())
        if flock.planar:
            forces[:, 2] = 0.0

        for boid, force in zip(boids, forces):
            boid.apply_force(force, dt)
        return len(forces)

    def step(self, tick: int, dt: float = 1.0) -> bool:
        """Run one simulation tick. Returns False when the tick is skipped by the stride."""
        if tick % self.process_per_tick != 0:
            return False

        for flock in self.flocks():
            if flock.enabled:
                self.process_flock(flock, dt)
        return True
