"""Structure-of-arrays storage for one tick's worth of boids."""

import logging
import numpy as np

from config import boids as config
from .boid import TRAIT_FIELDS
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class AgentStore:
    """
    Fixed-capacity SoA buffer: positions, velocities, six traits and forces.

    Allocated once and reloaded every tick. Slot i is only meaningful for
    the tick it was loaded in. Snapshots longer than the capacity are
    truncated, not rejected.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ConfigurationError(f"capacity must be positive, got {capacity}")

        self._capacity = int(capacity)
        self._count = 0

        # Boid data (float64 for physics accuracy)
        self.positions = np.zeros((self._capacity, 3), dtype=np.float64)
        self.velocities = np.zeros((self._capacity, 3), dtype=np.float64)
        self.forces = np.zeros((self._capacity, 3), dtype=np.float64)

        # Traits, one array each
        self.max_speeds = np.full(self._capacity, config.TRAITS["max_speed"], dtype=np.float64)
        self.max_forces = np.full(self._capacity, config.TRAITS["max_force"], dtype=np.float64)
        self.separations = np.full(self._capacity, config.TRAITS["separation"], dtype=np.float64)
        self.alignments = np.full(self._capacity, config.TRAITS["alignment"], dtype=np.float64)
        self.cohesions = np.full(self._capacity, config.TRAITS["cohesion"], dtype=np.float64)
        self.targetings = np.full(self._capacity, config.TRAITS["targeting"], dtype=np.float64)

        self._defaults = np.array([config.TRAITS[name] for name in TRAIT_FIELDS], dtype=np.float64)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def count(self) -> int:
        return self._count

    @property
    def active_positions(self) -> np.ndarray:
        return self.positions[:self._count]

    def _trait_columns(self):
        return (self.max_speeds, self.max_forces, self.separations,
                self.alignments, self.cohesions, self.targetings)

    def _accept(self, requested: int) -> int:
        n = min(requested, self._capacity)
        if requested > self._capacity:
            logger.debug("[Store] Dropped %d boids over capacity %d", requested - self._capacity, self._capacity)
        return n

    def clear(self):
        self.forces[:self._count] = 0.0
        self._count = 0

    def load(self, snapshot) -> int:
        """Copy boid records in order, dropping any past capacity. Returns the loaded count."""
        snapshot = list(snapshot)
        n = self._accept(len(snapshot))
        columns = self._trait_columns()

        for i, boid in enumerate(snapshot[:n]):
            self.positions[i] = boid.position
            self.velocities[i] = boid.velocity
            traits = boid.traits
            for column, name in zip(columns, TRAIT_FIELDS):
                column[i] = getattr(traits, name)

        self.forces[:n] = 0.0
        self._count = n
        return n

    def load_arrays(self, positions, velocities, traits=None) -> int:
        """
        Bulk load from arrays.

        Args:
            positions: (n, 3) positions
            velocities: (n, 3) velocities
            traits: Optional (n, 6) matrix in TRAIT_FIELDS order; defaults otherwise

        Returns:
            Number of boids loaded
        """
        positions = np.asarray(positions, dtype=np.float64)
        velocities = np.asarray(velocities, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (n, 3), got {positions.shape}")
        if velocities.shape != positions.shape:
            raise ValueError(f"velocities shape {velocities.shape} does not match positions {positions.shape}")

        n = self._accept(positions.shape[0])
        self.positions[:n] = positions[:n]
        self.velocities[:n] = velocities[:n]

        if traits is None:
            trait_matrix = np.broadcast_to(self._defaults, (n, len(TRAIT_FIELDS)))
        else:
            trait_matrix = np.asarray(traits, dtype=np.float64)
            if trait_matrix.shape != (positions.shape[0], len(TRAIT_FIELDS)):
                raise ValueError(f"traits must have shape ({positions.shape[0]}, 6), got {trait_matrix.shape}")
            trait_matrix = trait_matrix[:n]
        for col, column in enumerate(self._trait_columns()):
            column[:n] = trait_matrix[:, col]

        self.forces[:n] = 0.0
        self._count = n
        return n

    def get_position(self, i: int) -> np.ndarray:
        return self.positions[i]

    def get_velocity(self, i: int) -> np.ndarray:
        return self.velocities[i]

    def get_traits(self, i: int) -> np.ndarray:
        """Traits of slot i in TRAIT_FIELDS order."""
        return np.array([column[i] for column in self._trait_columns()], dtype=np.float64)

    def set_force(self, i: int, force):
        self.forces[i] = force

    def get_force(self, i: int) -> np.ndarray:
        return self.forces[i]

    def store(self, out=None) -> np.ndarray:
        """Forces of the loaded boids in snapshot order, as float32."""
        if out is None:
            return self.forces[:self._count].astype(np.float32)
        out[:self._count] = self.forces[:self._count]
        return out[:self._count]
