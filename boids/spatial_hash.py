"""
Uniform grid spatial hash for radius-neighbor queries.

Cells are addressed by a Morton-style packed 64-bit key: the quantized axis
coordinates ``floor(p / cell_size)`` are masked to 21 bits each (two's
complement) and packed as ``x << 42 | y << 21 | z``. Coordinates beyond about
+/-2**20 cells wrap around silently, so worlds must stay inside that range.

Buckets live in a sorted cell list: agent indices ordered by key plus one
(key, start, count) run per occupied cell. Every buffer is allocated once at
construction and overwritten in place by each rebuild.

Queries walk only the part of their cube that overlaps the bounding box of
occupied cells, so a radius much larger than the flock costs no more than
the flock itself.

Cell size tuning: too small and each query walks many empty cells, too large
and buckets grow long and filter poorly. Results are correct either way.
"""

import math
import numpy as np

from .errors import ConfigurationError

AXIS_BITS = 21
AXIS_MASK = (1 << AXIS_BITS) - 1

_EMPTY = np.empty(0, dtype=np.int64)

# Distinct (grid_radius, planar) offset tables kept by query_cells
OFFSET_CACHE_SIZE = 8


def pack_cell_keys(cells: np.ndarray) -> np.ndarray:
    """Pack (..., 3) integer cell coordinates into 64-bit keys."""
    cells = np.asarray(cells, dtype=np.int64) & AXIS_MASK
    return (cells[..., 0] << 42) | (cells[..., 1] << 21) | cells[..., 2]


class SpatialHash:
    """
    Grid hash mapping quantized 3D cells to the agent slots inside them.

    Must be rebuilt every tick before it is queried; the buckets only
    describe the positions passed to the last rebuild.
    """

    def __init__(self, cell_size: float, capacity: int):
        if not (cell_size > 0 and math.isfinite(cell_size)):
            raise ConfigurationError(f"cell_size must be positive and finite, got {cell_size}")
        if capacity <= 0:
            raise ConfigurationError(f"capacity must be positive, got {capacity}")

        self._cell_size = float(cell_size)
        self._capacity = int(capacity)

        # Per-agent cell coordinates and keys
        self._cells = np.zeros((self._capacity, 3), dtype=np.int64)
        self._keys = np.zeros(self._capacity, dtype=np.int64)

        # Sorted cell list
        self._sorted_indices = np.zeros(self._capacity, dtype=np.int64)
        self._cell_keys = np.zeros(self._capacity, dtype=np.int64)
        self._cell_starts = np.zeros(self._capacity, dtype=np.int64)
        self._cell_counts = np.zeros(self._capacity, dtype=np.int64)

        # Bounding box of occupied cells, inclusive
        self._cell_lo = np.zeros(3, dtype=np.int64)
        self._cell_hi = np.zeros(3, dtype=np.int64)

        self._count = 0
        self._num_cells = 0
        self._offset_cache = {}

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def count(self) -> int:
        """Number of agents indexed by the last rebuild."""
        return self._count

    @property
    def num_cells(self) -> int:
        """Number of occupied cells."""
        return self._num_cells

    @property
    def cells(self) -> np.ndarray:
        return self._cells[:self._count]

    @property
    def sorted_indices(self) -> np.ndarray:
        return self._sorted_indices[:self._count]

    @property
    def cell_keys(self) -> np.ndarray:
        return self._cell_keys[:self._num_cells]

    @property
    def cell_starts(self) -> np.ndarray:
        return self._cell_starts[:self._num_cells]

    @property
    def cell_counts(self) -> np.ndarray:
        return self._cell_counts[:self._num_cells]

    @property
    def cell_bounds(self):
        """Inclusive (lo, hi) cell coordinates of the occupied region."""
        return self._cell_lo, self._cell_hi

    def cell_coords(self, position) -> np.ndarray:
        """Quantized cell coordinates of a position."""
        scaled = np.asarray(position, dtype=np.float64) / self._cell_size
        return np.floor(scaled).astype(np.int64)

    def cell_key(self, position) -> int:
        return int(pack_cell_keys(self.cell_coords(position)))

    def grid_radius(self, radius: float) -> int:
        """Cells to walk on each side of the center cell, capped at the key range."""
        return max(0, min(int(math.ceil(radius / self._cell_size)), AXIS_MASK))

    def clear(self):
        self._count = 0
        self._num_cells = 0

    def rebuild(self, positions):
        """Re-bucket every position. Index i in the buckets is row i of positions."""
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        n = positions.shape[0]
        if n > self._capacity:
            raise ValueError(f"{n} positions exceed spatial hash capacity {self._capacity}")

        self.clear()
        if n == 0:
            return

        cells = self._cells[:n]
        np.copyto(cells, np.floor(positions / self._cell_size), casting="unsafe")
        keys = self._keys[:n]
        keys[:] = pack_cell_keys(cells)

        order = np.argsort(keys, kind="stable")
        self._sorted_indices[:n] = order
        sorted_keys = keys[order]

        # One run per distinct key
        boundaries = np.flatnonzero(sorted_keys[1:] != sorted_keys[:-1]) + 1
        num_cells = boundaries.shape[0] + 1

        starts = self._cell_starts[:num_cells]
        starts[0] = 0
        starts[1:] = boundaries
        counts = self._cell_counts[:num_cells]
        counts[:-1] = np.diff(starts)
        counts[-1] = n - starts[-1]
        self._cell_keys[:num_cells] = sorted_keys[starts]

        self._cell_lo[:] = cells.min(axis=0)
        self._cell_hi[:] = cells.max(axis=0)

        self._count = n
        self._num_cells = num_cells

    def _offsets(self, grid_radius: int, planar: bool) -> np.ndarray:
        cached = self._offset_cache.get((grid_radius, planar))
        if cached is not None:
            return cached

        span = np.arange(-grid_radius, grid_radius + 1, dtype=np.int64)
        if planar:
            dx, dy = np.meshgrid(span, span, indexing="ij")
            dz = np.zeros_like(dx)
        else:
            dx, dy, dz = np.meshgrid(span, span, span, indexing="ij")
        offsets = np.stack([dx.ravel(), dy.ravel(), dz.ravel()], axis=1)

        if len(self._offset_cache) >= OFFSET_CACHE_SIZE:
            self._offset_cache.clear()
        self._offset_cache[(grid_radius, planar)] = offsets
        return offsets

    def query_cells(self, position, radius: float, planar: bool = False) -> np.ndarray:
        """
        Distinct keys of every cell a query visits.

        The cube [-g, +g]^3 around the position's cell, g = ceil(radius / cell_size);
        the square [-g, +g]^2 at the same z for planar queries.
        """
        center = self.cell_coords(position)
        offsets = self._offsets(self.grid_radius(radius), planar)
        return np.unique(pack_cell_keys(center + offsets))

    def _occupied_window(self, center: np.ndarray, grid_radius: int, planar: bool):
        """Query cube clipped to the occupied bounding box, or None if they miss."""
        reach = np.array([grid_radius, grid_radius, 0 if planar else grid_radius], dtype=np.int64)
        lo = np.maximum(center - reach, self._cell_lo)
        hi = np.minimum(center + reach, self._cell_hi)
        if (lo > hi).any():
            return None
        return lo, hi

    def _slots(self, keys: np.ndarray) -> np.ndarray:
        """Cell-list slots of the occupied cells among keys."""
        cell_keys = self._cell_keys[:self._num_cells]
        slots = np.searchsorted(cell_keys, keys)
        np.minimum(slots, self._num_cells - 1, out=slots)
        return slots[cell_keys[slots] == keys]

    def bucket(self, key: int) -> np.ndarray:
        """Agent indices stored under one cell key."""
        if self._num_cells == 0:
            return _EMPTY.copy()
        slots = self._slots(np.array([key], dtype=np.int64))
        if slots.size == 0:
            return _EMPTY.copy()
        start = self._cell_starts[slots[0]]
        return self._sorted_indices[start:start + self._cell_counts[slots[0]]].copy()

    def query_neighbors(self, position, radius: float, planar: bool = False) -> np.ndarray:
        """
        Indices of every agent in the cells overlapping the query's bounding cube.

        A conservative superset: agents farther than radius may be included and
        must be filtered by the caller, but no agent within radius is missed.
        Only the part of the cube inside the occupied cells is walked, so large
        radii cost no more than the populated region. Read-only; safe to call
        from several threads between rebuilds.
        """
        if self._num_cells == 0:
            return _EMPTY.copy()

        window = self._occupied_window(self.cell_coords(position), self.grid_radius(radius), planar)
        if window is None:
            return _EMPTY.copy()

        lo, hi = window
        axes = [np.arange(lo[a], hi[a] + 1, dtype=np.int64) for a in range(3)]
        grid = np.stack(np.meshgrid(*axes, indexing="ij"), axis=-1).reshape(-1, 3)
        slots = self._slots(np.unique(pack_cell_keys(grid)))
        if slots.size == 0:
            return _EMPTY.copy()

        sorted_indices = self._sorted_indices
        return np.concatenate([
            sorted_indices[start:start + count]
            for start, count in zip(self._cell_starts[slots], self._cell_counts[slots])
        ])
