"""
Steering force math.

Two renditions of the same per-boid rule:
- numpy functions used by the SAFE engine path (one boid at a time)
- a Numba kernel used by the FAST engine path (chunks of boids under prange)

Rule per boid i, for each neighbor j != i with squared distance d2 >= EPSILON:
    d2 < separation -> accumulate (p_i - p_j) / d2
    d2 < alignment  -> accumulate v_j
    d2 < cohesion   -> accumulate p_j
Each non-empty accumulator is averaged (cohesion becomes center - p_i), turned
into a desired velocity of length max_speed, steered against the current
velocity, clamped to max_force and weighted. The target term works the same
way on (target - p_i).
"""

import math
import numpy as np
from numba import njit, prange

from .spatial_hash import AXIS_MASK

# Squared distances below this are treated as coincident and skipped
EPSILON = float(np.finfo(np.float32).eps)

SEPARATION, ALIGNMENT, COHESION, TARGET = range(4)


# ============================================================================
# NUMPY PATH
# ============================================================================

def clamp_length(vector, max_length: float) -> np.ndarray:
    """Scale a vector down to max_length. Never scales up."""
    vector = np.asarray(vector, dtype=np.float64)
    if max_length <= 0.0:
        return np.zeros_like(vector)
    length_sq = float(vector @ vector)
    if length_sq <= max_length * max_length:
        return vector.copy()
    return vector * (max_length / math.sqrt(length_sq))


def steer_towards(direction, velocity, max_speed: float, max_force: float) -> np.ndarray:
    """Steering delta from velocity to max_speed along direction, clamped to max_force."""
    direction = np.asarray(direction, dtype=np.float64)
    length_sq = float(direction @ direction)
    if length_sq <= 0.0:
        return np.zeros(3)
    desired = direction * (max_speed / math.sqrt(length_sq))
    return clamp_length(desired - velocity, max_force)


def behavior_contributions(store, index: int, neighbors, policy) -> np.ndarray:
    """
    Weighted steering terms of one boid.

    Args:
        store: AgentStore holding the current tick
        index: Slot of the boid
        neighbors: Candidate slots from the spatial hash (may include index
            and boids out of range)
        policy: FlockPolicy with thresholds and optional target

    Returns:
        (4, 3) array: separation, alignment, cohesion, target
    """
    terms = np.zeros((4, 3))
    pos = store.positions[index]
    vel = store.velocities[index]
    max_speed = store.max_speeds[index]
    max_force = store.max_forces[index]

    neighbors = np.asarray(neighbors, dtype=np.int64)
    neighbors = neighbors[neighbors != index]

    if neighbors.size:
        diffs = pos - store.positions[neighbors]
        dist_sq = np.einsum("ij,ij->i", diffs, diffs)
        usable = dist_sq >= EPSILON

        mask = usable & (dist_sq < policy.separation)
        if mask.any():
            away = (diffs[mask] / dist_sq[mask, None]).mean(axis=0)
            terms[SEPARATION] = steer_towards(away, vel, max_speed, max_force) * store.separations[index]

        mask = usable & (dist_sq < policy.alignment)
        if mask.any():
            heading = store.velocities[neighbors[mask]].mean(axis=0)
            terms[ALIGNMENT] = steer_towards(heading, vel, max_speed, max_force) * store.alignments[index]

        mask = usable & (dist_sq < policy.cohesion)
        if mask.any():
            offset = store.positions[neighbors[mask]].mean(axis=0) - pos
            terms[COHESION] = steer_towards(offset, vel, max_speed, max_force) * store.cohesions[index]

    if policy.target is not None:
        terms[TARGET] = steer_towards(policy.target - pos, vel, max_speed, max_force) * store.targetings[index]

    return terms


def steering_force(store, index: int, neighbors, policy) -> np.ndarray:
    """Total steering force of one boid."""
    return behavior_contributions(store, index, neighbors, policy).sum(axis=0)


# ============================================================================
# NUMBA JIT-COMPILED PATH
# ============================================================================

@njit(cache=True)
def _pack_key(cx: int, cy: int, cz: int) -> int:
    return ((cx & AXIS_MASK) << 42) | ((cy & AXIS_MASK) << 21) | (cz & AXIS_MASK)


@njit(fastmath=True, cache=True)
def _steer(dx: float, dy: float, dz: float,
           vx: float, vy: float, vz: float,
           max_speed: float, max_force: float):
    length_sq = dx * dx + dy * dy + dz * dz
    if length_sq <= 0.0 or max_force <= 0.0:
        return 0.0, 0.0, 0.0

    scale = max_speed / math.sqrt(length_sq)
    sx = dx * scale - vx
    sy = dy * scale - vy
    sz = dz * scale - vz

    mag_sq = sx * sx + sy * sy + sz * sz
    if mag_sq > max_force * max_force:
        k = max_force / math.sqrt(mag_sq)
        sx *= k
        sy *= k
        sz *= k
    return sx, sy, sz


@njit(parallel=True, fastmath=True, cache=True)
def compute_forces_chunked(
    positions: np.ndarray,
    velocities: np.ndarray,
    max_speeds: np.ndarray,
    max_forces: np.ndarray,
    separations: np.ndarray,
    alignments: np.ndarray,
    cohesions: np.ndarray,
    targetings: np.ndarray,
    cells: np.ndarray,
    sorted_indices: np.ndarray,
    cell_keys: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
    cell_lo: np.ndarray,
    cell_hi: np.ndarray,
    grid_radius: int,
    planar: bool,
    separation_sq: float,
    alignment_sq: float,
    cohesion_sq: float,
    has_target: bool,
    target: np.ndarray,
    chunk_starts: np.ndarray,
    chunk_ends: np.ndarray,
    forces: np.ndarray
):
    """Flocking forces over chunks of boids. Chunk c writes only forces[start_c:end_c]."""
    num_cells = cell_keys.shape[0]
    z_reach = 0 if planar else grid_radius

    for c in prange(chunk_starts.shape[0]):
        for i in range(chunk_starts[c], chunk_ends[c]):
            px, py, pz = positions[i, 0], positions[i, 1], positions[i, 2]
            vx, vy, vz = velocities[i, 0], velocities[i, 1], velocities[i, 2]
            cx, cy, cz = cells[i, 0], cells[i, 1], cells[i, 2]

            sep_x, sep_y, sep_z = 0.0, 0.0, 0.0
            align_x, align_y, align_z = 0.0, 0.0, 0.0
            coh_x, coh_y, coh_z = 0.0, 0.0, 0.0
            sep_count = 0
            align_count = 0
            coh_count = 0

            # Walk only the part of the query cube inside the occupied cells
            x0 = max(cx - grid_radius, cell_lo[0])
            x1 = min(cx + grid_radius, cell_hi[0])
            y0 = max(cy - grid_radius, cell_lo[1])
            y1 = min(cy + grid_radius, cell_hi[1])
            z0 = max(cz - z_reach, cell_lo[2])
            z1 = min(cz + z_reach, cell_hi[2])

            for gx in range(x0, x1 + 1):
                for gy in range(y0, y1 + 1):
                    for gz in range(z0, z1 + 1):
                        key = _pack_key(gx, gy, gz)
                        slot = np.searchsorted(cell_keys, key)
                        if slot >= num_cells or cell_keys[slot] != key:
                            continue

                        start = cell_starts[slot]
                        for k in range(start, start + cell_counts[slot]):
                            j = sorted_indices[k]
                            if j == i:
                                continue

                            ox = px - positions[j, 0]
                            oy = py - positions[j, 1]
                            oz = pz - positions[j, 2]
                            dist_sq = ox * ox + oy * oy + oz * oz
                            if dist_sq < EPSILON:
                                continue

                            if dist_sq < separation_sq:
                                inv = 1.0 / dist_sq
                                sep_x += ox * inv
                                sep_y += oy * inv
                                sep_z += oz * inv
                                sep_count += 1

                            if dist_sq < alignment_sq:
                                align_x += velocities[j, 0]
                                align_y += velocities[j, 1]
                                align_z += velocities[j, 2]
                                align_count += 1

                            if dist_sq < cohesion_sq:
                                coh_x += positions[j, 0]
                                coh_y += positions[j, 1]
                                coh_z += positions[j, 2]
                                coh_count += 1

            max_speed = max_speeds[i]
            max_force = max_forces[i]
            fx, fy, fz = 0.0, 0.0, 0.0

            if sep_count > 0:
                inv = 1.0 / sep_count
                sx, sy, sz = _steer(sep_x * inv, sep_y * inv, sep_z * inv,
                                    vx, vy, vz, max_speed, max_force)
                w = separations[i]
                fx += sx * w
                fy += sy * w
                fz += sz * w

            if align_count > 0:
                inv = 1.0 / align_count
                sx, sy, sz = _steer(align_x * inv, align_y * inv, align_z * inv,
                                    vx, vy, vz, max_speed, max_force)
                w = alignments[i]
                fx += sx * w
                fy += sy * w
                fz += sz * w

            if coh_count > 0:
                inv = 1.0 / coh_count
                sx, sy, sz = _steer(coh_x * inv - px, coh_y * inv - py, coh_z * inv - pz,
                                    vx, vy, vz, max_speed, max_force)
                w = cohesions[i]
                fx += sx * w
                fy += sy * w
                fz += sz * w

            if has_target:
                sx, sy, sz = _steer(target[0] - px, target[1] - py, target[2] - pz,
                                    vx, vy, vz, max_speed, max_force)
                w = targetings[i]
                fx += sx * w
                fy += sy * w
                fz += sz * w

            forces[i, 0] = fx
            forces[i, 1] = fy
            forces[i, 2] = fz


def warmup():
    """Pre-compile the Numba kernel on a tiny flock."""
    n = 16
    rng = np.random.default_rng(0)
    pos = rng.uniform(0.0, 10.0, (n, 3))
    vel = rng.uniform(0.0, 1.0, (n, 3))
    ones = np.ones(n)
    cells = np.floor(pos / 5.0).astype(np.int64)
    keys = np.array([_pack_key(c[0], c[1], c[2]) for c in cells], dtype=np.int64)
    order = np.argsort(keys, kind="stable").astype(np.int64)
    cell_keys, cell_starts, cell_counts = np.unique(keys[order], return_index=True, return_counts=True)
    forces = np.zeros((n, 3))

    compute_forces_chunked(
        pos, vel, ones, ones, ones, ones, ones, ones,
        cells, order, cell_keys.astype(np.int64),
        cell_starts.astype(np.int64), cell_counts.astype(np.int64),
        cells.min(axis=0), cells.max(axis=0),
        1, False, 4.0, 9.0, 9.0, True, np.zeros(3),
        np.array([0, 8], dtype=np.int64), np.array([8, n], dtype=np.int64),
        forces
    )
