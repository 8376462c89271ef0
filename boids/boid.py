"""Boid records, per-boid traits and per-call flocking policy."""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import Optional

from config import boids as config
from .errors import ConfigurationError

# Column order of the trait matrix used by the agent store
TRAIT_FIELDS = ("max_speed", "max_force", "separation", "alignment", "cohesion", "targeting")


def _vec3(value) -> np.ndarray:
    return np.array(value, dtype=np.float64).reshape(3)


@dataclass
class BoidTraits:
    """
    Steering limits and behavior weights of a single boid.

    Attributes:
        max_speed: Magnitude of every desired velocity
        max_force: Upper bound on each behavior's steering delta
        separation: Weight of the separation term
        alignment: Weight of the alignment term
        cohesion: Weight of the cohesion term
        targeting: Weight of the target-seeking term
    """
    max_speed: float = config.TRAITS["max_speed"]
    max_force: float = config.TRAITS["max_force"]
    separation: float = config.TRAITS["separation"]
    alignment: float = config.TRAITS["alignment"]
    cohesion: float = config.TRAITS["cohesion"]
    targeting: float = config.TRAITS["targeting"]

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in TRAIT_FIELDS], dtype=np.float64)


@dataclass
class Boid:
    """
    A single boid as the orchestrator sees it.

    Attributes:
        position: 3D position vector
        velocity: 3D velocity vector
        traits: Steering limits and weights
        force: Last steering force applied (reset by the engine each tick)
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    traits: BoidTraits = field(default_factory=BoidTraits)
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.position = _vec3(self.position)
        self.velocity = _vec3(self.velocity)
        self.force = _vec3(self.force)

    def apply_force(self, force, dt: float = 1.0):
        """Integrate a steering force: velocity += force, limit speed, then move."""
        self.force = _vec3(force)
        self.velocity += self.force

        speed = np.linalg.norm(self.velocity)
        if speed > self.traits.max_speed:
            self.velocity *= self.traits.max_speed / speed

        self.position += self.velocity * dt


@dataclass
class FlockPolicy:
    """
    Parameters shared by every boid in one engine call.

    The three thresholds are squared distances; their square roots are the
    interaction radii. ``planar`` restricts neighbor queries to the boid's
    own z layer.
    """
    separation: float = config.FLOCK["separation"]
    alignment: float = config.FLOCK["alignment"]
    cohesion: float = config.FLOCK["cohesion"]
    target: Optional[np.ndarray] = None
    planar: bool = False

    def __post_init__(self):
        for name in ("separation", "alignment", "cohesion"):
            value = getattr(self, name)
            if not (value > 0 and math.isfinite(value)):
                raise ConfigurationError(f"{name} threshold must be positive and finite, got {value}")
        if self.target is not None:
            self.target = _vec3(self.target)

    @property
    def interaction_radius(self) -> float:
        """Radius of the neighbor query: the largest of the three thresholds."""
        return math.sqrt(max(self.separation, self.alignment, self.cohesion))
