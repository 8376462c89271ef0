"""Spatially-hashed, parallel boids steering engine."""

from .boid import Boid, BoidTraits, FlockPolicy
from .agent_store import AgentStore
from .spatial_hash import SpatialHash
from .engine import ForceEngine, PerformanceMode, partition_chunks
from .flock import Flock, FlockSimulation
from .errors import ConfigurationError

__all__ = [
    "Boid", "BoidTraits", "FlockPolicy",
    "AgentStore", "SpatialHash",
    "ForceEngine", "PerformanceMode", "partition_chunks",
    "Flock", "FlockSimulation",
    "ConfigurationError",
]
