"""Errors raised by the boids engine."""


class ConfigurationError(ValueError):
    """Invalid construction-time configuration (capacity, cell size, thresholds...)."""
