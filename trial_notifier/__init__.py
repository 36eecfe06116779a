"""Daily trial-end notification job for PitLink tenants."""

__version__ = "0.1.0"
