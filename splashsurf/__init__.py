"""Command line front end and helpers for surface reconstruction of SPH particle data."""

__version__ = "0.1.0"

__all__ = ["__version__"]