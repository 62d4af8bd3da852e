"""Partitioned immersed-boundary fluid-structure interaction."""

__version__ = "0.1.0"
