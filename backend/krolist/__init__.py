"""Krolist price acquisition core."""

__version__ = "0.1.0"
