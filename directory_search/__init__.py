"""Hybrid people/project search for a developer directory."""

__version__ = "0.1.0"
