"""Automatic farming-route planning over game-world spawn points."""

__version__ = "0.1.0"
