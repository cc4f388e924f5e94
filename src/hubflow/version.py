"""Version of the hubflow package."""

__version__ = "0.1.0"
