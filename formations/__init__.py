"""Data-access layer for the formations listing backend."""

__version__ = "0.1.0"
