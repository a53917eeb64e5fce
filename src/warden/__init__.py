"""Warden server launcher."""

__version__ = "1.0.0"
