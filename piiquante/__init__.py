"""Piiquante hot sauce rating API."""

__version__ = "1.0.0"
