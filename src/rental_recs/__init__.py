"""Hybrid property recommendation engine for the rental marketplace."""

__version__ = "1.0.0"
