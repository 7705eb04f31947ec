"""Persistence and multi-backend sync for blog post documents."""

__version__ = "0.1.0"
