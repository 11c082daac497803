"""Incremental Canvas LMS catalog synchronization."""

__version__ = "0.1.0"
