"""Shared runtime helpers."""

from lms_sync.core.logging import configure_logging

__all__ = ["configure_logging"]
