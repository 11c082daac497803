"""API routers for lms-catalog-sync."""

from lms_sync.api.routers import sync_router

__all__ = [
    "sync_router",
]
