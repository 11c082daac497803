"""Catalog persistence."""

from lms_sync.db.catalog_store import SqlCatalogStore
from lms_sync.db.database import (
    build_session_factory,
    create_engine_for_url,
    get_session_factory,
    init_db,
)

__all__ = [
    "SqlCatalogStore",
    "build_session_factory",
    "create_engine_for_url",
    "get_session_factory",
    "init_db",
]
