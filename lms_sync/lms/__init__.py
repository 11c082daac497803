"""Canvas LMS catalog sync."""

from lms_sync.lms.canvas_client import CanvasClient
from lms_sync.lms.errors import (
    CatalogItemNotFound,
    LmsSyncError,
    MissingCredentialError,
    RemoteApiError,
    RemoteUnavailableError,
    StoreWriteConflict,
)
from lms_sync.lms.interfaces import CatalogStore, RemoteCatalogClient
from lms_sync.lms.models import (
    SUPPORTED_CONTENT_TYPES,
    CourseRecord,
    FileKind,
    FileRecord,
    RemoteCourse,
    RemoteFile,
    SyncResult,
    classify_content_type,
    is_supported_content_type,
)
from lms_sync.lms.sync_service import CatalogSyncService

__all__ = [
    "CanvasClient",
    "CatalogSyncService",
    # Contracts
    "CatalogStore",
    "RemoteCatalogClient",
    # Types
    "CourseRecord",
    "FileKind",
    "FileRecord",
    "RemoteCourse",
    "RemoteFile",
    "SyncResult",
    # Content types
    "SUPPORTED_CONTENT_TYPES",
    "classify_content_type",
    "is_supported_content_type",
    # Errors
    "CatalogItemNotFound",
    "LmsSyncError",
    "MissingCredentialError",
    "RemoteApiError",
    "RemoteUnavailableError",
    "StoreWriteConflict",
]
