"""
Canvas sync router.

Endpoints for connecting a Canvas account, triggering a catalog sync,
listing what has been synced, browsing Canvas without importing, and fetching
synced file content on demand. Failures are reported as a single actionable
message; successes carry the coursesAdded/filesAdded counts.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from loguru import logger
from pydantic import BaseModel, Field

from lms_sync.db.catalog_store import SqlCatalogStore
from lms_sync.db.database import get_session_factory
from lms_sync.lms.canvas_client import CanvasClient
from lms_sync.lms.errors import (
    CatalogItemNotFound,
    LmsSyncError,
    MissingCredentialError,
    RemoteApiError,
    RemoteUnavailableError,
)
from lms_sync.lms.models import is_supported_content_type
from lms_sync.lms.sync_service import CatalogSyncService

router = APIRouter()

RECONNECT_MESSAGE = "Reconnect your Canvas account to continue syncing."
UNAVAILABLE_MESSAGE = "Canvas is unreachable right now. Try syncing again in a few minutes."
REJECTED_MESSAGE = "Canvas rejected this access token."


# ========================================
# Request/Response Models
# ========================================


class SyncRequest(BaseModel):
    """Request model for sync operations."""

    user_id: str = Field(min_length=1)
    credential: str | None = None


class SyncResponse(BaseModel):
    """Response model for sync operations."""

    success: bool
    message: str
    coursesAdded: int
    filesAdded: int
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class CredentialRequest(BaseModel):
    """Request model for connecting a Canvas account."""

    user_id: str = Field(min_length=1)
    credential: str = Field(min_length=1)


class CredentialResponse(BaseModel):
    """Response model for credential verification."""

    valid: bool
    message: str
    user: dict[str, Any] | None = None


# ========================================
# Dependencies
# ========================================


def get_catalog_store() -> SqlCatalogStore:
    """Store bound to the application session factory."""
    return SqlCatalogStore(get_session_factory())


async def get_canvas_client() -> AsyncGenerator[CanvasClient, None]:
    """Per-request Canvas client, closed after the response."""
    client = CanvasClient.from_settings()
    try:
        yield client
    finally:
        await client.close()


def get_sync_service(
    client: CanvasClient = Depends(get_canvas_client),
    store: SqlCatalogStore = Depends(get_catalog_store),
) -> CatalogSyncService:
    return CatalogSyncService(client=client, store=store)


def _to_http_error(error: LmsSyncError) -> HTTPException:
    """Map sync failures onto one user-facing message per cause."""
    if isinstance(error, CatalogItemNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, MissingCredentialError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=RECONNECT_MESSAGE)
    if isinstance(error, RemoteApiError) and error.is_auth_error:
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=RECONNECT_MESSAGE)
    if isinstance(error, RemoteUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=UNAVAILABLE_MESSAGE)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Canvas sync failed: {error}")


# ========================================
# Sync Endpoints
# ========================================


@router.post("/canvas", response_model=SyncResponse, summary="Sync Canvas courses and files")
async def sync_canvas(
    request: SyncRequest,
    service: CatalogSyncService = Depends(get_sync_service),
) -> SyncResponse:
    """
    Import new eligible Canvas courses and their supported files.

    Uses the credential in the body when given, otherwise the one stored for
    the user. Re-running is safe; already-synced items are skipped.
    """
    logger.info(f"Canvas sync requested for user {request.user_id}")

    try:
        if request.credential:
            result = await service.sync_courses(request.user_id, request.credential)
        else:
            result = await service.sync_with_stored_credential(request.user_id)
    except LmsSyncError as e:
        logger.error(f"Canvas sync failed for user {request.user_id}: {e}")
        raise _to_http_error(e) from e

    counts = result.to_dict()
    return SyncResponse(
        success=True,
        message=f"Synced {result.courses_added} new courses and {result.files_added} new files",
        **counts,
    )


@router.post(
    "/canvas/credential",
    response_model=CredentialResponse,
    summary="Verify and store a Canvas access token",
)
async def connect_canvas(
    request: CredentialRequest,
    service: CatalogSyncService = Depends(get_sync_service),
) -> CredentialResponse:
    """Store the token only when Canvas accepts it; returns the Canvas profile."""
    try:
        valid = await service.verify_and_store_credential(request.user_id, request.credential)
        if not valid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"valid": False, "message": REJECTED_MESSAGE},
            )
        profile = await service.get_remote_profile(request.user_id)
    except LmsSyncError as e:
        logger.error(f"Canvas credential check failed for user {request.user_id}: {e}")
        raise _to_http_error(e) from e

    return CredentialResponse(valid=True, message="Canvas account connected", user=profile)


# ========================================
# Remote Browsing Endpoints
# ========================================


@router.get("/canvas/remote/courses/{user_id}", summary="Browse Canvas courses")
async def list_remote_courses(
    user_id: str,
    service: CatalogSyncService = Depends(get_sync_service),
) -> dict[str, Any]:
    """All courses Canvas lists for the user; nothing is imported."""
    try:
        courses = await service.list_remote_courses(user_id)
    except LmsSyncError as e:
        logger.error(f"Canvas course listing failed for user {user_id}: {e}")
        raise _to_http_error(e) from e

    return {
        "userId": user_id,
        "courses": [
            {
                "id": c.id,
                "name": c.name,
                "courseCode": c.course_code,
                "createdAt": c.created_at.isoformat() if c.created_at else None,
                "workflowState": c.workflow_state,
            }
            for c in courses
        ],
    }


@router.get("/canvas/remote/courses/{course_id}/files", summary="Browse files of a Canvas course")
async def list_remote_course_files(
    course_id: str,
    user_id: str = Query(..., min_length=1),
    service: CatalogSyncService = Depends(get_sync_service),
) -> dict[str, Any]:
    """All files of a Canvas course, flagged by whether sync would import them."""
    try:
        files = await service.list_remote_course_files(user_id, course_id)
    except LmsSyncError as e:
        logger.error(f"Canvas file listing failed for course {course_id}: {e}")
        raise _to_http_error(e) from e

    return {
        "courseId": course_id,
        "files": [
            {
                "id": f.id,
                "name": f.display_name,
                "contentType": f.content_type,
                "size": f.size,
                "supported": is_supported_content_type(f.content_type),
            }
            for f in files
        ],
    }


@router.get("/canvas/courses/{user_id}", summary="List synced courses")
async def list_synced_courses(
    user_id: str,
    store: SqlCatalogStore = Depends(get_catalog_store),
) -> dict[str, Any]:
    """Courses in the local catalog for a user, with their files."""
    courses = []
    for course in await store.list_courses(user_id):
        files = await store.list_files(course.id)
        courses.append(
            {
                "id": course.id,
                "name": course.name,
                "canvasId": course.canvas_id,
                "files": [
                    {
                        "id": f.id,
                        "name": f.name,
                        "kind": f.kind.value,
                        "url": f.url,
                        "size": f.size,
                        "canvasId": f.canvas_id,
                    }
                    for f in files
                ],
            }
        )
    return {"userId": user_id, "courses": courses}


@router.get("/canvas/files/{file_id}/content", summary="Fetch a synced file's content")
async def get_file_content(
    file_id: str,
    user_id: str = Query(..., min_length=1),
    service: CatalogSyncService = Depends(get_sync_service),
) -> Response:
    """Download the bytes of a synced file from Canvas on demand."""
    try:
        file, content = await service.fetch_file_content(user_id, file_id)
    except LmsSyncError as e:
        logger.error(f"Content fetch failed for file {file_id}: {e}")
        raise _to_http_error(e) from e

    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{file.name}"'},
    )
