"""
Catalog Sync Service - Orchestrates Canvas → catalog store synchronization.

Core responsibilities:
- Walk the user's remote courses and keep only those inside the eligibility window
- Reconcile courses and files against the store by external id (append-only)
- Record remote download locations; no file bytes are copied during sync
- Store a credential only after Canvas accepts it
- Browse the remote catalog and fetch file bytes lazily with the stored credential

Runs are strictly sequential. Each create is its own store transaction, so a
failed run leaves earlier records committed and can simply be re-run.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from dateutil.relativedelta import relativedelta
from loguru import logger

from config import get_settings

from .errors import CatalogItemNotFound, MissingCredentialError, StoreWriteConflict
from .interfaces import CatalogStore, RemoteCatalogClient
from .models import (
    CourseRecord,
    FileRecord,
    RemoteCourse,
    RemoteFile,
    SyncResult,
    classify_content_type,
    is_supported_content_type,
)

AVAILABLE_STATE = "available"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def eligibility_cutoff(now: datetime, window_months: int) -> datetime:
    """Oldest creation time a course may have and still be synced."""
    return now - relativedelta(months=window_months)


def is_course_eligible(course: RemoteCourse, cutoff: datetime) -> bool:
    """Available courses created on or after the cutoff are eligible."""
    if course.workflow_state != AVAILABLE_STATE:
        return False
    if course.created_at is None:
        return False
    return course.created_at >= cutoff


def file_storage_key(external_id: str) -> str:
    """Storage key recorded for a file that lives on Canvas."""
    return f"canvas-{external_id}"


class CatalogSyncService:
    """
    Incremental, deduplicating import of a Canvas catalog.

    Features:
    - Eligibility window (available + recent courses only)
    - External-id reconciliation (re-runs are no-ops)
    - Content-type allowlist for files
    - Concurrent-run conflicts absorbed as "already synced"
    """

    def __init__(
        self,
        client: RemoteCatalogClient,
        store: CatalogStore,
        window_months: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize sync service.

        Args:
            client: Remote catalog client (CanvasClient in production)
            store: Catalog store handle
            window_months: Eligibility window; defaults to settings.sync_window_months
            clock: Returns the current aware datetime (overridable in tests)
        """
        self._client = client
        self._store = store
        self._window_months = (
            window_months if window_months is not None else get_settings().sync_window_months
        )
        self._clock = clock or _utcnow

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def sync_courses(self, user_id: str, credential: str) -> SyncResult:
        """
        Import new eligible courses and their supported files for a user.

        Args:
            user_id: Owning user id
            credential: Verified Canvas access token

        Returns:
            SyncResult with the number of courses and files created by this run

        Raises:
            RemoteApiError: Canvas answered a list call with a non-success status
            RemoteUnavailableError: Canvas could not be reached
        """
        logger.info(f"Starting Canvas sync for user {user_id}")
        result = SyncResult()

        remote_courses = await self._client.list_courses(credential)
        cutoff = eligibility_cutoff(self._clock(), self._window_months)

        for remote_course in remote_courses:
            if not is_course_eligible(remote_course, cutoff):
                logger.debug(
                    f"Skipping course {remote_course.id} ({remote_course.workflow_state or 'no state'}, "
                    f"created {remote_course.created_at})"
                )
                continue

            course, created = await self._resolve_course(user_id, remote_course)
            if created:
                result.courses_added += 1

            result.files_added += await self._sync_course_files(
                user_id, course, remote_course.id, credential
            )

        logger.info(
            f"Canvas sync complete for user {user_id}: "
            f"{result.courses_added} courses, {result.files_added} files"
        )
        return result

    async def verify_and_store_credential(self, user_id: str, credential: str) -> bool:
        """
        Verify a credential and persist it only if Canvas accepts it.

        A rejected credential never replaces one already stored.
        """
        if not await self._client.verify_credential(credential):
            logger.warning(f"Canvas credential rejected for user {user_id}; keeping stored value")
            return False

        await self._store.update_user_credential(user_id, credential)
        logger.info(f"Canvas credential stored for user {user_id}")
        return True

    async def sync_with_stored_credential(self, user_id: str) -> SyncResult:
        """Run sync_courses with the credential saved for the user."""
        return await self.sync_courses(user_id, await self._stored_credential(user_id))

    # =========================================================================
    # REMOTE BROWSING (no records created)
    # =========================================================================

    async def get_remote_profile(self, user_id: str) -> dict[str, Any]:
        """Canvas profile behind the user's stored credential."""
        return await self._client.get_current_user(await self._stored_credential(user_id))

    async def list_remote_courses(self, user_id: str) -> list[RemoteCourse]:
        """Every course Canvas lists for the user, eligible or not."""
        return await self._client.list_courses(await self._stored_credential(user_id))

    async def list_remote_course_files(self, user_id: str, course_id: str) -> list[RemoteFile]:
        """Every file of one remote course, supported type or not."""
        credential = await self._stored_credential(user_id)
        return await self._client.list_course_files(course_id, credential)

    async def fetch_file_content(self, user_id: str, file_id: str) -> tuple[FileRecord, bytes]:
        """
        Download a synced file's bytes from its recorded remote location.

        Raises:
            CatalogItemNotFound: No such file for this user, or it has no remote URL
            MissingCredentialError: No stored credential
        """
        file = await self._store.get_file(file_id)
        if file is None or file.user_id != user_id or not file.url:
            raise CatalogItemNotFound("file", file_id)

        content = await self._client.download_file(file.url, await self._stored_credential(user_id))
        logger.debug(f"Fetched {len(content)} bytes for file {file_id}")
        return file, content

    async def _stored_credential(self, user_id: str) -> str:
        credential = await self._store.get_user_credential(user_id)
        if not credential:
            raise MissingCredentialError(user_id)
        return credential

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def _resolve_course(
        self, user_id: str, remote_course: RemoteCourse
    ) -> tuple[CourseRecord, bool]:
        """Return the local course for a remote one, creating it if absent."""
        existing = await self._store.find_course_by_external_id(user_id, remote_course.id)
        if existing is not None:
            logger.debug(f"Course {remote_course.id} already synced as {existing.id}")
            return existing, False

        try:
            course = await self._store.create_course(
                user_id, remote_course.name, external_id=remote_course.id
            )
        except StoreWriteConflict:
            # Another run created it between our lookup and insert
            existing = await self._store.find_course_by_external_id(user_id, remote_course.id)
            if existing is None:
                raise
            logger.warning(f"Course {remote_course.id} created concurrently; reusing {existing.id}")
            return existing, False

        logger.info(f"Created course {course.id} for Canvas course {remote_course.name!r}")
        return course, True

    async def _sync_course_files(
        self, user_id: str, course: CourseRecord, remote_course_id: str, credential: str
    ) -> int:
        """Import new supported files of one course; returns how many were added."""
        remote_files = await self._client.list_course_files(remote_course_id, credential)
        logger.info(f"Found {len(remote_files)} files in course {course.name!r}")

        added = 0
        for remote_file in remote_files:
            if await self._import_file(user_id, course, remote_file):
                added += 1
        return added

    async def _import_file(self, user_id: str, course: CourseRecord, remote_file: RemoteFile) -> bool:
        existing = await self._store.find_file_by_external_id(course.id, remote_file.id)
        if existing is not None:
            logger.debug(f"File already imported: {remote_file.display_name}")
            return False

        if not is_supported_content_type(remote_file.content_type):
            logger.debug(
                f"Skipping unsupported file type {remote_file.content_type or '<none>'}: "
                f"{remote_file.display_name}"
            )
            return False

        try:
            await self._store.create_file(
                user_id=user_id,
                course_id=course.id,
                name=remote_file.display_name,
                kind=classify_content_type(remote_file.content_type),
                url=remote_file.url,
                size=remote_file.size,
                key=file_storage_key(remote_file.id),
                external_id=remote_file.id,
            )
        except StoreWriteConflict:
            logger.warning(f"File {remote_file.id} created concurrently; treating as synced")
            return False

        logger.info(f"Added file: {remote_file.display_name}")
        return True
