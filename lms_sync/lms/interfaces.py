"""
Contracts the sync service depends on.

CanvasClient and SqlCatalogStore satisfy these; tests substitute in-memory
fakes.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import CourseRecord, FileKind, FileRecord, RemoteCourse, RemoteFile


@runtime_checkable
class RemoteCatalogClient(Protocol):
    """Read access to a user's LMS catalog."""

    async def list_courses(self, credential: str) -> list[RemoteCourse]:
        """List every course visible to the credential."""
        ...

    async def list_course_files(self, course_id: str, credential: str) -> list[RemoteFile]:
        """List every file in one remote course."""
        ...

    async def verify_credential(self, credential: str) -> bool:
        """Return True iff the LMS currently accepts the credential."""
        ...

    async def get_current_user(self, credential: str) -> dict[str, Any]:
        """Return the LMS profile the credential belongs to."""
        ...

    async def download_file(self, url: str, credential: str) -> bytes:
        """Fetch file content from a recorded remote location."""
        ...


@runtime_checkable
class CatalogStore(Protocol):
    """Keyed lookup and creation of the application's Course/File records."""

    async def find_course_by_external_id(
        self, user_id: str, external_id: str
    ) -> CourseRecord | None:
        """Return the user's course with this external id, if any."""
        ...

    async def create_course(
        self, user_id: str, name: str, external_id: str | None = None
    ) -> CourseRecord:
        """Create a course; raises StoreWriteConflict on a duplicate external id."""
        ...

    async def find_file_by_external_id(
        self, course_id: str, external_id: str
    ) -> FileRecord | None:
        """Return the course's file with this external id, if any."""
        ...

    async def create_file(
        self,
        *,
        user_id: str,
        course_id: str,
        name: str,
        kind: FileKind,
        url: str,
        size: int = 0,
        key: str | None = None,
        external_id: str | None = None,
    ) -> FileRecord:
        """Create a file; raises StoreWriteConflict on a duplicate external id."""
        ...

    async def get_file(self, file_id: str) -> FileRecord | None:
        """Return a file by its local id, if any."""
        ...

    async def update_user_credential(self, user_id: str, credential: str) -> None:
        """Persist the Canvas credential against the user."""
        ...

    async def get_user_credential(self, user_id: str) -> str | None:
        """Return the stored Canvas credential, if any."""
        ...
