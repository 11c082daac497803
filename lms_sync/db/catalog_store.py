"""
SQLAlchemy-backed catalog store.

Each write commits in its own transaction. Violations of the external-id
unique constraints surface as StoreWriteConflict; everything else propagates.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms_sync.db.models import Course, File, User
from lms_sync.lms.errors import StoreWriteConflict
from lms_sync.lms.models import CourseRecord, FileKind, FileRecord


# Postgres unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"
# sqlite3 extended result codes for UNIQUE and PRIMARY KEY violations
SQLITE_UNIQUE_ERRORS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def _is_unique_violation(error: IntegrityError) -> bool:
    """True for duplicate-key errors; FK and NOT NULL violations are not conflicts."""
    # Async adapters may wrap the driver exception
    for exc in (error.orig, getattr(error.orig, "__cause__", None)):
        if getattr(exc, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
            return True
        if getattr(exc, "sqlite_errorname", None) in SQLITE_UNIQUE_ERRORS:
            return True
    return False


def _course_record(course: Course) -> CourseRecord:
    return CourseRecord(
        id=course.id,
        user_id=course.user_id,
        name=course.name,
        canvas_id=course.canvas_id,
    )


def _file_record(file: File) -> FileRecord:
    return FileRecord(
        id=file.id,
        user_id=file.user_id,
        course_id=file.course_id,
        name=file.name,
        kind=FileKind(file.kind),
        url=file.url,
        size=file.size or 0,
        key=file.key,
        canvas_id=file.canvas_id,
    )


class SqlCatalogStore:
    """Course/File persistence used by CatalogSyncService."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _write(self, entity: str, external_id: str | None) -> AsyncGenerator[AsyncSession, None]:
        """Single-write transaction translating unique violations."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_unique_violation(e):
                    logger.debug(f"Unique violation creating {entity} {external_id}: {e.orig}")
                    raise StoreWriteConflict(entity, external_id) from e
                raise
            except Exception:  # Intentionally broad - rollback on any error before re-raising
                await session.rollback()
                raise

    # =========================================================================
    # COURSES
    # =========================================================================

    async def find_course_by_external_id(self, user_id: str, external_id: str) -> CourseRecord | None:
        async with self._session_factory() as session:
            course = await session.scalar(
                select(Course).where(Course.user_id == user_id, Course.canvas_id == external_id)
            )
            return _course_record(course) if course is not None else None

    async def create_course(
        self, user_id: str, name: str, external_id: str | None = None
    ) -> CourseRecord:
        course = Course(user_id=user_id, name=name, canvas_id=external_id)
        async with self._write("course", external_id) as session:
            session.add(course)
        return _course_record(course)

    async def list_courses(self, user_id: str) -> list[CourseRecord]:
        """All courses owned by the user, oldest first."""
        async with self._session_factory() as session:
            result = await session.scalars(
                select(Course).where(Course.user_id == user_id).order_by(Course.created_at, Course.id)
            )
            return [_course_record(course) for course in result]

    # =========================================================================
    # FILES
    # =========================================================================

    async def find_file_by_external_id(self, course_id: str, external_id: str) -> FileRecord | None:
        async with self._session_factory() as session:
            file = await session.scalar(
                select(File).where(File.course_id == course_id, File.canvas_id == external_id)
            )
            return _file_record(file) if file is not None else None

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
        file = File(
            user_id=user_id,
            course_id=course_id,
            name=name,
            kind=FileKind(kind).value,
            url=url,
            size=size,
            key=key,
            canvas_id=external_id,
        )
        async with self._write("file", external_id) as session:
            session.add(file)
        return _file_record(file)

    async def get_file(self, file_id: str) -> FileRecord | None:
        async with self._session_factory() as session:
            file = await session.get(File, file_id)
            return _file_record(file) if file is not None else None

    async def list_files(self, course_id: str) -> list[FileRecord]:
        """All files of a course, oldest first."""
        async with self._session_factory() as session:
            result = await session.scalars(
                select(File).where(File.course_id == course_id).order_by(File.created_at, File.id)
            )
            return [_file_record(file) for file in result]

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    async def update_user_credential(self, user_id: str, credential: str) -> None:
        """Set the user's credential, creating the user row when missing."""
        try:
            await self._save_credential(user_id, credential)
        except StoreWriteConflict:
            # A concurrent call inserted the row first; this attempt is now an update
            logger.debug(f"User {user_id} created concurrently; retrying credential update")
            await self._save_credential(user_id, credential)

    async def _save_credential(self, user_id: str, credential: str) -> None:
        async with self._write("user", user_id) as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(id=user_id)
                session.add(user)
            user.canvas_token = credential
            user.canvas_token_updated_at = datetime.now(timezone.utc)

    async def get_user_credential(self, user_id: str) -> str | None:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            return user.canvas_token if user is not None else None
