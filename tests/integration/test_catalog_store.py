"""
Integration tests for SqlCatalogStore and a full sync against it.

Runs on in-memory SQLite through aiosqlite; the schema's unique constraints
are exercised for real.
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from lms_sync.db.catalog_store import SqlCatalogStore, _is_unique_violation
from lms_sync.db.database import build_session_factory, create_engine_for_url, init_db
from lms_sync.db.models import Course, File
from lms_sync.lms.errors import RemoteApiError, StoreWriteConflict
from lms_sync.lms.models import FileKind, SyncResult
from lms_sync.lms.sync_service import CatalogSyncService


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_engine_for_url(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def store(session_factory):
    return SqlCatalogStore(session_factory)


@pytest_asyncio.fixture
async def file_store(tmp_path):
    """Store over a file-backed database so separate connections really race."""
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'catalog.db'}")
    await init_db(engine)
    yield SqlCatalogStore(build_session_factory(engine))
    await engine.dispose()


async def _row_counts(session_factory):
    async with session_factory() as session:
        courses = await session.scalar(select(func.count()).select_from(Course))
        files = await session.scalar(select(func.count()).select_from(File))
    return courses, files


async def _add_file(store, course_id, external_id, user_id="u1"):
    return await store.create_file(
        user_id=user_id,
        course_id=course_id,
        name=f"{external_id}.pdf",
        kind=FileKind.DOCUMENT,
        url=f"https://canvas.test/files/{external_id}/download",
        size=10,
        key=f"canvas-{external_id}",
        external_id=external_id,
    )


class TestCourses:
    """Course creation and lookup."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, store):
        created = await store.create_course("u1", "Physics", external_id="100")

        found = await store.find_course_by_external_id("u1", "100")

        assert found == created
        assert found.id
        assert found.canvas_id == "100"

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, store):
        assert await store.find_course_by_external_id("u1", "nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_external_id_conflicts(self, store, session_factory):
        await store.create_course("u1", "Physics", external_id="100")

        with pytest.raises(StoreWriteConflict) as exc_info:
            await store.create_course("u1", "Physics again", external_id="100")

        assert exc_info.value.entity == "course"
        assert await _row_counts(session_factory) == (1, 0)

    @pytest.mark.asyncio
    async def test_same_external_id_for_other_user(self, store):
        await store.create_course("u1", "Physics", external_id="100")
        await store.create_course("u2", "Physics", external_id="100")

        assert len(await store.list_courses("u1")) == 1
        assert len(await store.list_courses("u2")) == 1

    @pytest.mark.asyncio
    async def test_uploaded_courses_without_external_id(self, store):
        await store.create_course("u1", "Notes A")
        await store.create_course("u1", "Notes B")

        assert [c.name for c in await store.list_courses("u1")] == ["Notes A", "Notes B"]

    @pytest.mark.asyncio
    async def test_listed_in_creation_order(self, store):
        names = [f"Course {n}" for n in range(10)]
        for name in names:
            await store.create_course("u1", name, external_id=name)

        assert [c.name for c in await store.list_courses("u1")] == names


class TestFiles:
    """File creation and lookup."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, store):
        course = await store.create_course("u1", "Physics", external_id="100")
        created = await _add_file(store, course.id, "F1")

        found = await store.find_file_by_external_id(course.id, "F1")

        assert found == created
        assert found.kind == FileKind.DOCUMENT
        assert found.key == "canvas-F1"
        assert await store.find_file_by_external_id(course.id, "F2") is None

    @pytest.mark.asyncio
    async def test_get_by_local_id(self, store):
        course = await store.create_course("u1", "Physics", external_id="100")
        created = await _add_file(store, course.id, "F1")

        assert await store.get_file(created.id) == created
        assert await store.get_file("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_in_course_conflicts(self, store):
        course = await store.create_course("u1", "Physics", external_id="100")
        await _add_file(store, course.id, "F1")

        with pytest.raises(StoreWriteConflict):
            await _add_file(store, course.id, "F1")

        assert len(await store.list_files(course.id)) == 1

    @pytest.mark.asyncio
    async def test_same_external_id_in_other_course(self, store):
        first = await store.create_course("u1", "Physics", external_id="100")
        second = await store.create_course("u1", "Chemistry", external_id="200")

        await _add_file(store, first.id, "F1")
        await _add_file(store, second.id, "F1")

        assert len(await store.list_files(first.id)) == 1
        assert len(await store.list_files(second.id)) == 1


class TestCredentials:
    """Stored Canvas credential."""

    @pytest.mark.asyncio
    async def test_unknown_user_has_none(self, store):
        assert await store.get_user_credential("u1") is None

    @pytest.mark.asyncio
    async def test_update_creates_then_overwrites(self, store):
        await store.update_user_credential("u1", "first")
        await store.update_user_credential("u1", "second")

        assert await store.get_user_credential("u1") == "second"

    @pytest.mark.asyncio
    async def test_concurrent_first_writes_both_succeed(self, file_store):
        results = await asyncio.gather(
            file_store.update_user_credential("u1", "a"),
            file_store.update_user_credential("u1", "b"),
            return_exceptions=True,
        )

        assert results == [None, None]
        assert await file_store.get_user_credential("u1") in {"a", "b"}


class TestSyncAgainstStore:
    """End-to-end sync with the SQL store and a fake Canvas."""

    @pytest.fixture
    def service(self, fake_canvas, store, clock):
        return CatalogSyncService(client=fake_canvas, store=store, window_months=8, clock=clock)

    @pytest.mark.asyncio
    async def test_scenario_is_idempotent(self, service, fake_canvas, session_factory, make_course, make_file):
        fake_canvas.courses = [make_course("C1")]
        fake_canvas.files = {
            "C1": [
                make_file("F1", content_type="application/pdf"),
                make_file("F2", content_type="application/zip"),
            ]
        }

        first = await service.sync_courses("u1", "valid-token")
        counts_after_first = await _row_counts(session_factory)
        second = await service.sync_courses("u1", "valid-token")

        assert first == SyncResult(courses_added=1, files_added=1)
        assert second == SyncResult(courses_added=0, files_added=0)
        assert counts_after_first == (1, 1)
        assert await _row_counts(session_factory) == (1, 1)

    @pytest.mark.asyncio
    async def test_partial_progress_survives_failure(
        self, service, fake_canvas, store, session_factory, make_course, make_file
    ):
        fake_canvas.courses = [make_course("C1"), make_course("C2")]
        fake_canvas.files = {"C1": [make_file("F1"), make_file("F2", content_type="video/mp4")]}
        fake_canvas.file_errors["C2"] = RemoteApiError(403, "/courses/C2/files")

        with pytest.raises(RemoteApiError):
            await service.sync_courses("u1", "valid-token")

        assert await _row_counts(session_factory) == (2, 2)
        first_course = await store.find_course_by_external_id("u1", "C1")
        assert {f.canvas_id for f in await store.list_files(first_course.id)} == {"F1", "F2"}

    @pytest.mark.asyncio
    async def test_verify_and_store(self, service, store):
        assert await service.verify_and_store_credential("u1", "valid-token") is True
        assert await service.verify_and_store_credential("u1", "bad-token") is False

        assert await store.get_user_credential("u1") == "valid-token"


class _DriverError(Exception):
    """DBAPI error carrying driver attributes; the message always mentions 'unique'."""

    def __init__(self, **attrs):
        super().__init__("violates unique constraint")
        self.__dict__.update(attrs)


class TestConflictDetection:
    """Only duplicate-key errors become StoreWriteConflict."""

    @pytest.mark.parametrize("attrs,expected", [
        ({"sqlstate": "23505"}, True),
        ({"sqlstate": "23503"}, False),
        ({"sqlite_errorname": "SQLITE_CONSTRAINT_UNIQUE"}, True),
        ({"sqlite_errorname": "SQLITE_CONSTRAINT_PRIMARYKEY"}, True),
        ({"sqlite_errorname": "SQLITE_CONSTRAINT_NOTNULL"}, False),
        ({}, False),
    ])
    def test_classification(self, attrs, expected):
        error = IntegrityError("INSERT INTO courses ...", {}, _DriverError(**attrs))

        assert _is_unique_violation(error) is expected

    @pytest.mark.asyncio
    async def test_not_null_violation_propagates(self, store, session_factory):
        with pytest.raises(IntegrityError):
            await store.create_course("u1", None, external_id="100")

        assert await _row_counts(session_factory) == (0, 0)
