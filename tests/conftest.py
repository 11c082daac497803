"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
a frozen clock, Canvas JSON payloads, and in-memory stand-ins for the
remote catalog client and the catalog store.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lms_sync.lms.errors import RemoteApiError, StoreWriteConflict  # noqa: E402
from lms_sync.lms.models import CourseRecord, FileKind, FileRecord, RemoteCourse, RemoteFile  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory SQLite)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# ========================================
# Fakes
# ========================================


class FakeCanvas:
    """RemoteCatalogClient over in-memory course and file payloads."""

    def __init__(self):
        self.courses: list[dict] = []
        self.files: dict[str, list[dict]] = {}
        self.course_error: Exception | None = None
        self.file_errors: dict[str, Exception] = {}
        self.accepted_credentials: set[str] = {"valid-token"}
        self.verify_error: Exception | None = None
        self.file_calls: list[str] = []
        self.profile: dict = {"id": 42, "name": "Ada Lovelace", "login_id": "ada"}
        self.contents: dict[str, bytes] = {}

    async def list_courses(self, credential):
        if self.course_error is not None:
            raise self.course_error
        return [RemoteCourse.from_dict(c) for c in self.courses]

    async def list_course_files(self, course_id, credential):
        self.file_calls.append(course_id)
        if course_id in self.file_errors:
            raise self.file_errors[course_id]
        return [RemoteFile.from_dict(f) for f in self.files.get(course_id, [])]

    async def verify_credential(self, credential):
        if self.verify_error is not None:
            raise self.verify_error
        return credential in self.accepted_credentials

    async def get_current_user(self, credential):
        if credential not in self.accepted_credentials:
            raise RemoteApiError(401, "/users/self")
        return dict(self.profile)

    async def download_file(self, url, credential):
        if url not in self.contents:
            raise RemoteApiError(404, url)
        return self.contents[url]


class FakeStore:
    """CatalogStore that enforces the same uniqueness rules as the SQL schema."""

    def __init__(self):
        self.courses: list[CourseRecord] = []
        self.files: list[FileRecord] = []
        self.credentials: dict[str, str] = {}
        # External ids whose create should lose a race against a concurrent run
        self.race_course_ids: set[str] = set()
        self.race_file_ids: set[str] = set()

    async def find_course_by_external_id(self, user_id, external_id):
        for course in self.courses:
            if course.user_id == user_id and course.canvas_id == external_id:
                return course
        return None

    def _insert_course(self, user_id, name, external_id):
        if external_id is not None and any(
            c.user_id == user_id and c.canvas_id == external_id for c in self.courses
        ):
            raise StoreWriteConflict("course", external_id)
        course = CourseRecord(id=str(uuid4()), user_id=user_id, name=name, canvas_id=external_id)
        self.courses.append(course)
        return course

    async def create_course(self, user_id, name, external_id=None):
        if external_id in self.race_course_ids:
            self.race_course_ids.discard(external_id)
            self._insert_course(user_id, f"{name} (other run)", external_id)
        return self._insert_course(user_id, name, external_id)

    async def find_file_by_external_id(self, course_id, external_id):
        for file in self.files:
            if file.course_id == course_id and file.canvas_id == external_id:
                return file
        return None

    def _insert_file(self, **fields):
        external_id = fields["external_id"]
        if external_id is not None and any(
            f.course_id == fields["course_id"] and f.canvas_id == external_id for f in self.files
        ):
            raise StoreWriteConflict("file", external_id)
        file = FileRecord(
            id=str(uuid4()),
            user_id=fields["user_id"],
            course_id=fields["course_id"],
            name=fields["name"],
            kind=FileKind(fields["kind"]),
            url=fields["url"],
            size=fields["size"],
            key=fields["key"],
            canvas_id=external_id,
        )
        self.files.append(file)
        return file

    async def create_file(
        self, *, user_id, course_id, name, kind, url, size=0, key=None, external_id=None
    ):
        fields = dict(
            user_id=user_id,
            course_id=course_id,
            name=name,
            kind=kind,
            url=url,
            size=size,
            key=key,
            external_id=external_id,
        )
        if external_id in self.race_file_ids:
            self.race_file_ids.discard(external_id)
            self._insert_file(**fields)
        return self._insert_file(**fields)

    async def get_file(self, file_id):
        for file in self.files:
            if file.id == file_id:
                return file
        return None

    async def update_user_credential(self, user_id, credential):
        self.credentials[user_id] = credential

    async def get_user_credential(self, user_id):
        return self.credentials.get(user_id)

    async def list_courses(self, user_id):
        return [c for c in self.courses if c.user_id == user_id]

    async def list_files(self, course_id):
        return [f for f in self.files if f.course_id == course_id]


# ========================================
# Fixtures
# ========================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Frozen 'current time' used as the sync clock."""
    return NOW


@pytest.fixture
def clock():
    """Clock callable for CatalogSyncService."""
    return lambda: NOW


@pytest.fixture
def fake_canvas():
    return FakeCanvas()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_course():
    """Build a Canvas course payload; defaults to an available course from last month."""

    def _make(course_id, name=None, workflow_state="available", created_at="2026-09-19T12:00:00Z"):
        return {
            "id": course_id,
            "name": name or f"Course {course_id}",
            "course_code": f"CODE-{course_id}",
            "created_at": created_at,
            "workflow_state": workflow_state,
        }

    return _make


@pytest.fixture
def make_file():
    """Build a Canvas file payload."""

    def _make(file_id, content_type="application/pdf", name=None, size=1024):
        return {
            "id": file_id,
            "display_name": name or f"{file_id}.bin",
            "filename": f"{file_id}.bin",
            "content-type": content_type,
            "size": size,
            "url": f"https://canvas.test/files/{file_id}/download",
            "created_at": "2026-09-20T08:00:00Z",
        }

    return _make
