"""
Value types exchanged between the Canvas client, the catalog store and the
sync service.

Remote* types are parsed from Canvas JSON and live for a single run.
*Record types are the store's view of persisted rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from dateutil import parser as date_parser


class FileKind(str, Enum):
    """Content classification stored on a File instead of the raw MIME type."""

    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"


# Only these remote content types are imported during sync
SUPPORTED_CONTENT_TYPES: dict[str, FileKind] = {
    "application/pdf": FileKind.DOCUMENT,
    "video/mp4": FileKind.VIDEO,
    "audio/mpeg": FileKind.AUDIO,
    "audio/wav": FileKind.AUDIO,
}


def _normalize_content_type(content_type: str | None) -> str:
    # "application/pdf; charset=binary" -> "application/pdf"
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_supported_content_type(content_type: str | None) -> bool:
    """Check if a remote file with this content type is importable."""
    return _normalize_content_type(content_type) in SUPPORTED_CONTENT_TYPES


def classify_content_type(content_type: str | None) -> FileKind:
    """
    Map a MIME string onto the closed FileKind set.

    Args:
        content_type: Raw ``content-type`` value reported by Canvas

    Returns:
        The matching FileKind, or FileKind.OTHER for anything not allowlisted
    """
    return SUPPORTED_CONTENT_TYPES.get(_normalize_content_type(content_type), FileKind.OTHER)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a Canvas ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class RemoteCourse:
    """A course as listed by ``GET /courses``."""

    id: str
    name: str
    course_code: str = ""
    created_at: datetime | None = None
    workflow_state: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteCourse:
        """Parse a course from the API response."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            course_code=data.get("course_code") or "",
            created_at=parse_timestamp(data.get("created_at")),
            workflow_state=data.get("workflow_state") or "",
        )


@dataclass(frozen=True)
class RemoteFile:
    """A file as listed by ``GET /courses/{id}/files``."""

    id: str
    display_name: str
    content_type: str = ""
    size: int = 0
    url: str = ""
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFile:
        """Parse a file from the API response."""
        return cls(
            id=str(data["id"]),
            display_name=data.get("display_name") or data.get("filename") or "",
            content_type=data.get("content-type") or data.get("content_type") or "",
            size=int(data.get("size") or 0),
            url=data.get("url") or "",
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class CourseRecord:
    """A persisted Course row."""

    id: str
    user_id: str
    name: str
    canvas_id: str | None = None


@dataclass(frozen=True)
class FileRecord:
    """A persisted File row."""

    id: str
    user_id: str
    course_id: str
    name: str
    kind: FileKind
    url: str
    size: int = 0
    key: str | None = None
    canvas_id: str | None = None


@dataclass
class SyncResult:
    """Counts of records created by one sync run."""

    courses_added: int = 0
    files_added: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to the camelCase payload returned by the HTTP layer."""
        return {
            "coursesAdded": self.courses_added,
            "filesAdded": self.files_added,
        }
