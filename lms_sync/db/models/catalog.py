"""
Catalog table models.

Courses and files are created by Canvas sync (canvas_id set) or by the upload
pipeline (canvas_id NULL). The unique constraints on canvas_id are what keep
concurrent sync runs from duplicating rows; NULLs never collide.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    # Microsecond precision keeps creation order within one sync run
    return datetime.now(timezone.utc)


class User(Base):
    """Application user; only the Canvas credential columns matter here."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    canvas_token: Mapped[str | None] = mapped_column(Text)
    canvas_token_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Course(Base):
    """A course owned by one user."""

    __tablename__ = "courses"
    __table_args__ = (
        UniqueConstraint("user_id", "canvas_id", name="uq_courses_user_canvas_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    canvas_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    files: Mapped[list[File]] = relationship(back_populates="course", cascade="all, delete-orphan")


class File(Base):
    """A lecture file; synced files point at their remote download URL."""

    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("course_id", "canvas_id", name="uq_files_course_canvas_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # document, audio, video, other
    url: Mapped[str] = mapped_column(Text, nullable=False)
    key: Mapped[str | None] = mapped_column(Text)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    canvas_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    course: Mapped[Course] = relationship(back_populates="files")
