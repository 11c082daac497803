# SQLAlchemy models
from .base import Base
from .catalog import Course, File, User

__all__ = [
    "Base",
    "Course",
    "File",
    "User",
]
