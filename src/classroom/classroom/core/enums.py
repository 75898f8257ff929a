from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role as provided by the external auth layer."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class Visibility(str, Enum):
    """How students may join a class."""

    OPEN = "open"
    UNLISTED = "unlisted"
    REQUEST_TO_JOIN = "request_to_join"


class JoinRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RecordStatus(str, Enum):
    """Lifecycle of an attendance record: draft until submitted."""

    DRAFT = "draft"
    FINAL = "final"


class AttendanceStatus(str, Enum):
    """Per-student status inside one attendance session."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"
