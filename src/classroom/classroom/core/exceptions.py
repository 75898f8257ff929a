from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    ``code`` is a stable machine-readable name, ``status_code`` the HTTP status
    the controller layer answers with.
    """

    code = "domain_error"
    status_code = 400

    def __init__(self, message: str = "", *, field: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])
        self.field = field

    def to_dict(self) -> dict:
        out = {"success": False, "error": self.code, "message": self.message}
        if self.field:
            out["field"] = self.field
        return out


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "validation_error"


class InvalidCapacityError(ValidationError):
    """Capacity cannot be lowered below the current roster size."""

    code = "invalid_capacity"


class DuplicateClassError(ValidationError):
    """A class with this name already exists for the batch."""

    code = "duplicate_class"
    status_code = 409


class DuplicateSessionError(ValidationError):
    """Attendance already exists for this class, date and session time."""

    code = "duplicate_session"
    status_code = 409


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""

    code = "forbidden"
    status_code = 403


class NotFoundError(DomainError):
    """Requested entity does not exist."""

    code = "not_found"
    status_code = 404


class CapacityExceededError(DomainError):
    """Class has reached its maximum capacity."""

    code = "capacity_exceeded"
    status_code = 409

    def __init__(self, message: str = "", *, requested: int = 0, available: Optional[int] = None):
        super().__init__(message)
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["requested"] = self.requested
        out["available"] = self.available
        return out


class VisibilityViolationError(DomainError):
    """The class visibility does not allow this way of joining."""

    code = "visibility_violation"
    status_code = 403


class ClassInactiveError(DomainError):
    """The class is not active."""

    code = "class_inactive"
    status_code = 409


class DuplicateEnrollmentError(DomainError):
    """Student is already enrolled in this class."""

    code = "duplicate_enrollment"
    status_code = 409


class DuplicateRequestError(DomainError):
    """A pending join request already exists for this class."""

    code = "duplicate_request"
    status_code = 409


class RequestAlreadyResolvedError(DomainError):
    """This request has already been processed."""

    code = "request_resolved"
    status_code = 409


class RequestCooldownError(DomainError):
    """Join requests are rate limited per class and student."""

    code = "request_cooldown"
    status_code = 429

    def __init__(self, message: str = "", *, minutes_left: int = 0):
        super().__init__(message)
        self.minutes_left = minutes_left

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["minutes_left"] = self.minutes_left
        return out


class RecordFinalizedError(DomainError):
    """Attendance record is final and can no longer be changed."""

    code = "record_finalized"
    status_code = 409


class AlreadyFinalError(DomainError):
    """Attendance record is already submitted."""

    code = "already_final"
    status_code = 409


class NotInRosterError(DomainError):
    """Student is not part of this session's roster snapshot."""

    code = "not_in_roster"


class EmptyRosterError(DomainError):
    """Cannot take attendance for a class without students."""

    code = "empty_roster"
    status_code = 409


class ConflictError(DomainError):
    """Concurrent modification could not be resolved; retry later."""

    code = "conflict"
    status_code = 409
