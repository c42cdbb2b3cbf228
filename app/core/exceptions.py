"""
Error taxonomy for the Employee Attendance Service.

Every expected failure is an ``AppError`` carrying a stable machine readable
``code``. The API layer decides how each one reaches the caller: mutation
payloads for validation/not-found/conflict conditions, GraphQL errors for
authentication and authorization failures.
"""

from typing import Optional

from app.models.common import FieldError


class AppError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_field_errors(self) -> list[FieldError]:
        """Represent this error as a list of field-level errors."""
        return [FieldError(field=self.field, message=self.message, code=self.code)]


class UnauthenticatedError(AppError):
    """No identity, or the supplied bearer token could not be verified."""

    code = "UNAUTHENTICATED"


class ForbiddenError(AppError):
    """The identity's role or ownership does not allow the operation."""

    code = "FORBIDDEN"


class ValidationFailedError(AppError):
    """Input failed field-level validation."""

    code = "BAD_USER_INPUT"

    def __init__(self, errors: list[FieldError], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors

    def to_field_errors(self) -> list[FieldError]:
        return list(self.errors)


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"


class ConflictError(AppError):
    """A uniqueness constraint would be violated."""

    code = "CONFLICT"


class InvalidStateError(AppError):
    """The operation is not allowed in the current state (e.g. a future attendance date)."""

    code = "INVALID_STATE"


class InternalError(AppError):
    """Unexpected store or adapter failure."""

    code = "INTERNAL_SERVER_ERROR"


class AttendanceRecalculationError(InternalError):
    """
    The attendance record was persisted but the employee's percentage could
    not be recomputed. Running ``recalculate`` for the employee repairs it.
    """

    def __init__(self, employee_id: str, record_id: str):
        super().__init__(
            f"Attendance record {record_id} was saved but the attendance percentage "
            f"for employee {employee_id} could not be recalculated"
        )
        self.employee_id = employee_id
        self.record_id = record_id
