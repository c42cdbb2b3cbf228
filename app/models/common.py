"""
Shared schemas used across employee and attendance models.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel


class Role(str, Enum):
    """Role of an authenticated identity and of an employee record."""

    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"


class FieldError(BaseModel):
    """A single field-level error reported back to API callers."""

    field: Optional[str] = None
    message: str
    code: str


class DateRange(BaseModel):
    """Inclusive calendar date range."""

    start_date: date
    end_date: date


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by the MongoDB driver) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def day_start(value: date) -> datetime:
    """UTC midnight of a calendar date, the form attendance dates are stored in."""
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return ``value`` as an ObjectId, or None if it is not a valid one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None
