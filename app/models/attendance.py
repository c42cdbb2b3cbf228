"""
Attendance record models and schemas for the Employee Attendance Service.

One record per employee per calendar day. Records are immutable once
created; creating one triggers recomputation of the owning employee's
attendance percentage.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel

from app.models.common import as_utc

ATTENDANCE_COLLECTION = "attendance_records"

MAX_NOTES_LENGTH = 500


# Stored Model


class AttendanceRecord(BaseModel):
    """Attendance record as read from the store."""

    id: str
    employee_id: str
    date: date
    present: bool
    notes: Optional[str] = None
    created_by: str
    created_at: datetime

    @property
    def formatted_date(self) -> str:
        """Date in YYYY-MM-DD format."""
        return self.date.isoformat()

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "AttendanceRecord":
        """Build an AttendanceRecord from a raw MongoDB document."""
        stored_date = document["date"]
        if isinstance(stored_date, datetime):
            stored_date = as_utc(stored_date).date()

        return cls(
            id=str(document["_id"]),
            employee_id=str(document["employee_id"]),
            date=stored_date,
            present=document["present"],
            notes=document.get("notes"),
            created_by=str(document["created_by"]),
            created_at=as_utc(document["created_at"]),
        )


# Summary Schemas


class AttendanceSummary(BaseModel):
    """Attendance totals for one employee, optionally within a date range."""

    total_days: int
    present_days: int
    attendance_percentage: float
