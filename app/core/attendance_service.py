"""
Attendance consistency engine.

Owns the employee ``attendance`` and ``last_attendance_update`` fields and
keeps them equal to ``100 x present / total`` over the employee's attendance
records (100 when there are none).

Every attendance write is followed by a recomputation before the operation
reports success. If the recomputation fails after the record was persisted
the record is kept and ``AttendanceRecalculationError`` is raised; calling
``recalculate`` for the employee repairs the stored percentage. Concurrent
writers for the same employee are not serialized: the last recomputation wins.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any, Optional

from app.core.exceptions import (
    AttendanceRecalculationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from app.core.loaders import DataLoaders
from app.core.logging import get_logger
from app.core.validation import parse_attendance_date, validate_attendance_input
from app.models.attendance import ATTENDANCE_COLLECTION, AttendanceRecord, AttendanceSummary
from app.models.common import DateRange, day_start, parse_object_id, utcnow
from app.models.employee import DEFAULT_ATTENDANCE, EMPLOYEES_COLLECTION

logger = get_logger(__name__)

# Reported as INVALID_STATE at write time rather than as a validation error
FUTURE_DATE_CODE = "FUTURE_DATE"


def compute_attendance_percentage(presence: Iterable[bool]) -> float:
    """
    Percentage of present days.

    Args:
        presence: One flag per attendance record

    Returns:
        100 x present / total, or 100 when there are no records
    """
    flags = list(presence)
    if not flags:
        return DEFAULT_ATTENDANCE
    return sum(1 for present in flags if present) / len(flags) * 100


def date_range_filter(date_range: Optional[DateRange]) -> dict[str, Any]:
    """Inclusive filter on the stored ``date`` field."""
    if date_range is None:
        return {}
    return {
        "date": {
            "$gte": day_start(date_range.start_date),
            "$lt": day_start(date_range.end_date) + timedelta(days=1),
        }
    }


class AttendanceService:
    """
    Records attendance and maintains the derived attendance percentage.
    """

    def __init__(
        self,
        store,
        loaders: Optional[DataLoaders] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Store adapter
            loaders: Request loaders to invalidate after writes, if any
            clock: Source of the current time
        """
        self._store = store
        self._loaders = loaders
        self._clock = clock

    async def record_attendance(
        self,
        employee_id: str,
        attendance_date: Any,
        present: bool,
        notes: Optional[str],
        creator_id: str,
    ) -> AttendanceRecord:
        """
        Persist one attendance record and recompute the employee's percentage.

        Args:
            employee_id: Employee the record belongs to
            attendance_date: Calendar day being marked
            present: Whether the employee was present
            notes: Optional note, at most 500 characters
            creator_id: Identity id of the caller recording attendance

        Returns:
            The created attendance record

        Raises:
            ValidationFailedError: if the input is malformed; nothing is persisted
            NotFoundError: if the employee does not exist
            ConflictError: if a record for that employee and day already exists
            InvalidStateError: if the day is in the future; nothing is persisted
            AttendanceRecalculationError: if the record was saved but the
                percentage could not be recomputed
        """
        errors = [
            error
            for error in validate_attendance_input(attendance_date, notes, now=self._clock())
            if error.code != FUTURE_DATE_CODE
        ]
        if errors:
            raise ValidationFailedError(errors)

        day = parse_attendance_date(attendance_date)

        employee = await self._store.find_by_id(EMPLOYEES_COLLECTION, employee_id)
        if employee is None:
            logger.warning(f"Attendance attempted for non-existent employee {employee_id}")
            raise NotFoundError(f"Employee {employee_id} not found", field="employeeId")

        stored_date = day_start(day)
        existing = await self._store.count(
            ATTENDANCE_COLLECTION, {"employee_id": employee["_id"], "date": stored_date}
        )
        if existing:
            logger.warning(f"Attendance already recorded for employee {employee_id} on {day}")
            raise ConflictError(
                f"Attendance already recorded for {day.isoformat()}", field="date"
            )

        now = self._clock()
        if day > now.date():
            logger.warning(f"Future attendance date {day} rejected for employee {employee_id}")
            raise InvalidStateError("Future dates are not allowed", field="date")

        notes = notes.strip() if notes else None
        document = {
            "employee_id": employee["_id"],
            "date": stored_date,
            "present": present,
            "notes": notes or None,
            "created_by": parse_object_id(creator_id) or creator_id,
            "created_at": now,
        }
        created = await self._store.create(ATTENDANCE_COLLECTION, document)
        record = AttendanceRecord.from_document(created)
        if self._loaders is not None:
            self._loaders.invalidate_attendance(employee_id)
        logger.info(
            f"Recorded attendance {record.id} for employee {employee_id} on {day} "
            f"(present={present})"
        )

        try:
            await self.recalculate(employee_id)
        except Exception as e:
            logger.error(
                f"Attendance {record.id} saved but recalculation failed for employee "
                f"{employee_id}; run recalculate to repair: {e}",
                exc_info=True,
            )
            raise AttendanceRecalculationError(employee_id, record.id) from e

        return record

    async def recalculate(self, employee_id: str) -> float:
        """
        Recompute and store the employee's attendance percentage from scratch.

        Idempotent: the stored value depends only on the attendance records.

        Returns:
            The new attendance percentage

        Raises:
            NotFoundError: if the employee does not exist
        """
        employee = await self._store.find_by_id(EMPLOYEES_COLLECTION, employee_id)
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found", field="employeeId")

        documents = await self._store.find_many(
            ATTENDANCE_COLLECTION, {"employee_id": employee["_id"]}
        )
        percentage = compute_attendance_percentage(doc["present"] for doc in documents)

        now = self._clock()
        updated = await self._store.update_by_id(
            EMPLOYEES_COLLECTION,
            employee_id,
            {"attendance": percentage, "last_attendance_update": now, "updated_at": now},
        )
        if updated is None:
            raise NotFoundError(f"Employee {employee_id} not found", field="employeeId")

        if self._loaders is not None:
            self._loaders.invalidate_employee(employee_id)
            self._loaders.invalidate_attendance(employee_id)

        logger.info(
            f"Attendance for employee {employee_id} recalculated: "
            f"{percentage:.2f}% over {len(documents)} records"
        )
        return percentage

    async def get_attendance(
        self, employee_id: str, date_range: Optional[DateRange] = None
    ) -> list[AttendanceRecord]:
        """
        Attendance records for one employee, newest date first.

        Without a date range the request's attendance loader is used.
        """
        if date_range is None and self._loaders is not None:
            return await self._loaders.attendance.load(employee_id)

        object_id = parse_object_id(employee_id)
        if object_id is None:
            return []
        documents = await self._store.find_many(
            ATTENDANCE_COLLECTION,
            {"employee_id": object_id, **date_range_filter(date_range)},
            sort=[("date", -1)],
        )
        return [AttendanceRecord.from_document(doc) for doc in documents]

    async def get_attendance_stats(
        self, employee_id: str, date_range: Optional[DateRange] = None
    ) -> AttendanceSummary:
        """Totals and percentage for one employee, optionally within a date range."""
        records = await self.get_attendance(employee_id, date_range)
        present_days = sum(1 for record in records if record.present)
        return AttendanceSummary(
            total_days=len(records),
            present_days=present_days,
            attendance_percentage=compute_attendance_percentage(
                record.present for record in records
            ),
        )
