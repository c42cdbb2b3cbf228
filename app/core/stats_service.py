"""
Aggregate employee and attendance statistics.

Computed on demand with MongoDB aggregation pipelines; nothing is cached.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.models.attendance import ATTENDANCE_COLLECTION
from app.models.common import day_start, utcnow
from app.models.employee import (
    EMPLOYEES_COLLECTION,
    AttendanceTrendPoint,
    ClassCount,
    EmployeeStats,
)

logger = get_logger(__name__)


def employee_summary_pipeline() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": None,
                "total_employees": {"$sum": 1},
                "average_attendance": {"$avg": "$attendance"},
                "average_age": {"$avg": "$age"},
            }
        }
    ]


def class_distribution_pipeline() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$class_name",
                "count": {"$sum": 1},
                "average_attendance": {"$avg": "$attendance"},
            }
        },
        {"$sort": {"_id": 1}},
    ]


def attendance_trend_pipeline(since: datetime) -> list[dict[str, Any]]:
    """Per-day present/absent counts for records dated on or after ``since``, newest first."""
    return [
        {"$match": {"date": {"$gte": since}}},
        {
            "$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$date"}},
                "total_present": {"$sum": {"$cond": ["$present", 1, 0]}},
                "total_absent": {"$sum": {"$cond": ["$present", 0, 1]}},
                "average_attendance": {"$avg": {"$cond": ["$present", 100, 0]}},
            }
        },
        {"$sort": {"_id": -1}},
    ]


class StatsService:
    """Builds the employeeStats view."""

    def __init__(self, store, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    async def employee_stats(self, trend_days: Optional[int] = None) -> EmployeeStats:
        """
        Employee count, averages, class distribution and the daily attendance
        trend over the last ``trend_days`` calendar days (including today).
        """
        trend_days = trend_days or settings.ATTENDANCE_TREND_DAYS
        since = day_start(self._clock().date() - timedelta(days=trend_days - 1))

        summary_rows = await self._store.aggregate(
            EMPLOYEES_COLLECTION, employee_summary_pipeline()
        )
        class_rows = await self._store.aggregate(
            EMPLOYEES_COLLECTION, class_distribution_pipeline()
        )
        trend_rows = await self._store.aggregate(
            ATTENDANCE_COLLECTION, attendance_trend_pipeline(since)
        )

        summary = summary_rows[0] if summary_rows else {}
        stats = EmployeeStats(
            total_employees=summary.get("total_employees", 0),
            average_attendance=summary.get("average_attendance") or 0.0,
            average_age=summary.get("average_age") or 0.0,
            class_distribution=[
                ClassCount(
                    class_name=row["_id"],
                    count=row["count"],
                    average_attendance=row.get("average_attendance") or 0.0,
                )
                for row in class_rows
            ],
            attendance_trend=[
                AttendanceTrendPoint(
                    date=row["_id"],
                    average_attendance=row.get("average_attendance") or 0.0,
                    total_present=row["total_present"],
                    total_absent=row["total_absent"],
                )
                for row in trend_rows
            ],
        )
        logger.info(
            f"Computed stats for {stats.total_employees} employees, "
            f"{len(stats.attendance_trend)} trend days"
        )
        return stats
