"""
Data models and schemas module.
Contains the stored document models and the Pydantic request/response schemas.
"""

from app.models.attendance import (
    ATTENDANCE_COLLECTION,
    AttendanceRecord,
    AttendanceSummary,
)
from app.models.common import DateRange, FieldError, Role
from app.models.employee import (
    EMPLOYEES_COLLECTION,
    Employee,
    EmployeeCreate,
    EmployeeFilter,
    EmployeePage,
    EmployeeSort,
    EmployeeStats,
    EmployeeUpdate,
    PageInfo,
)

__all__ = [
    "ATTENDANCE_COLLECTION",
    "EMPLOYEES_COLLECTION",
    "AttendanceRecord",
    "AttendanceSummary",
    "DateRange",
    "Employee",
    "EmployeeCreate",
    "EmployeeFilter",
    "EmployeePage",
    "EmployeeSort",
    "EmployeeStats",
    "EmployeeUpdate",
    "FieldError",
    "PageInfo",
    "Role",
]
