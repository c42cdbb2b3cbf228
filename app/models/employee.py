"""
Employee models and schemas for the Employee Attendance Service.

Employees are stored as MongoDB documents in the ``employees`` collection.
The ``attendance`` and ``last_attendance_update`` fields are owned by the
attendance consistency engine and are never accepted from API input.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.models.common import Role, as_utc

EMPLOYEES_COLLECTION = "employees"

DEFAULT_ATTENDANCE = 100.0


class EmployeeSort(str, Enum):
    """Supported sort orders for employee listings."""

    NAME_ASC = "NAME_ASC"
    NAME_DESC = "NAME_DESC"
    AGE_ASC = "AGE_ASC"
    AGE_DESC = "AGE_DESC"
    CLASS_ASC = "CLASS_ASC"
    CLASS_DESC = "CLASS_DESC"
    ATTENDANCE_ASC = "ATTENDANCE_ASC"
    ATTENDANCE_DESC = "ATTENDANCE_DESC"
    CREATED_AT_ASC = "CREATED_AT_ASC"
    CREATED_AT_DESC = "CREATED_AT_DESC"


# Stored Model


class Employee(BaseModel):
    """
    Employee record as read from the store.

    Tracks identity and profile data plus the cached attendance percentage:
    - ``attendance`` is 100 x present / total over the employee's records
    - ``attendance`` is 100 when the employee has no records
    """

    id: str
    name: str
    email: str
    age: int
    phone: Optional[str] = None
    class_name: str
    subjects: list[str] = Field(default_factory=list)
    attendance: float = DEFAULT_ATTENDANCE
    role: Role
    date_of_joining: datetime
    last_attendance_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Employee":
        """Build an Employee from a raw MongoDB document."""
        return cls(
            id=str(document["_id"]),
            name=document["name"],
            email=document["email"],
            age=document["age"],
            phone=document.get("phone"),
            class_name=document["class_name"],
            subjects=document.get("subjects", []),
            attendance=document.get("attendance", DEFAULT_ATTENDANCE),
            role=document["role"],
            date_of_joining=as_utc(document["date_of_joining"]),
            last_attendance_update=as_utc(document["last_attendance_update"])
            if document.get("last_attendance_update")
            else None,
            created_at=as_utc(document["created_at"]),
            updated_at=as_utc(document["updated_at"]),
        )


# Request Schemas


class EmployeeCreate(BaseModel):
    """Schema for creating a new employee."""

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    phone: Optional[str] = None
    class_name: Optional[str] = None
    subjects: Optional[list[str]] = None
    role: Optional[Role] = None
    date_of_joining: Optional[datetime] = None


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee. Only supplied fields are changed."""

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    phone: Optional[str] = None
    class_name: Optional[str] = None
    subjects: Optional[list[str]] = None
    role: Optional[Role] = None
    date_of_joining: Optional[datetime] = None


class EmployeeFilter(BaseModel):
    """Filter for employee listings. Absent fields impose no constraint."""

    name: Optional[str] = None
    class_name: Optional[str] = None
    role: Optional[Role] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_attendance: Optional[float] = None
    max_attendance: Optional[float] = None
    subjects: Optional[list[str]] = None


# Response Schemas


class PageInfo(BaseModel):
    """Pagination metadata for a listing."""

    has_next_page: bool
    has_previous_page: bool
    total_pages: int
    total_count: int
    current_page: int


class EmployeePage(BaseModel):
    """One page of employees."""

    edges: list[Employee]
    page_info: PageInfo


class ClassCount(BaseModel):
    class_name: str
    count: int
    average_attendance: float


class AttendanceTrendPoint(BaseModel):
    date: str  # YYYY-MM-DD
    average_attendance: float
    total_present: int
    total_absent: int


class EmployeeStats(BaseModel):
    """Aggregate statistics across all employees."""

    total_employees: int = 0
    average_attendance: float = 0.0
    average_age: float = 0.0
    class_distribution: list[ClassCount] = Field(default_factory=list)
    attendance_trend: list[AttendanceTrendPoint] = Field(default_factory=list)
