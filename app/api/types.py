"""
GraphQL types for the Employee Attendance Service.

Object types are thin views over the Pydantic models. Related objects
(an employee's attendance records, a record's employee and creator) are
resolved through the request's batch loaders, never joined by the store.
"""

import datetime
from typing import Optional

import strawberry
from graphql import GraphQLError
from strawberry.types import Info

from app.core.exceptions import ForbiddenError
from app.core.security import can_access_employee_record
from app.models import (
    AttendanceRecord,
    DateRange,
    Employee,
    EmployeeCreate,
    EmployeeFilter,
    EmployeeSort,
    EmployeeUpdate,
    FieldError,
    Role,
)
from app.models.employee import EmployeeStats, PageInfo

strawberry.enum(Role)
strawberry.enum(EmployeeSort)


def forbidden_error() -> GraphQLError:
    error = ForbiddenError("Not authorized")
    return GraphQLError(error.message, extensions={"code": error.code})


# Object Types


@strawberry.type(name="ValidationError")
class FieldErrorType:
    field: Optional[str]
    message: str
    code: str

    @classmethod
    def from_model(cls, error: FieldError) -> "FieldErrorType":
        return cls(field=error.field, message=error.message, code=error.code)


@strawberry.type(name="AttendanceSummary")
class AttendanceSummaryType:
    total_days: int
    present_days: int
    attendance_percentage: float


# Used as an argument by object types below, so defined first
@strawberry.input(name="DateRangeInput")
class DateRangeInput:
    start_date: datetime.date
    end_date: datetime.date

    def to_model(self) -> DateRange:
        return DateRange(start_date=self.start_date, end_date=self.end_date)


@strawberry.type(name="Employee")
class EmployeeType:
    id: strawberry.ID
    name: str
    age: int
    class_name: str = strawberry.field(name="class")
    subjects: list[str]
    email: str
    phone: Optional[str]
    attendance: float
    last_attendance_update: Optional[datetime.datetime]
    role: Role
    date_of_joining: datetime.datetime
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @strawberry.field
    async def attendance_records(self, info: Info) -> Optional[list["AttendanceRecordType"]]:
        if not can_access_employee_record(info.context.identity, str(self.id)):
            raise forbidden_error()
        records = await info.context.loaders.attendance.load(str(self.id))
        return [AttendanceRecordType.from_model(record) for record in records]

    @strawberry.field
    async def attendance_summary(
        self, info: Info, date_range: Optional[DateRangeInput] = None
    ) -> Optional[AttendanceSummaryType]:
        if not can_access_employee_record(info.context.identity, str(self.id)):
            raise forbidden_error()
        summary = await info.context.attendance.get_attendance_stats(
            str(self.id), date_range.to_model() if date_range else None
        )
        return AttendanceSummaryType(
            total_days=summary.total_days,
            present_days=summary.present_days,
            attendance_percentage=summary.attendance_percentage,
        )

    @classmethod
    def from_model(cls, employee: Employee) -> "EmployeeType":
        return cls(
            id=strawberry.ID(employee.id),
            name=employee.name,
            age=employee.age,
            class_name=employee.class_name,
            subjects=employee.subjects,
            email=employee.email,
            phone=employee.phone,
            attendance=employee.attendance,
            last_attendance_update=employee.last_attendance_update,
            role=employee.role,
            date_of_joining=employee.date_of_joining,
            created_at=employee.created_at,
            updated_at=employee.updated_at,
        )


@strawberry.type(name="AttendanceRecord")
class AttendanceRecordType:
    id: strawberry.ID
    employee_id: strawberry.ID
    date: datetime.date
    present: bool
    notes: Optional[str]
    created_at: datetime.datetime
    created_by: strawberry.ID

    @strawberry.field
    def formatted_date(self) -> str:
        return self.date.isoformat()

    @strawberry.field
    async def employee(self, info: Info) -> Optional[EmployeeType]:
        employee = await info.context.loaders.employee.load(str(self.employee_id))
        return EmployeeType.from_model(employee) if employee else None

    @strawberry.field
    async def creator(self, info: Info) -> Optional[EmployeeType]:
        creator = await info.context.loaders.employee.load(str(self.created_by))
        return EmployeeType.from_model(creator) if creator else None

    @classmethod
    def from_model(cls, record: AttendanceRecord) -> "AttendanceRecordType":
        return cls(
            id=strawberry.ID(record.id),
            employee_id=strawberry.ID(record.employee_id),
            date=record.date,
            present=record.present,
            notes=record.notes,
            created_at=record.created_at,
            created_by=strawberry.ID(record.created_by),
        )


@strawberry.type(name="PageInfo")
class PageInfoType:
    has_next_page: bool
    has_previous_page: bool
    total_pages: int
    total_count: int
    current_page: int

    @classmethod
    def from_model(cls, page_info: PageInfo) -> "PageInfoType":
        return cls(**page_info.model_dump())


@strawberry.type(name="EmployeePage")
class EmployeePageType:
    edges: list[EmployeeType]
    page_info: PageInfoType


@strawberry.type(name="ClassCount")
class ClassCountType:
    class_name: str = strawberry.field(name="class")
    count: int
    average_attendance: float


@strawberry.type(name="AttendanceTrend")
class AttendanceTrendType:
    date: datetime.date
    average_attendance: float
    total_present: int
    total_absent: int


@strawberry.type(name="EmployeeStats")
class EmployeeStatsType:
    total_employees: int
    average_attendance: float
    average_age: float
    class_distribution: list[ClassCountType]
    attendance_trend: list[AttendanceTrendType]

    @classmethod
    def from_model(cls, stats: EmployeeStats) -> "EmployeeStatsType":
        return cls(
            total_employees=stats.total_employees,
            average_attendance=stats.average_attendance,
            average_age=stats.average_age,
            class_distribution=[
                ClassCountType(
                    class_name=row.class_name,
                    count=row.count,
                    average_attendance=row.average_attendance,
                )
                for row in stats.class_distribution
            ],
            attendance_trend=[
                AttendanceTrendType(
                    date=datetime.date.fromisoformat(point.date),
                    average_attendance=point.average_attendance,
                    total_present=point.total_present,
                    total_absent=point.total_absent,
                )
                for point in stats.attendance_trend
            ],
        )


@strawberry.type(name="MutationResponse")
class MutationResponseType:
    success: bool
    message: Optional[str] = None
    employee: Optional[EmployeeType] = None
    errors: Optional[list[FieldErrorType]] = None


# Input Types


@strawberry.input(name="EmployeeFilter")
class EmployeeFilterInput:
    name: Optional[str] = None
    class_name: Optional[str] = strawberry.field(default=None, name="class")
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_attendance: Optional[float] = None
    max_attendance: Optional[float] = None
    subjects: Optional[list[str]] = None
    role: Optional[Role] = None

    def to_model(self) -> EmployeeFilter:
        return EmployeeFilter(
            name=self.name,
            class_name=self.class_name,
            role=self.role,
            min_age=self.min_age,
            max_age=self.max_age,
            min_attendance=self.min_attendance,
            max_attendance=self.max_attendance,
            subjects=self.subjects,
        )


@strawberry.input(name="CreateEmployeeInput")
class CreateEmployeeInput:
    name: str
    age: int
    class_name: str = strawberry.field(name="class")
    subjects: list[str]
    email: str
    role: Role
    phone: Optional[str] = None
    date_of_joining: Optional[datetime.datetime] = None

    def to_model(self) -> EmployeeCreate:
        return EmployeeCreate(
            name=self.name,
            age=self.age,
            class_name=self.class_name,
            subjects=self.subjects,
            email=self.email,
            role=self.role,
            phone=self.phone,
            date_of_joining=self.date_of_joining,
        )


@strawberry.input(name="UpdateEmployeeInput")
class UpdateEmployeeInput:
    name: Optional[str] = None
    age: Optional[int] = None
    class_name: Optional[str] = strawberry.field(default=None, name="class")
    subjects: Optional[list[str]] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    date_of_joining: Optional[datetime.datetime] = None

    def to_model(self) -> EmployeeUpdate:
        return EmployeeUpdate(
            name=self.name,
            age=self.age,
            class_name=self.class_name,
            subjects=self.subjects,
            email=self.email,
            phone=self.phone,
            role=self.role,
            date_of_joining=self.date_of_joining,
        )


@strawberry.input(name="AttendanceInput")
class AttendanceInputType:
    employee_id: strawberry.ID
    date: datetime.date
    present: bool
    notes: Optional[str] = None
