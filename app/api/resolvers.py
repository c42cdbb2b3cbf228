"""
GraphQL query and mutation resolvers.

Every resolver runs the access checks first:
- no identity -> UNAUTHENTICATED GraphQL error
- role or ownership check failed -> FORBIDDEN GraphQL error

Mutations report validation, not-found, conflict and invalid-state
conditions in the response payload (``success: false``) instead of as
GraphQL errors, so callers must check ``success``.
"""

from collections.abc import Collection
from typing import Annotated, Optional

import strawberry
from graphql import GraphQLError
from pydantic import BaseModel
from strawberry.types import Info

from app.api.types import (
    AttendanceInputType,
    AttendanceRecordType,
    CreateEmployeeInput,
    DateRangeInput,
    EmployeeFilterInput,
    EmployeePageType,
    EmployeeStatsType,
    EmployeeType,
    FieldErrorType,
    MutationResponseType,
    PageInfoType,
    UpdateEmployeeInput,
)
from app.core.config import settings
from app.core.events import (
    AttendanceMarkedEvent,
    AttendanceRecalculatedEvent,
    EmployeeCreatedEvent,
    EmployeeUpdatedEvent,
    EventType,
    create_event,
)
from app.core.exceptions import (
    AppError,
    ForbiddenError,
    InternalError,
    UnauthenticatedError,
    ValidationFailedError,
)
from app.core.kafka import publish_event
from app.core.logging import get_logger
from app.core.security import Identity, can_access_employee_record, require_role
from app.core.topics import KafkaTopics
from app.models import EmployeeSort, FieldError, Role
from app.models.common import utcnow

logger = get_logger(__name__)

ADMIN_ONLY = {Role.ADMIN}
ALL_ROLES = {Role.ADMIN, Role.EMPLOYEE}


# Error helpers


def graphql_error(error: AppError) -> GraphQLError:
    """Transport-level GraphQL error carrying the stable error code."""
    extensions = {"code": error.code}
    if isinstance(error, ValidationFailedError):
        extensions["errors"] = [e.model_dump() for e in error.errors]
    return GraphQLError(error.message, extensions=extensions)


def failure_response(error: AppError, default_message: str) -> MutationResponseType:
    """Mutation payload for an expected failure."""
    if isinstance(error, InternalError):
        message = default_message
        errors = (
            [FieldError(message="Internal server error", code=error.code)]
            if settings.is_production
            else error.to_field_errors()
        )
    elif isinstance(error, ValidationFailedError):
        message = default_message
        errors = error.to_field_errors()
    else:
        message = error.message
        errors = error.to_field_errors()

    return MutationResponseType(
        success=False,
        message=message,
        errors=[FieldErrorType.from_model(e) for e in errors],
    )


# Access helpers


def require_identity(info: Info) -> Identity:
    context = info.context
    if context.identity is None:
        raise graphql_error(context.auth_error or UnauthenticatedError("Authentication required"))
    return context.identity


def authorize(info: Info, allowed: Collection[Role]) -> Identity:
    identity = require_identity(info)
    try:
        return require_role(allowed, identity)
    except ForbiddenError as e:
        raise graphql_error(e) from e


def authorize_employee_record(info: Info, employee_id: str) -> Identity:
    identity = require_identity(info)
    if not can_access_employee_record(identity, employee_id):
        logger.warning(f"{identity.email} denied access to employee {employee_id}")
        raise graphql_error(ForbiddenError("Not authorized"))
    return identity


async def publish(event_type: EventType, data: BaseModel, identity: Identity, key: str) -> None:
    """Publish a domain event; failures are logged and never fail the mutation."""
    try:
        event = create_event(
            event_type,
            data,
            actor_user_id=identity.id,
            actor_role=identity.role.value,
        )
        await publish_event(KafkaTopics.for_event(event_type), event, key=key)
    except Exception as e:
        logger.warning(f"Failed to publish {event_type.value} event: {e}")


# Queries


@strawberry.type
class Query:
    @strawberry.field
    async def employees(
        self,
        info: Info,
        filter_: Annotated[
            Optional[EmployeeFilterInput], strawberry.argument(name="filter")
        ] = None,
        sort: Optional[EmployeeSort] = None,
        page: int = 1,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
    ) -> EmployeePageType:
        """Paginated, filtered and sorted employee listing."""
        authorize(info, ALL_ROLES)

        try:
            result = await info.context.employees.list_employees(
                filter_.to_model() if filter_ else None, sort, page, page_size
            )
        except ValidationFailedError as e:
            raise graphql_error(e) from e

        return EmployeePageType(
            edges=[EmployeeType.from_model(employee) for employee in result.edges],
            page_info=PageInfoType.from_model(result.page_info),
        )

    @strawberry.field
    async def employee(self, info: Info, id: strawberry.ID) -> Optional[EmployeeType]:
        """Single employee, or null if it does not exist."""
        authorize_employee_record(info, str(id))
        employee = await info.context.employees.get_employee(str(id))
        return EmployeeType.from_model(employee) if employee else None

    @strawberry.field
    async def employee_stats(self, info: Info) -> EmployeeStatsType:
        """Aggregate statistics. Admins only."""
        authorize(info, ADMIN_ONLY)
        stats = await info.context.stats.employee_stats()
        return EmployeeStatsType.from_model(stats)

    @strawberry.field
    async def employee_attendance(
        self,
        info: Info,
        id: strawberry.ID,
        date_range: Optional[DateRangeInput] = None,
    ) -> list[AttendanceRecordType]:
        """Attendance records for one employee, newest first."""
        authorize_employee_record(info, str(id))
        records = await info.context.attendance.get_attendance(
            str(id), date_range.to_model() if date_range else None
        )
        return [AttendanceRecordType.from_model(record) for record in records]


# Mutations


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def create_employee(
        self, info: Info, input: CreateEmployeeInput
    ) -> MutationResponseType:
        identity = authorize(info, ADMIN_ONLY)

        try:
            employee = await info.context.employees.create_employee(input.to_model())
        except AppError as e:
            return failure_response(e, "Failed to create employee")

        await publish(
            EventType.EMPLOYEE_CREATED,
            EmployeeCreatedEvent(
                employee_id=employee.id,
                email=employee.email,
                name=employee.name,
                role=employee.role.value,
                class_name=employee.class_name,
            ),
            identity,
            key=employee.id,
        )
        return MutationResponseType(
            success=True,
            message="Employee created successfully",
            employee=EmployeeType.from_model(employee),
        )

    @strawberry.mutation
    async def update_employee(
        self, info: Info, id: strawberry.ID, input: UpdateEmployeeInput
    ) -> MutationResponseType:
        identity = authorize(info, ADMIN_ONLY)
        update = input.to_model()

        try:
            employee = await info.context.employees.update_employee(str(id), update)
        except AppError as e:
            return failure_response(e, "Failed to update employee")

        await publish(
            EventType.EMPLOYEE_UPDATED,
            EmployeeUpdatedEvent(
                employee_id=employee.id,
                updated_fields=sorted(update.model_dump(exclude_none=True)),
            ),
            identity,
            key=employee.id,
        )
        return MutationResponseType(
            success=True,
            message="Employee updated successfully",
            employee=EmployeeType.from_model(employee),
        )

    @strawberry.mutation
    async def mark_attendance(
        self, info: Info, input: AttendanceInputType
    ) -> MutationResponseType:
        identity = authorize(info, ADMIN_ONLY)
        employee_id = str(input.employee_id)

        try:
            record = await info.context.attendance.record_attendance(
                employee_id, input.date, input.present, input.notes, identity.id
            )
        except AppError as e:
            return failure_response(e, "Failed to mark attendance")

        await publish(
            EventType.ATTENDANCE_MARKED,
            AttendanceMarkedEvent(
                attendance_id=record.id,
                employee_id=record.employee_id,
                date=record.formatted_date,
                present=record.present,
                recorded_by=identity.id,
            ),
            identity,
            key=employee_id,
        )
        employee = await info.context.employees.get_employee(employee_id)
        return MutationResponseType(
            success=True,
            message="Attendance marked successfully",
            employee=EmployeeType.from_model(employee) if employee else None,
        )

    @strawberry.mutation
    async def recalculate_attendance(self, info: Info, id: strawberry.ID) -> MutationResponseType:
        """Recompute an employee's attendance percentage from its records."""
        identity = authorize(info, ADMIN_ONLY)
        employee_id = str(id)

        try:
            percentage = await info.context.attendance.recalculate(employee_id)
        except AppError as e:
            return failure_response(e, "Failed to recalculate attendance")

        await publish(
            EventType.ATTENDANCE_RECALCULATED,
            AttendanceRecalculatedEvent(
                employee_id=employee_id,
                attendance=percentage,
                recalculated_at=utcnow(),
            ),
            identity,
            key=employee_id,
        )
        employee = await info.context.employees.get_employee(employee_id)
        return MutationResponseType(
            success=True,
            message=f"Attendance recalculated: {percentage:.2f}%",
            employee=EmployeeType.from_model(employee) if employee else None,
        )
