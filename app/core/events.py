"""
Event definitions for the Employee Attendance Service.

Defines the domain events published to Kafka after successful mutations:
- Employee lifecycle events
- Attendance events (marked, recalculated)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from app.models.common import utcnow


class EventType(str, Enum):
    """All event types produced by the Employee Attendance Service."""

    # Employee Events
    EMPLOYEE_CREATED = "employee.created"
    EMPLOYEE_UPDATED = "employee.updated"

    # Attendance Events
    ATTENDANCE_MARKED = "attendance.marked"
    ATTENDANCE_RECALCULATED = "attendance.recalculated"


class EventMetadata(BaseModel):
    """Metadata attached to every event for tracing and correlation."""

    source_service: str = "employee-attendance-service"
    correlation_id: str = Field(default_factory=lambda: str(uuid4()))
    actor_user_id: Optional[str] = None
    actor_role: Optional[str] = None


class EventEnvelope(BaseModel):
    """
    Standard envelope for all events.
    Provides consistent structure for Kafka messages.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: str = Field(default_factory=lambda: utcnow().isoformat())
    version: str = "1.0"
    data: dict[str, Any]
    metadata: EventMetadata = Field(default_factory=EventMetadata)


# Employee Event Data Models


class EmployeeCreatedEvent(BaseModel):
    """Data for employee.created event."""

    employee_id: str
    email: str
    name: str
    role: str
    class_name: str


class EmployeeUpdatedEvent(BaseModel):
    """Data for employee.updated event."""

    employee_id: str
    updated_fields: list[str]


# Attendance Event Data Models


class AttendanceMarkedEvent(BaseModel):
    """Data for attendance.marked event."""

    attendance_id: str
    employee_id: str
    date: str  # YYYY-MM-DD format
    present: bool
    recorded_by: str


class AttendanceRecalculatedEvent(BaseModel):
    """Data for attendance.recalculated event."""

    employee_id: str
    attendance: float
    recalculated_at: datetime


def create_event(
    event_type: EventType,
    data: BaseModel,
    actor_user_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> EventEnvelope:
    """
    Helper function to create an event envelope with proper metadata.

    Args:
        event_type: Type of the event
        data: Event data as a Pydantic model
        actor_user_id: ID of the user performing the action
        actor_role: Role of the user performing the action
        correlation_id: Optional correlation ID for tracing

    Returns:
        EventEnvelope ready for publishing
    """
    metadata = EventMetadata(
        actor_user_id=actor_user_id,
        actor_role=actor_role,
        correlation_id=correlation_id or str(uuid4()),
    )

    return EventEnvelope(
        event_type=event_type,
        data=data.model_dump(mode="json"),
        metadata=metadata,
    )
