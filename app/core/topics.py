"""
Kafka Topic Definitions for the Employee Attendance Service.

Topic naming follows the pattern: <domain>-<event-type>
"""

from app.core.events import EventType


class KafkaTopics:
    """
    Central registry of all Kafka topics used by the Employee Attendance Service.
    """

    # Employee Events
    EMPLOYEE_CREATED = "employee-created"
    EMPLOYEE_UPDATED = "employee-updated"

    # Attendance Events
    ATTENDANCE_MARKED = "attendance-marked"
    ATTENDANCE_RECALCULATED = "attendance-recalculated"

    @classmethod
    def all_topics(cls) -> list[str]:
        """Return list of all topic names."""
        return [
            value
            for name, value in vars(cls).items()
            if isinstance(value, str) and not name.startswith("_")
        ]

    @classmethod
    def for_event(cls, event_type: EventType) -> str:
        """Topic an event type is published to."""
        return getattr(cls, event_type.name)
