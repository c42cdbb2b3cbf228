"""
Employee service for the Employee Attendance Service.

Orchestrates employee reads and writes:
1. Explicit validation and normalization before every write
2. Email uniqueness checks (also enforced by a unique index in the store)
3. Loader invalidation after writes so the rest of the request sees fresh data

The ``attendance`` fields are never written here; see AttendanceService.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

from app.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from app.core.loaders import DataLoaders
from app.core.logging import get_logger
from app.core.query_builder import build_employee_query, build_page_info
from app.core.validation import validate_employee_input
from app.models.common import utcnow
from app.models.employee import (
    DEFAULT_ATTENDANCE,
    EMPLOYEES_COLLECTION,
    Employee,
    EmployeeCreate,
    EmployeeFilter,
    EmployeePage,
    EmployeeSort,
    EmployeeUpdate,
)

logger = get_logger(__name__)


def normalize_employee_input(data: dict[str, Any]) -> dict[str, Any]:
    """Trim text fields, lowercase the email and store the role by value."""
    normalized = dict(data)
    for field in ("name", "class_name", "phone"):
        if isinstance(normalized.get(field), str):
            normalized[field] = normalized[field].strip()
    if isinstance(normalized.get("email"), str):
        normalized["email"] = normalized["email"].strip().lower()
    if isinstance(normalized.get("subjects"), list):
        normalized["subjects"] = [
            subject.strip() if isinstance(subject, str) else subject
            for subject in normalized["subjects"]
        ]
    if normalized.get("role") is not None:
        normalized["role"] = getattr(normalized["role"], "value", normalized["role"])
    return normalized


class EmployeeService:
    """
    Service for creating, updating and reading employees.
    """

    def __init__(
        self,
        store,
        loaders: Optional[DataLoaders] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._loaders = loaders
        self._clock = clock

    async def create_employee(self, data: EmployeeCreate) -> Employee:
        """
        Create an employee with a starting attendance of 100%.

        Raises:
            ValidationFailedError: if any field is missing or invalid
            ConflictError: if the email is already in use
        """
        document = normalize_employee_input(data.model_dump(exclude_none=True))

        errors = validate_employee_input(document, partial=False)
        if errors:
            logger.info(f"Employee creation rejected: {[e.code for e in errors]}")
            raise ValidationFailedError(errors)

        await self._ensure_email_available(document["email"])

        now = self._clock()
        document.setdefault("date_of_joining", now)
        document.update(
            attendance=DEFAULT_ATTENDANCE,
            last_attendance_update=None,
            created_at=now,
            updated_at=now,
        )

        created = await self._store.create(EMPLOYEES_COLLECTION, document)
        employee = Employee.from_document(created)
        logger.info(f"Created employee {employee.id} ({employee.email})")
        return employee

    async def update_employee(self, employee_id: str, data: EmployeeUpdate) -> Employee:
        """
        Apply the supplied fields to an existing employee.

        Raises:
            ValidationFailedError: if a supplied field is invalid
            NotFoundError: if no employee has that id
            ConflictError: if the new email belongs to another employee
        """
        patch = normalize_employee_input(data.model_dump(exclude_none=True))

        errors = validate_employee_input(patch)
        if errors:
            logger.info(f"Update of employee {employee_id} rejected: {[e.code for e in errors]}")
            raise ValidationFailedError(errors)

        existing = await self._store.find_by_id(EMPLOYEES_COLLECTION, employee_id)
        if existing is None:
            logger.warning(f"Update attempted for non-existent employee {employee_id}")
            raise NotFoundError("Employee not found")

        if "email" in patch and patch["email"] != existing["email"]:
            await self._ensure_email_available(patch["email"], exclude_id=existing["_id"])

        patch["updated_at"] = self._clock()
        updated = await self._store.update_by_id(EMPLOYEES_COLLECTION, employee_id, patch)
        if updated is None:
            raise NotFoundError("Employee not found")

        if self._loaders is not None:
            self._loaders.invalidate_employee(employee_id)

        logger.info(f"Updated employee {employee_id}: {sorted(k for k in patch if k != 'updated_at')}")
        return Employee.from_document(updated)

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        """Employee by id through the request loader, or None."""
        if self._loaders is not None:
            return await self._loaders.employee.load(employee_id)

        document = await self._store.find_by_id(EMPLOYEES_COLLECTION, employee_id)
        return Employee.from_document(document) if document else None

    async def list_employees(
        self,
        employee_filter: Optional[EmployeeFilter] = None,
        sort: Optional[EmployeeSort] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> EmployeePage:
        """
        One page of employees matching the filter.

        The total count and the page are read in two store calls and are not
        guaranteed to be consistent with each other under concurrent writes.

        Raises:
            ValidationFailedError: if page or page_size is out of range
        """
        query = build_employee_query(employee_filter, sort, page, page_size)

        total_count = await self._store.count(EMPLOYEES_COLLECTION, query.filter)
        documents = await self._store.find_many(
            EMPLOYEES_COLLECTION,
            query.filter,
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )

        logger.debug(
            f"Listed {len(documents)} of {total_count} employees (page {page}, size {page_size})"
        )
        return EmployeePage(
            edges=[Employee.from_document(doc) for doc in documents],
            page_info=build_page_info(total_count, page, page_size),
        )

    async def _ensure_email_available(self, email: str, exclude_id: Any = None) -> None:
        query: dict[str, Any] = {"email": email}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if await self._store.count(EMPLOYEES_COLLECTION, query):
            logger.warning(f"Email {email} is already in use")
            raise ConflictError("Email is already in use", field="email")
