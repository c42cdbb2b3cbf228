"""
Translate employee listing requests into store queries.

``build_employee_query`` turns a filter/sort/page request into a MongoDB
filter document, a sort spec, and skip/limit values. ``build_page_info``
derives pagination metadata from the total match count. The count and the
page slice are fetched by two separate store calls, so under concurrent
writes ``total_count`` can be slightly stale relative to the page.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from app.core.config import settings
from app.core.exceptions import ValidationFailedError
from app.models.common import FieldError
from app.models.employee import EmployeeFilter, EmployeeSort, PageInfo

SORT_FIELDS = {
    "NAME": "name",
    "AGE": "age",
    "ATTENDANCE": "attendance",
    "CLASS": "class_name",
    "CREATED_AT": "created_at",
}

DEFAULT_SORT = [("created_at", -1)]


@dataclass(frozen=True)
class EmployeeQuery:
    """Store query for one page of an employee listing."""

    filter: dict[str, Any]
    sort: list[tuple[str, int]]
    skip: int
    limit: int


def build_filter(employee_filter: Optional[EmployeeFilter]) -> dict[str, Any]:
    """
    Compose the MongoDB filter document. All supplied predicates are ANDed;
    fields left as None impose no constraint.
    """
    query: dict[str, Any] = {}
    if employee_filter is None:
        return query

    if employee_filter.name:
        query["name"] = {"$regex": re.escape(employee_filter.name), "$options": "i"}
    if employee_filter.class_name is not None:
        query["class_name"] = employee_filter.class_name
    if employee_filter.role is not None:
        query["role"] = employee_filter.role.value

    age_range = _range(employee_filter.min_age, employee_filter.max_age)
    if age_range:
        query["age"] = age_range

    attendance_range = _range(employee_filter.min_attendance, employee_filter.max_attendance)
    if attendance_range:
        query["attendance"] = attendance_range

    if employee_filter.subjects:
        query["subjects"] = {"$all": list(employee_filter.subjects)}

    return query


def _range(minimum, maximum) -> dict[str, Any]:
    bounds = {}
    if minimum is not None:
        bounds["$gte"] = minimum
    if maximum is not None:
        bounds["$lte"] = maximum
    return bounds


def build_sort(sort: Optional[EmployeeSort]) -> list[tuple[str, int]]:
    """Map a ``{FIELD}_{ASC|DESC}`` value to a sort spec; default is newest first."""
    if sort is None:
        return list(DEFAULT_SORT)
    field, _, direction = sort.value.rpartition("_")
    return [(SORT_FIELDS[field], 1 if direction == "ASC" else -1)]


def validate_pagination(page: int, page_size: int) -> list[FieldError]:
    errors = []
    if page < 1:
        errors.append(
            FieldError(field="page", message="Page must be at least 1", code="INVALID_PAGINATION")
        )
    if not 1 <= page_size <= settings.MAX_PAGE_SIZE:
        errors.append(
            FieldError(
                field="pageSize",
                message=f"Page size must be between 1 and {settings.MAX_PAGE_SIZE}",
                code="INVALID_PAGINATION",
            )
        )
    return errors


def build_employee_query(
    employee_filter: Optional[EmployeeFilter],
    sort: Optional[EmployeeSort],
    page: int,
    page_size: int,
) -> EmployeeQuery:
    """
    Build the store query for one page of employees.

    Args:
        employee_filter: Optional filter
        sort: Optional sort order, defaults to created_at descending
        page: 1-indexed page number
        page_size: Number of employees per page

    Returns:
        EmployeeQuery with filter, sort, skip and limit

    Raises:
        ValidationFailedError: if page or page_size is out of range
    """
    errors = validate_pagination(page, page_size)
    if errors:
        raise ValidationFailedError(errors, "Invalid pagination arguments")

    return EmployeeQuery(
        filter=build_filter(employee_filter),
        sort=build_sort(sort),
        skip=(page - 1) * page_size,
        limit=page_size,
    )


def build_page_info(total_count: int, page: int, page_size: int) -> PageInfo:
    total_pages = math.ceil(total_count / page_size)
    return PageInfo(
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
        total_pages=total_pages,
        total_count=total_count,
        current_page=page,
    )
