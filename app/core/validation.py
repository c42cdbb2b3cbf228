"""
Field-level validation for employee and attendance input.

All functions are pure: they return a list of ``FieldError`` (empty when the
input is valid) and never raise for invalid user input. Callers decide
whether errors become a ``ValidationFailedError``.
"""

import re
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, Optional

from app.models.attendance import MAX_NOTES_LENGTH
from app.models.common import FieldError, as_utc, utcnow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s-]{10,}$")
NAME_RE = re.compile(r"^[a-zA-Z\s-]{2,50}$")
CLASS_NAME_RE = re.compile(r"^[a-zA-Z0-9\s-]{2,30}$")
SUBJECT_RE = re.compile(r"^[a-zA-Z0-9\s&-]{2,50}$")

MIN_AGE = 18
MAX_AGE = 70
MIN_SUBJECTS = 1
MAX_SUBJECTS = 10

# Input attribute -> field name reported to API callers
REQUIRED_EMPLOYEE_FIELDS = {
    "name": "name",
    "email": "email",
    "age": "age",
    "class_name": "class",
    "subjects": "subjects",
    "role": "role",
}


def _matches(pattern: re.Pattern, value: Any) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_valid_email(email: Any) -> bool:
    return _matches(EMAIL_RE, email)


def is_valid_phone(phone: Any) -> bool:
    return _matches(PHONE_RE, phone)


def is_valid_name(name: Any) -> bool:
    return _matches(NAME_RE, name)


def is_valid_age(age: Any) -> bool:
    # bool is an int subclass; True is not an age
    return isinstance(age, int) and not isinstance(age, bool) and MIN_AGE <= age <= MAX_AGE


def is_valid_class_name(class_name: Any) -> bool:
    return _matches(CLASS_NAME_RE, class_name)


def is_valid_subjects(subjects: Any) -> bool:
    if not isinstance(subjects, (list, tuple)):
        return False
    if not MIN_SUBJECTS <= len(subjects) <= MAX_SUBJECTS:
        return False
    return all(_matches(SUBJECT_RE, subject) for subject in subjects)


_FIELD_RULES: dict[str, tuple[str, Callable[[Any], bool], str, str]] = {
    "name": (
        "name",
        is_valid_name,
        "INVALID_NAME",
        "Name must be 2-50 characters long and contain only letters, spaces, and hyphens",
    ),
    "email": ("email", is_valid_email, "INVALID_EMAIL", "Invalid email format"),
    "age": (
        "age",
        is_valid_age,
        "INVALID_AGE",
        f"Age must be between {MIN_AGE} and {MAX_AGE}",
    ),
    "phone": ("phone", is_valid_phone, "INVALID_PHONE", "Invalid phone number format"),
    "class_name": (
        "class",
        is_valid_class_name,
        "INVALID_CLASS",
        "Class must be 2-30 characters long and contain only letters, numbers, spaces, and hyphens",
    ),
    "subjects": (
        "subjects",
        is_valid_subjects,
        "INVALID_SUBJECTS",
        f"Must have {MIN_SUBJECTS}-{MAX_SUBJECTS} valid subjects",
    ),
}


def validate_field(name: str, value: Any) -> Optional[FieldError]:
    """
    Validate a single employee field.

    Args:
        name: Input attribute name (``name``, ``email``, ``age``, ``phone``,
            ``class_name`` or ``subjects``)
        value: Value to check

    Returns:
        A FieldError if the value is invalid, None otherwise

    Raises:
        KeyError: if ``name`` is not a validatable field
    """
    field, check, code, message = _FIELD_RULES[name]
    if check(value):
        return None
    return FieldError(field=field, message=message, code=code)


def validate_employee_input(data: Mapping[str, Any], partial: bool = True) -> list[FieldError]:
    """
    Validate employee create/update input.

    Args:
        data: Input attributes. Keys with a None value count as absent.
        partial: When True (updates) only supplied fields are checked. When
            False (creates) each missing required field is reported as well.

    Returns:
        List of field errors, empty when the input is valid
    """
    errors: list[FieldError] = []

    if not partial:
        for attribute, field in REQUIRED_EMPLOYEE_FIELDS.items():
            if data.get(attribute) is None:
                errors.append(
                    FieldError(field=field, message=f"{field} is required", code="REQUIRED")
                )

    for attribute in _FIELD_RULES:
        value = data.get(attribute)
        if value is None:
            continue
        error = validate_field(attribute, value)
        if error:
            errors.append(error)

    return errors


def parse_attendance_date(value: Any) -> Optional[date]:
    """
    Parse an attendance date from a date, datetime or ISO 8601 string.

    Returns None when the value is not a real calendar date.
    """
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return as_utc(datetime.fromisoformat(value.strip())).date()
        except ValueError:
            return None
    return None


def validate_attendance_input(
    attendance_date: Any,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[FieldError]:
    """
    Validate attendance input.

    Args:
        attendance_date: The day being marked
        notes: Optional free text note
        now: Reference time for the future-date check. Defaults to current UTC time.

    Returns:
        List of field errors, empty when the input is valid
    """
    errors: list[FieldError] = []
    now = now or utcnow()

    parsed = parse_attendance_date(attendance_date)
    if parsed is None:
        errors.append(
            FieldError(field="date", message="Invalid date", code="INVALID_DATE")
        )
    elif parsed > now.date():
        errors.append(
            FieldError(field="date", message="Future dates are not allowed", code="FUTURE_DATE")
        )

    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        errors.append(
            FieldError(
                field="notes",
                message=f"Notes cannot exceed {MAX_NOTES_LENGTH} characters",
                code="INVALID_NOTES",
            )
        )

    return errors
