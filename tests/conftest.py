"""
Shared fixtures and an in-memory store for tests.

``InMemoryStore`` implements the same operations as ``MongoStore`` over
plain dicts, including the two unique indexes, and records every call so
tests can assert how many store round-trips an operation made.
"""

import copy
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from bson import ObjectId

from app.core.exceptions import ConflictError, InternalError
from app.core.security import Identity, create_access_token
from app.models import ATTENDANCE_COLLECTION, EMPLOYEES_COLLECTION, Role
from app.models.common import day_start, parse_object_id

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _compare(op: str, value: Any, arg: Any) -> bool:
    if value is None:
        return False
    if op == "$gte":
        return value >= arg
    if op == "$gt":
        return value > arg
    if op == "$lte":
        return value <= arg
    return value < arg


def _matches_condition(value: Any, condition: dict[str, Any]) -> bool:
    for op, arg in condition.items():
        if op == "$in":
            candidates = value if isinstance(value, list) else [value]
            if not any(candidate in arg for candidate in candidates):
                return False
        elif op == "$ne":
            if value == arg:
                return False
        elif op in ("$gte", "$gt", "$lte", "$lt"):
            if not _compare(op, value, arg):
                return False
        elif op == "$all":
            if not isinstance(value, list) or not all(item in value for item in arg):
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(arg, value, flags):
                return False
        elif op == "$options":
            continue
        else:
            raise NotImplementedError(f"Operator {op} not supported by InMemoryStore")
    return True


def matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            if not _matches_condition(value, condition):
                return False
        elif isinstance(value, list) and not isinstance(condition, list):
            if condition not in value:
                return False
        elif value != condition:
            return False
    return True


class InMemoryStore:
    """Dict-backed stand-in for MongoStore."""

    def __init__(self):
        self.collections: dict[str, dict[ObjectId, dict]] = defaultdict(dict)
        self.calls: list[tuple[str, str, Any]] = []
        self.aggregate_results: list[list[dict]] = []
        self.fail_updates = False

    def seed(self, collection: str, document: dict[str, Any]) -> dict:
        document = copy.deepcopy(document)
        document.setdefault("_id", ObjectId())
        self.collections[collection][document["_id"]] = document
        return copy.deepcopy(document)

    def get(self, collection: str, document_id: Any) -> Optional[dict]:
        return copy.deepcopy(self.collections[collection].get(parse_object_id(document_id)))

    def calls_to(self, operation: str, collection: str) -> list[Any]:
        return [args for op, coll, args in self.calls if op == operation and coll == collection]

    async def ping(self) -> bool:
        return True

    async def find_by_id(self, collection: str, document_id: Any) -> Optional[dict]:
        self.calls.append(("find_by_id", collection, document_id))
        return self.get(collection, document_id)

    async def find_many(
        self,
        collection: str,
        filter: dict[str, Any],
        sort: Optional[list[tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        self.calls.append(("find_many", collection, filter))
        documents = [
            copy.deepcopy(doc)
            for doc in self.collections[collection].values()
            if matches(doc, filter)
        ]
        for field, direction in reversed(sort or []):
            documents.sort(key=lambda doc: doc[field], reverse=direction == -1)
        documents = documents[skip:]
        return documents[:limit] if limit else documents

    async def count(self, collection: str, filter: dict[str, Any]) -> int:
        self.calls.append(("count", collection, filter))
        return sum(1 for doc in self.collections[collection].values() if matches(doc, filter))

    async def create(self, collection: str, document: dict[str, Any]) -> dict:
        self.calls.append(("create", collection, document))
        for existing in self.collections[collection].values():
            if collection == EMPLOYEES_COLLECTION and existing["email"] == document["email"]:
                raise ConflictError("A matching employee already exists")
            if collection == ATTENDANCE_COLLECTION and (
                existing["employee_id"] == document["employee_id"]
                and existing["date"] == document["date"]
            ):
                raise ConflictError("A matching attendance record already exists")
        return self.seed(collection, document)

    async def update_by_id(
        self, collection: str, document_id: Any, patch: dict[str, Any]
    ) -> Optional[dict]:
        self.calls.append(("update_by_id", collection, patch))
        if self.fail_updates:
            raise InternalError("Database operation failed: update_by_id")
        document = self.collections[collection].get(parse_object_id(document_id))
        if document is None:
            return None
        document.update(copy.deepcopy(patch))
        return copy.deepcopy(document)

    async def aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict]:
        """Canned results when queued, otherwise the pipeline run over the stored documents."""
        self.calls.append(("aggregate", collection, pipeline))
        if self.aggregate_results:
            return self.aggregate_results.pop(0)

        rows = [copy.deepcopy(doc) for doc in self.collections[collection].values()]
        for stage in pipeline:
            (operator, spec), = stage.items()
            if operator == "$match":
                rows = [row for row in rows if matches(row, spec)]
            elif operator == "$group":
                rows = _group(rows, spec)
            elif operator == "$sort":
                for field, direction in reversed(list(spec.items())):
                    rows.sort(key=lambda row: row[field], reverse=direction == -1)
            else:
                raise NotImplementedError(f"Stage {operator} not supported by InMemoryStore")
        return rows


def _evaluate(expression: Any, document: dict[str, Any]) -> Any:
    if isinstance(expression, str) and expression.startswith("$"):
        return document.get(expression[1:])
    if isinstance(expression, dict):
        (operator, arg), = expression.items()
        if operator == "$cond":
            condition, when_true, when_false = arg
            return _evaluate(when_true if _evaluate(condition, document) else when_false, document)
        if operator == "$dateToString":
            return _evaluate(arg["date"], document).strftime(arg["format"])
        raise NotImplementedError(f"Expression {operator} not supported by InMemoryStore")
    return expression


def _group(rows: list[dict], spec: dict[str, Any]) -> list[dict]:
    groups: dict[Any, list[dict]] = {}
    for row in rows:
        groups.setdefault(_evaluate(spec["_id"], row), []).append(row)

    results = []
    for key, members in groups.items():
        result = {"_id": key}
        for field, accumulator in spec.items():
            if field == "_id":
                continue
            (operator, expression), = accumulator.items()
            values = [_evaluate(expression, member) for member in members]
            if operator == "$sum":
                result[field] = sum(values)
            elif operator == "$avg":
                numbers = [value for value in values if value is not None]
                result[field] = sum(numbers) / len(numbers) if numbers else None
            else:
                raise NotImplementedError(f"Accumulator {operator} not supported by InMemoryStore")
        results.append(result)
    return results


def employee_document(**overrides) -> dict[str, Any]:
    document = {
        "name": "Jane Doe",
        "email": "jane.doe@example.com",
        "age": 30,
        "phone": "+1 555-123-4567",
        "class_name": "Engineering",
        "subjects": ["Python", "Databases"],
        "attendance": 100.0,
        "role": "EMPLOYEE",
        "date_of_joining": datetime(2023, 1, 10, tzinfo=timezone.utc),
        "last_attendance_update": None,
        "created_at": datetime(2023, 1, 10, tzinfo=timezone.utc),
        "updated_at": datetime(2023, 1, 10, tzinfo=timezone.utc),
    }
    document.update(overrides)
    return document


def attendance_document(employee_id: ObjectId, day, present: bool = True, **overrides) -> dict:
    document = {
        "employee_id": employee_id,
        "date": day_start(day),
        "present": present,
        "notes": None,
        "created_by": ObjectId(),
        "created_at": FIXED_NOW,
    }
    document.update(overrides)
    return document


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def employee(store):
    """A seeded employee document."""
    return store.seed(EMPLOYEES_COLLECTION, employee_document())


@pytest.fixture
def admin_identity():
    return Identity(id=str(ObjectId()), role=Role.ADMIN, email="admin@example.com", name="Admin")


@pytest.fixture
def admin_token(admin_identity):
    return create_access_token(admin_identity)


@pytest.fixture
def employee_identity(employee):
    return Identity(id=str(employee["_id"]), role=Role.EMPLOYEE, email=employee["email"])


@pytest.fixture
def employee_token(employee_identity):
    return create_access_token(employee_identity)
