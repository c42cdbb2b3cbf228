"""
Per-request batch loaders.

Loads issued within the same event loop tick are coalesced into one store
query with an ``$in`` filter and demultiplexed back in request order. A new
``DataLoaders`` instance is created for every GraphQL request so cached
entries never leak across requests.
"""

from collections.abc import Sequence
from contextlib import suppress
from typing import Optional

from bson import ObjectId
from strawberry.dataloader import DataLoader

from app.core.config import settings
from app.core.exceptions import InternalError
from app.core.logging import get_logger
from app.models.attendance import ATTENDANCE_COLLECTION, AttendanceRecord
from app.models.common import parse_object_id
from app.models.employee import EMPLOYEES_COLLECTION, Employee

logger = get_logger(__name__)


def canonical_key(value) -> Optional[str]:
    """Hex form of an ObjectId as the store reports it, or None for invalid ids."""
    object_id = parse_object_id(value)
    return str(object_id) if object_id is not None else None


def cache_key(value) -> str:
    # Spellings of the same ObjectId share one cache entry
    return canonical_key(value) or str(value)


async def batch_load_employees(store, ids: Sequence[str]) -> list[Optional[Employee]]:
    """
    Load employees for a batch of ids with a single store query.

    Ids with no matching document (including malformed ids) resolve to None.

    Raises:
        InternalError: if a returned document has no ``_id``; the whole batch fails
    """
    keys = [canonical_key(i) for i in ids]
    object_ids = [ObjectId(key) for key in dict.fromkeys(keys) if key is not None]
    documents = await store.find_many(EMPLOYEES_COLLECTION, {"_id": {"$in": object_ids}})

    by_id: dict[str, Employee] = {}
    for document in documents:
        if document.get("_id") is None:
            logger.error(f"Employee document missing _id: {document!r}")
            raise InternalError("Employee record is missing its id")
        by_id[str(document["_id"])] = Employee.from_document(document)

    logger.debug(f"Employee loader resolved {len(by_id)} of {len(ids)} ids")
    return [by_id.get(key) if key is not None else None for key in keys]


async def batch_load_attendance(store, employee_ids: Sequence[str]) -> list[list[AttendanceRecord]]:
    """
    Load attendance records for a batch of employees, newest date first.

    Employees without records resolve to an empty list.
    """
    keys = [canonical_key(i) for i in employee_ids]
    object_ids = [ObjectId(key) for key in dict.fromkeys(keys) if key is not None]
    documents = await store.find_many(
        ATTENDANCE_COLLECTION,
        {"employee_id": {"$in": object_ids}},
        sort=[("date", -1)],
    )

    by_employee: dict[str, list[AttendanceRecord]] = {key: [] for key in keys if key is not None}
    for document in documents:
        record = AttendanceRecord.from_document(document)
        if record.employee_id in by_employee:
            by_employee[record.employee_id].append(record)

    return [list(by_employee[key]) if key is not None else [] for key in keys]


class DataLoaders:
    """The batch loaders belonging to one request."""

    def __init__(self, store, max_batch_size: Optional[int] = None):
        batch_size = max_batch_size or settings.DATALOADER_MAX_BATCH_SIZE

        async def load_employees(ids: list[str]) -> list[Optional[Employee]]:
            return await batch_load_employees(store, ids)

        async def load_attendance(ids: list[str]) -> list[list[AttendanceRecord]]:
            return await batch_load_attendance(store, ids)

        self.employee: DataLoader[str, Optional[Employee]] = DataLoader(
            load_fn=load_employees, max_batch_size=batch_size, cache_key_fn=cache_key
        )
        self.attendance: DataLoader[str, list[AttendanceRecord]] = DataLoader(
            load_fn=load_attendance, max_batch_size=batch_size, cache_key_fn=cache_key
        )

    def invalidate_employee(self, employee_id: str) -> None:
        """Drop the cached employee so the next load reads the store again."""
        # clear() raises KeyError for keys that were never loaded
        with suppress(KeyError):
            self.employee.clear(employee_id)

    def invalidate_attendance(self, employee_id: str) -> None:
        """Drop the cached attendance list for one employee."""
        with suppress(KeyError):
            self.attendance.clear(employee_id)
