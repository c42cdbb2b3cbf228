"""
MongoDB store adapter.

``MongoStore`` wraps the employee and attendance collections behind a small
set of document operations. It is constructed explicitly, connected by the
application lifespan and passed to services per request; there is no
module-level connection state.

Driver errors are translated into the service error taxonomy:
duplicate keys become ``ConflictError``, everything else ``InternalError``.
"""

from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import ConflictError, InternalError
from app.core.logging import get_logger
from app.models.attendance import ATTENDANCE_COLLECTION
from app.models.common import parse_object_id
from app.models.employee import EMPLOYEES_COLLECTION

logger = get_logger(__name__)

SortSpec = list[tuple[str, int]]


class MongoStore:
    """
    Async document store over a single MongoDB database.

    All operations take the collection name first and work on raw
    documents (dicts with an ``_id`` ObjectId).
    """

    def __init__(self, uri: str, database_name: str, timeout_ms: int = 5000):
        """
        Args:
            uri: MongoDB connection string
            database_name: Database holding the service collections
            timeout_ms: Server selection timeout in milliseconds
        """
        self.uri = uri
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self._client: Optional[AsyncMongoClient] = None
        self._db = None

    async def connect(self) -> None:
        """Open the client, verify the server is reachable and ensure indexes."""
        logger.info(f"Connecting to MongoDB database '{self.database_name}'...")
        self._client = AsyncMongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
        self._db = self._client[self.database_name]
        await self._client.admin.command("ping")
        await self.ensure_indexes()
        logger.info("MongoDB connection established")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB connection closed")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def ensure_indexes(self) -> None:
        """Create the uniqueness and lookup indexes the service relies on."""
        employees = self.collection(EMPLOYEES_COLLECTION)
        await employees.create_index([("email", ASCENDING)], unique=True)
        await employees.create_index([("name", ASCENDING)])
        await employees.create_index([("class_name", ASCENDING)])
        await employees.create_index([("attendance", DESCENDING)])

        records = self.collection(ATTENDANCE_COLLECTION)
        await records.create_index(
            [("employee_id", ASCENDING), ("date", ASCENDING)], unique=True
        )
        await records.create_index([("date", ASCENDING)])
        await records.create_index([("created_at", ASCENDING)])

    def collection(self, name: str):
        if self._db is None:
            raise InternalError("Store is not connected")
        return self._db[name]

    # Document operations

    async def find_by_id(self, collection: str, document_id: Any) -> Optional[dict]:
        """Return the document with the given id, or None. Invalid ids are never found."""
        object_id = parse_object_id(document_id)
        if object_id is None:
            return None
        try:
            return await self.collection(collection).find_one({"_id": object_id})
        except PyMongoError as e:
            raise self._internal(f"find_by_id on {collection}", e) from e

    async def find_many(
        self,
        collection: str,
        filter: dict[str, Any],
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        """Return documents matching ``filter``; a limit of 0 means no limit."""
        try:
            cursor = self.collection(collection).find(filter)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            raise self._internal(f"find_many on {collection}", e) from e

    async def count(self, collection: str, filter: dict[str, Any]) -> int:
        try:
            return await self.collection(collection).count_documents(filter)
        except PyMongoError as e:
            raise self._internal(f"count on {collection}", e) from e

    async def create(self, collection: str, document: dict[str, Any]) -> dict:
        """Insert a document and return it with its assigned ``_id``."""
        document = dict(document)
        try:
            result = await self.collection(collection).insert_one(document)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key on insert into {collection}: {e.details}")
            raise ConflictError(f"A matching {_singular(collection)} already exists") from e
        except PyMongoError as e:
            raise self._internal(f"create on {collection}", e) from e
        document["_id"] = result.inserted_id
        return document

    async def update_by_id(
        self, collection: str, document_id: Any, patch: dict[str, Any]
    ) -> Optional[dict]:
        """
        Set the fields in ``patch`` on one document.

        Returns:
            The updated document, or None if no document has that id
        """
        object_id = parse_object_id(document_id)
        if object_id is None:
            return None
        try:
            return await self.collection(collection).find_one_and_update(
                {"_id": object_id},
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key on update in {collection}: {e.details}")
            raise ConflictError(f"A matching {_singular(collection)} already exists") from e
        except PyMongoError as e:
            raise self._internal(f"update_by_id on {collection}", e) from e

    async def aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict]:
        try:
            cursor = await self.collection(collection).aggregate(pipeline)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            raise self._internal(f"aggregate on {collection}", e) from e

    @staticmethod
    def _internal(operation: str, error: PyMongoError) -> InternalError:
        logger.error(f"MongoDB {operation} failed: {error}", exc_info=True)
        return InternalError(f"Database operation failed: {operation}")


def _singular(collection: str) -> str:
    return {
        EMPLOYEES_COLLECTION: "employee",
        ATTENDANCE_COLLECTION: "attendance record",
    }.get(collection, "document")
