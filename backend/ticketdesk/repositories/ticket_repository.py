from __future__ import annotations

from contextlib import contextmanager
from copy import deepcopy
from typing import Any, Iterator

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ticketdesk.core.errors import DuplicateTicket, NotFound, StorageError
from ticketdesk.core.utils import to_iso
from ticketdesk.infrastructure.logging import get_logger
from ticketdesk.infrastructure.mongo_indexes import DEDUP_KEY_FIELDS, TICKETS_COLLECTION
from ticketdesk.infrastructure.persistence_clients import MongoClientManager
from ticketdesk.store.in_memory import InMemoryStore

logger = get_logger(__name__)


def dedup_key(fields: dict[str, Any]) -> dict[str, Any]:
    return {field: fields.get(field) for field in DEDUP_KEY_FIELDS}


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        logger.error("ticket_storage_failed", action=action, error=str(exc))
        raise StorageError(f"Error {action}") from exc


class TicketRepository:
    """Ticket documents in Mongo, or in the process-local store when Mongo is off.

    Uniqueness of the dedup key is enforced at insert time when
    ``enforce_unique_dedup_key`` is set: Mongo relies on the unique compound
    index, the in-memory path checks under the store lock.
    """

    def __init__(
        self,
        *,
        store: InMemoryStore,
        mongo_manager: MongoClientManager,
        enforce_unique_dedup_key: bool = True,
    ) -> None:
        self.store = store
        self.mongo_manager = mongo_manager
        self.enforce_unique_dedup_key = enforce_unique_dedup_key

    def find_one(self, fields: dict[str, Any]) -> dict[str, Any] | None:
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                for row in self.store.tickets:
                    if _matches(row, fields):
                        return _serialize(row)
            return None
        with _storage_errors("checking ticket"):
            row = collection.find_one(dict(fields))
        return _serialize(row) if row else None

    def find_many(self, filt: dict[str, Any]) -> list[dict[str, Any]]:
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                return [_serialize(row) for row in self.store.tickets if _matches(row, filt)]
        with _storage_errors("fetching tickets"):
            rows = list(collection.find(dict(filt)))
        return [_serialize(row) for row in rows]

    def find_by_id(self, ticket_id: str) -> dict[str, Any]:
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                for row in self.store.tickets:
                    if row["_id"] == ticket_id:
                        return _serialize(row)
            raise NotFound("Ticket not found")
        object_id = _object_id(ticket_id)
        with _storage_errors("fetching ticket"):
            row = collection.find_one({"_id": object_id})
        if not row:
            raise NotFound("Ticket not found")
        return _serialize(row)

    def insert(self, ticket: dict[str, Any]) -> dict[str, Any]:
        document = {key: deepcopy(value) for key, value in ticket.items() if key != "id"}
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                if self.enforce_unique_dedup_key:
                    key = dedup_key(document)
                    for row in self.store.tickets:
                        if _matches(row, key):
                            raise DuplicateTicket(ticket_id=row["_id"], status=str(row.get("status", "")))
                document["_id"] = self.store.new_object_id()
                self.store.tickets.append(document)
                return _serialize(document)
        try:
            with _storage_errors("creating ticket"):
                result = collection.insert_one(document)
        except DuplicateKeyError as exc:
            with _storage_errors("checking ticket"):
                winner = collection.find_one(dedup_key(document))
            if not winner:
                raise StorageError("Error creating ticket") from exc
            raise DuplicateTicket(ticket_id=str(winner["_id"]), status=str(winner.get("status", ""))) from exc
        document["_id"] = result.inserted_id
        return _serialize(document)

    def update(self, ticket_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        patch = {key: deepcopy(value) for key, value in fields.items() if key not in {"id", "_id"}}
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                for row in self.store.tickets:
                    if row["_id"] == ticket_id:
                        row.update(patch)
                        return _serialize(row)
            raise NotFound("Ticket not found")
        object_id = _object_id(ticket_id)
        with _storage_errors("updating ticket"):
            row = collection.find_one_and_update(
                {"_id": object_id},
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
            )
        if not row:
            raise NotFound("Ticket not found")
        return _serialize(row)

    def delete_all(self) -> int:
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                removed = len(self.store.tickets)
                self.store.tickets = []
            return removed
        with _storage_errors("clearing tickets"):
            result = collection.delete_many({})
        return int(result.deleted_count)

    def count(self) -> int:
        collection = self._collection()
        if collection is None:
            with self.store.lock:
                return len(self.store.tickets)
        with _storage_errors("counting tickets"):
            return int(collection.count_documents({}))

    def _collection(self) -> Any | None:
        database = self.mongo_manager.database
        if database is None:
            return None
        return database[TICKETS_COLLECTION]


def _matches(row: dict[str, Any], filt: dict[str, Any]) -> bool:
    return all(row.get(key) == value for key, value in filt.items())


def _object_id(ticket_id: str) -> ObjectId:
    if not ObjectId.is_valid(ticket_id):
        raise NotFound("Ticket not found")
    return ObjectId(ticket_id)


def _serialize(row: dict[str, Any]) -> dict[str, Any]:
    payload = deepcopy(row)
    payload["id"] = str(payload.pop("_id"))
    payload["attachments"] = list(payload.get("attachments") or [])
    payload["createdAt"] = to_iso(payload.get("createdAt"))
    return {"id": payload.pop("id"), **payload}
