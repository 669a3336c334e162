from __future__ import annotations

from copy import deepcopy
from typing import Any, Callable

from pymongo.errors import PyMongoError

from ticketdesk.core.errors import StorageError
from ticketdesk.infrastructure.logging import get_logger
from ticketdesk.infrastructure.mongo_indexes import NOTIFICATIONS_COLLECTION
from ticketdesk.infrastructure.persistence_clients import MongoClientManager
from ticketdesk.store.in_memory import InMemoryStore

logger = get_logger(__name__)

MAX_CACHED_NOTIFICATIONS = 1000


class NotificationRepository:
    def __init__(
        self,
        *,
        store: InMemoryStore,
        mongo_manager: MongoClientManager,
    ) -> None:
        self.store = store
        self.mongo_manager = mongo_manager

    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        with self.store.lock:
            self.store.notifications.append(deepcopy(payload))
            if len(self.store.notifications) > MAX_CACHED_NOTIFICATIONS:
                self.store.notifications = self.store.notifications[-MAX_CACHED_NOTIFICATIONS:]
        self._write_to_mongo(payload)
        return deepcopy(payload)

    def list_for_ticket(self, ticket_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return self._list(lambda item: str(item.get("ticketId", "")) == ticket_id, {"ticketId": ticket_id}, limit)

    def list_failed(self, limit: int = 50) -> list[dict[str, Any]]:
        return self._list(lambda item: item.get("status") == "failed", {"status": "failed"}, limit)

    def _list(
        self,
        matches: Callable[[dict[str, Any]], bool],
        query: dict[str, Any],
        limit: int,
    ) -> list[dict[str, Any]]:
        """Newest ``limit`` matching rows, oldest first; Mongo is only read when the local cache has none."""
        safe_limit = max(1, min(limit, 200))
        with self.store.lock:
            cached = [deepcopy(item) for item in self.store.notifications if matches(item)][-safe_limit:]
        if cached:
            return cached

        collection = self._mongo_collection()
        if collection is None:
            return []
        try:
            rows = list(collection.find(query).sort("createdAt", -1).limit(safe_limit))
        except PyMongoError as exc:
            raise StorageError("Failed to read notification log") from exc
        output: list[dict[str, Any]] = []
        for row in rows:
            row.pop("_id", None)
            row.pop("notificationId", None)
            output.append(row)
        output.sort(key=lambda item: str(item.get("createdAt", "")))
        return output

    def _mongo_collection(self) -> Any | None:
        database = self.mongo_manager.database
        if database is None:
            return None
        return database[NOTIFICATIONS_COLLECTION]

    def _write_to_mongo(self, payload: dict[str, Any]) -> None:
        collection = self._mongo_collection()
        if collection is None:
            return
        # The local copy is already recorded; a lost log row must not fail the request.
        try:
            collection.update_one(
                {"notificationId": payload["id"]},
                {"$set": {"notificationId": payload["id"], **deepcopy(payload)}},
                upsert=True,
            )
        except PyMongoError as exc:
            logger.warning("notification_log_write_failed", notificationId=payload["id"], error=str(exc))
