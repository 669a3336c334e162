from __future__ import annotations

from typing import Any

from pymongo import ASCENDING, DESCENDING

from ticketdesk.infrastructure.persistence_clients import resolve_database

IndexSpec = tuple[list[tuple[str, int]], dict[str, Any]]

TICKETS_COLLECTION = "tickets"
NOTIFICATIONS_COLLECTION = "notifications"

DEDUP_KEY_FIELDS = ("name", "issue", "department", "deskId")
DEDUP_INDEX_NAME = "tickets_dedup_key_unique"


def index_specs(*, enforce_unique_dedup_key: bool = True) -> dict[str, list[IndexSpec]]:
    dedup_options: dict[str, Any] = {"name": DEDUP_INDEX_NAME, "unique": True}
    if not enforce_unique_dedup_key:
        dedup_options = {"name": "tickets_dedup_key_asc"}
    return {
        TICKETS_COLLECTION: [
            ([(field, ASCENDING) for field in DEDUP_KEY_FIELDS], dedup_options),
            ([("status", ASCENDING), ("createdAt", ASCENDING)], {"name": "tickets_status_created_asc"}),
        ],
        NOTIFICATIONS_COLLECTION: [
            ([("notificationId", ASCENDING)], {"name": "notifications_notification_id_unique", "unique": True}),
            ([("ticketId", ASCENDING), ("createdAt", DESCENDING)], {"name": "notifications_ticket_created_desc"}),
        ],
    }


def ensure_mongo_indexes(
    *,
    client: Any,
    database_name: str | None = None,
    enforce_unique_dedup_key: bool = True,
) -> dict[str, list[str]]:
    database = resolve_database(client, database_name)
    created: dict[str, list[str]] = {}
    for collection_name, specs in index_specs(enforce_unique_dedup_key=enforce_unique_dedup_key).items():
        collection = database[collection_name]
        names: list[str] = []
        for keys, options in specs:
            names.append(str(collection.create_index(keys, **options)))
        created[collection_name] = names
    return created
