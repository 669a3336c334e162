from __future__ import annotations

from copy import deepcopy
from threading import RLock
from typing import Any

from bson import ObjectId


class InMemoryStore:
    """Process-local document store used when Mongo is disabled or unreachable."""

    def __init__(self) -> None:
        self.lock = RLock()
        self.tickets: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []

    @staticmethod
    def new_object_id() -> str:
        return str(ObjectId())

    def export_state(self) -> dict[str, Any]:
        with self.lock:
            return {
                "tickets": deepcopy(self.tickets),
                "notifications": deepcopy(self.notifications),
            }

    def import_state(self, state: dict[str, Any]) -> None:
        with self.lock:
            self.tickets = deepcopy(state.get("tickets", []))
            self.notifications = deepcopy(state.get("notifications", []))
