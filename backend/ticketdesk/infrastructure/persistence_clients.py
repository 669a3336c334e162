from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ticketdesk.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE = "ticketdesk"


@dataclass
class MongoClientManager:
    uri: str
    enabled: bool
    database_name: str = ""
    _client: Any = None
    _last_error: str | None = None

    def connect(self) -> None:
        if not self.enabled:
            return

        if "localhost" in self.uri or "127.0.0.1" in self.uri:
            logger.warning("mongo_localhost_uri", uri=self.uri)

        try:
            self._client = MongoClient(self.uri, serverSelectionTimeoutMS=2000, socketTimeoutMS=40000)
            self._client.admin.command("ping")
            self._last_error = None
            logger.info("mongo_connected")
        except PyMongoError as exc:
            self._client = None
            self._last_error = str(exc)
            logger.warning("mongo_connect_failed", uri=self.uri, error=str(exc))

    def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None

    @property
    def status(self) -> str:
        if not self.enabled:
            return "disabled"
        if self._client is None:
            return "unavailable"
        return "connected"

    @property
    def error(self) -> str | None:
        return self._last_error

    @property
    def client(self) -> Any:
        return self._client

    @property
    def database(self) -> Any | None:
        client = self._client
        if client is None:
            return None
        return resolve_database(client, self.database_name or None)


def resolve_database(client: Any, database_name: str | None = None) -> Any:
    if database_name:
        return client[database_name]
    try:
        default_database = client.get_default_database()
    except PyMongoError:
        default_database = None
    if default_database is not None:
        return default_database
    return client[DEFAULT_DATABASE]
