from __future__ import annotations

from pymongo.errors import PyMongoError

from ticketdesk.core.config import Settings
from ticketdesk.infrastructure.attachment_store import LocalAttachmentStore
from ticketdesk.infrastructure.logging import get_logger
from ticketdesk.infrastructure.mailer import build_mailer
from ticketdesk.infrastructure.mongo_indexes import ensure_mongo_indexes
from ticketdesk.infrastructure.persistence_clients import MongoClientManager
from ticketdesk.repositories.notification_repository import NotificationRepository
from ticketdesk.repositories.ticket_repository import TicketRepository
from ticketdesk.services.notification_service import NotificationService
from ticketdesk.services.ticket_service import TicketService
from ticketdesk.store.in_memory import InMemoryStore

logger = get_logger(__name__)


class Container:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.index_error: str | None = None
        self.store = InMemoryStore()
        self.mongo_manager = MongoClientManager(
            uri=self.settings.mongodb_uri,
            enabled=self.settings.enable_external_services,
            database_name=self.settings.mongodb_database,
        )
        self.mailer = build_mailer(self.settings)
        self.attachment_store = LocalAttachmentStore(
            directory=self.settings.upload_dir,
            url_prefix=self.settings.uploads_url_prefix,
            max_files=self.settings.max_attachments,
            max_bytes=self.settings.max_attachment_bytes,
            enforce_types=self.settings.enforce_attachment_types,
        )

        self.ticket_repository = TicketRepository(
            store=self.store,
            mongo_manager=self.mongo_manager,
            enforce_unique_dedup_key=self.settings.enforce_unique_dedup_key,
        )
        self.notification_repository = NotificationRepository(
            store=self.store,
            mongo_manager=self.mongo_manager,
        )
        self.notification_service = NotificationService(
            settings=self.settings,
            mailer=self.mailer,
            notification_repository=self.notification_repository,
        )
        self.ticket_service = TicketService(
            settings=self.settings,
            ticket_repository=self.ticket_repository,
            attachment_store=self.attachment_store,
            notification_service=self.notification_service,
        )

    async def start(self) -> None:
        self.mongo_manager.connect()
        client = self.mongo_manager.client
        if client is None:
            return
        # Existing duplicate rows block the unique index; serve anyway and report it on /health.
        try:
            created = ensure_mongo_indexes(
                client=client,
                database_name=self.settings.mongodb_database or None,
                enforce_unique_dedup_key=self.settings.enforce_unique_dedup_key,
            )
        except PyMongoError as exc:
            self.index_error = str(exc)
            logger.error("mongo_index_setup_failed", error=self.index_error)
            return
        self.index_error = None
        logger.info("mongo_indexes_ready", collections=sorted(created))

    async def stop(self) -> None:
        self.notification_service.shutdown()
        self.mongo_manager.disconnect()

    @property
    def storage_mode(self) -> str:
        return "mongo" if self.mongo_manager.client is not None else "memory"

    @property
    def index_status(self) -> str:
        if self.mongo_manager.client is None:
            return "skipped"
        return "failed" if self.index_error else "ready"


container = Container()

# Module-level aliases used by routes, middleware and tests
settings = container.settings
store = container.store
mongo_manager = container.mongo_manager
mailer = container.mailer
attachment_store = container.attachment_store
ticket_repository = container.ticket_repository
notification_repository = container.notification_repository
notification_service = container.notification_service
ticket_service = container.ticket_service
