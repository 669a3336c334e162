from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ticketdesk.api.errors import register_error_handlers
from ticketdesk.api.routes.inquiry_routes import router as inquiry_router
from ticketdesk.api.routes.notification_routes import router as notification_router
from ticketdesk.api.routes.ticket_routes import router as ticket_router
from ticketdesk.container import container, mongo_manager, settings
from ticketdesk.infrastructure.logging import setup_logging
from ticketdesk.middleware import enforce_request_hardening, log_requests

setup_logging(settings.log_level, settings.log_format)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    await container.start()
    try:
        yield
    finally:
        await container.stop()


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(enforce_request_hardening)
app.middleware("http")(log_requests)

register_error_handlers(app)

app.include_router(ticket_router, prefix=settings.api_prefix)
app.include_router(inquiry_router, prefix=settings.api_prefix)
app.include_router(notification_router, prefix=settings.api_prefix)

app.mount(
    settings.uploads_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/health")
def health() -> dict[str, object]:
    return {
        "status": "ok",
        "storage": container.storage_mode,
        "services": {
            "mongo": {"status": mongo_manager.status, "error": mongo_manager.error},
            "indexes": {"status": container.index_status, "error": container.index_error},
        },
    }
