from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ticketdesk.core.errors import TicketDeskError, error_body
from ticketdesk.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    details: list[dict[str, Any]] = []
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in {"body", "query", "path"}]
        details.append({"field": ".".join(location), "message": str(item.get("msg", ""))})
    return details


async def handle_ticketdesk_error(request: Request, exc: TicketDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = _validation_details(exc)
    fields = ", ".join(detail["field"] for detail in details if detail["field"])
    message = f"Invalid request: {fields}" if fields else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={
            "message": message,
            "error": {"code": "VALIDATION_ERROR", "message": message, "details": details},
        },
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "message": "Internal server error",
            "error": {"code": "INTERNAL_ERROR", "message": "Internal server error", "details": []},
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TicketDeskError, handle_ticketdesk_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected)
