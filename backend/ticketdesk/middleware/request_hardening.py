from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from ticketdesk.container import settings

STRICT_BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
CRITICAL_DUPLICATE_HEADERS = {
    "content-length",
    "content-type",
}
FORM_CONTENT_TYPES = {"multipart/form-data", "application/x-www-form-urlencoded"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "error": {"code": "VALIDATION_ERROR", "message": message, "details": []},
        },
    )


def _header_occurrence_count(request: Request, header_name: str) -> int:
    target = header_name.strip().lower().encode("latin-1")
    count = 0
    for key, _ in request.scope.get("headers", []):
        if key.lower() == target:
            count += 1
    return count


def _request_has_body(request: Request) -> bool:
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            return int(content_length) > 0
        except ValueError:
            return True
    transfer_encoding = request.headers.get("transfer-encoding", "")
    return bool(str(transfer_encoding).strip())


def expected_content_types(request: Request) -> set[str] | None:
    if request.method.upper() not in STRICT_BODY_METHODS:
        return None
    path = request.url.path.rstrip("/")
    if not path.startswith(f"{settings.api_prefix}/"):
        return None
    if request.method.upper() == "POST" and path == f"{settings.api_prefix}/tickets":
        return FORM_CONTENT_TYPES
    return {"application/json"}


async def enforce_request_hardening(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.url.path == "/health":
        return await call_next(request)

    for header in CRITICAL_DUPLICATE_HEADERS:
        if _header_occurrence_count(request, header) > 1:
            return _error(400, f"Duplicate `{header}` header is not allowed.")

    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            parsed_length = int(content_length)
        except ValueError:
            return _error(400, "Invalid Content-Length header.")
        if parsed_length > max(0, int(settings.request_max_body_bytes)):
            return _error(413, "Request body is too large.")

    expected = expected_content_types(request)
    if expected and _request_has_body(request):
        content_type = str(request.headers.get("content-type", "")).split(";", 1)[0].strip().lower()
        if content_type not in expected:
            return _error(415, f"Unsupported Content-Type. Use {' or '.join(sorted(expected))}.")

    return await call_next(request)
