from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from ticketdesk.api.schemas import NotificationRecord
from ticketdesk.container import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/notifications/failed", response_model=list[NotificationRecord])
def list_failed_notifications(limit: int = Query(default=50, ge=1, le=200)) -> list[dict[str, Any]]:
    return notification_service.failed(limit=limit)
