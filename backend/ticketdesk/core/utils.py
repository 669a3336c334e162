from __future__ import annotations

import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def to_iso(value: object) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value or "")


def generate_id(prefix: str) -> str:
    """Generates a unique ID with the given prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def clean_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()
