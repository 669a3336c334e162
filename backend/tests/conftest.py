from __future__ import annotations

import os
import tempfile

# The app container is built at import time from the environment.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="ticketdesk-uploads-"))
os.environ["MAIL_BACKEND"] = "memory"
os.environ["ENABLE_EXTERNAL_SERVICES"] = "false"
os.environ["NOTIFY_SYNCHRONOUSLY"] = "true"
os.environ["ADMIN_EMAIL"] = "admin@helpdesk.test"

import pytest

from ticketdesk.container import mailer, store
from ticketdesk.store.in_memory import InMemoryStore


@pytest.fixture(autouse=True)
def reset_store_state() -> None:
    # Keep tests isolated even though the app container is module-global.
    store.import_state(InMemoryStore().export_state())
    mailer.clear()  # type: ignore[attr-defined]
