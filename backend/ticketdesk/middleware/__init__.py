from .request_hardening import enforce_request_hardening
from .request_logging import log_requests

__all__ = [
    "enforce_request_hardening",
    "log_requests",
]
