from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_name: str = "Ticket Desk"
    api_prefix: str = "/api"
    cors_origins: str = "*"
    log_level: str = "INFO"
    log_format: str = "auto"

    mongodb_uri: str = "mongodb://localhost:27017/ticketdesk"
    mongodb_database: str = ""
    enable_external_services: bool = False
    enforce_unique_dedup_key: bool = True

    upload_dir: str = "uploads"
    uploads_url_prefix: str = "/uploads"
    max_attachments: int = 5
    max_attachment_bytes: int = 25 * 1024 * 1024
    enforce_attachment_types: bool = True
    request_max_body_bytes: int = 130 * 1024 * 1024

    mail_backend: str = "memory"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout_seconds: int = 10
    admin_email: str = "admin@example.com"
    mail_from: str = ""

    notify_synchronously: bool = True
    allowed_statuses: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        smtp_host = os.getenv("SMTP_HOST", "")
        admin_email = os.getenv("ADMIN_EMAIL", os.getenv("MAIL_USER", cls.admin_email))
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            api_prefix=os.getenv("API_PREFIX", cls.api_prefix),
            cors_origins=os.getenv("CORS_ORIGINS", cls.cors_origins),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_format=os.getenv("LOG_FORMAT", cls.log_format).strip().lower(),
            mongodb_uri=os.getenv("MONGODB_URI", os.getenv("MONGO_URI", cls.mongodb_uri)),
            mongodb_database=os.getenv("MONGODB_DATABASE", cls.mongodb_database),
            enable_external_services=_env_bool("ENABLE_EXTERNAL_SERVICES", cls.enable_external_services),
            enforce_unique_dedup_key=_env_bool("ENFORCE_UNIQUE_DEDUP_KEY", cls.enforce_unique_dedup_key),
            upload_dir=os.getenv("UPLOAD_DIR", cls.upload_dir),
            uploads_url_prefix=os.getenv("UPLOADS_URL_PREFIX", cls.uploads_url_prefix),
            max_attachments=_env_int("MAX_ATTACHMENTS", cls.max_attachments),
            max_attachment_bytes=_env_int("MAX_ATTACHMENT_BYTES", cls.max_attachment_bytes),
            enforce_attachment_types=_env_bool("ENFORCE_ATTACHMENT_TYPES", cls.enforce_attachment_types),
            request_max_body_bytes=_env_int("REQUEST_MAX_BODY_BYTES", cls.request_max_body_bytes),
            mail_backend=os.getenv("MAIL_BACKEND") or ("smtp" if smtp_host else "memory"),
            smtp_host=smtp_host,
            smtp_port=_env_int("SMTP_PORT", cls.smtp_port),
            smtp_username=os.getenv("SMTP_USERNAME", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            smtp_use_tls=_env_bool("SMTP_USE_TLS", cls.smtp_use_tls),
            smtp_timeout_seconds=_env_int("SMTP_TIMEOUT_SECONDS", cls.smtp_timeout_seconds),
            admin_email=admin_email,
            mail_from=os.getenv("MAIL_FROM", ""),
            notify_synchronously=_env_bool("NOTIFY_SYNCHRONOUSLY", cls.notify_synchronously),
            allowed_statuses=os.getenv("ALLOWED_STATUSES", cls.allowed_statuses),
        )

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins) or ["*"]

    @property
    def status_allow_list(self) -> list[str]:
        return _split_csv(self.allowed_statuses)

    @property
    def sender_address(self) -> str:
        return self.mail_from or self.admin_email
