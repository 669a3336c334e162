from __future__ import annotations

import secrets
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from ticketdesk.core.errors import InvalidFileType, StorageError, ValidationError
from ticketdesk.infrastructure.logging import get_logger

logger = get_logger(__name__)

# extension -> accepted declared content types
ALLOWED_ATTACHMENT_TYPES: dict[str, frozenset[str]] = {
    ".jpg": frozenset({"image/jpeg"}),
    ".jpeg": frozenset({"image/jpeg"}),
    ".png": frozenset({"image/png"}),
    ".gif": frozenset({"image/gif"}),
    ".webp": frozenset({"image/webp"}),
    ".bmp": frozenset({"image/bmp"}),
    ".mp4": frozenset({"video/mp4"}),
    ".mov": frozenset({"video/quicktime"}),
    ".avi": frozenset({"video/x-msvideo", "video/avi"}),
    ".webm": frozenset({"video/webm", "audio/webm"}),
    ".mkv": frozenset({"video/x-matroska"}),
    ".mp3": frozenset({"audio/mpeg", "audio/mp3"}),
    ".wav": frozenset({"audio/wav", "audio/x-wav", "audio/wave"}),
    ".ogg": frozenset({"audio/ogg", "video/ogg"}),
    ".m4a": frozenset({"audio/mp4", "audio/x-m4a"}),
    ".pdf": frozenset({"application/pdf"}),
    ".doc": frozenset({"application/msword"}),
    ".docx": frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}),
    ".xls": frozenset({"application/vnd.ms-excel"}),
    ".xlsx": frozenset({"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"}),
    ".ppt": frozenset({"application/vnd.ms-powerpoint"}),
    ".pptx": frozenset({"application/vnd.openxmlformats-officedocument.presentationml.presentation"}),
    ".txt": frozenset({"text/plain"}),
    ".csv": frozenset({"text/csv", "application/vnd.ms-excel"}),
}


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename or "").suffix.lower()


class LocalAttachmentStore:
    """Writes uploaded attachments under one directory served at ``url_prefix``.

    Stored names are ``<epoch millis>-<random hex><original extension>``; files
    are created exclusively so two uploads in the same millisecond can never
    overwrite each other.
    """

    def __init__(
        self,
        *,
        directory: str | Path,
        url_prefix: str = "/uploads",
        max_files: int = 5,
        max_bytes: int = 25 * 1024 * 1024,
        enforce_types: bool = True,
    ) -> None:
        self.directory = Path(directory)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_files = max(0, int(max_files))
        self.max_bytes = max(1, int(max_bytes))
        self.enforce_types = enforce_types

    def validate(self, files: Sequence[IncomingFile]) -> None:
        if len(files) > self.max_files:
            raise InvalidFileType(
                f"Too many files: at most {self.max_files} attachments are accepted",
                details=[{"field": "media", "count": len(files), "limit": self.max_files}],
            )
        for item in files:
            self.check_size(item.filename, len(item.data))
            if self.enforce_types and not _is_allowed(item):
                raise InvalidFileType(
                    f"File type not allowed: {item.filename}",
                    details=[{"field": "media", "filename": item.filename, "contentType": item.content_type}],
                )

    def check_size(self, filename: str, size: int | None) -> None:
        if size is not None and size > self.max_bytes:
            raise ValidationError(
                f"File {filename} exceeds the {self.max_bytes} byte limit",
                details=[{"field": "media", "filename": filename}],
            )

    def store(self, files: Sequence[IncomingFile]) -> list[str]:
        self.validate(files)
        if not files:
            return []
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError("Error storing attachments") from exc

        references: list[str] = []
        for item in files:
            try:
                name = self._write(item)
            except OSError as exc:
                logger.error("attachment_store_failed", filename=item.filename, error=str(exc))
                self.discard(references)
                raise StorageError("Error storing attachments") from exc
            reference = f"{self.url_prefix}/{name}"
            references.append(reference)
            logger.info("attachment_stored", filename=item.filename, reference=reference, size=len(item.data))
        return references

    def discard(self, references: Sequence[str]) -> None:
        for reference in references:
            with suppress(FileNotFoundError):
                self.resolve(reference).unlink()

    def resolve(self, reference: str) -> Path:
        return self.directory / Path(reference).name

    def _write(self, item: IncomingFile) -> str:
        while True:
            name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{item.extension}"
            try:
                with open(self.directory / name, "xb") as handle:
                    handle.write(item.data)
                return name
            except FileExistsError:
                continue


def _is_allowed(item: IncomingFile) -> bool:
    accepted = ALLOWED_ATTACHMENT_TYPES.get(item.extension)
    if accepted is None:
        return False
    content_type = (item.content_type or "").split(";", 1)[0].strip().lower()
    return content_type in accepted
