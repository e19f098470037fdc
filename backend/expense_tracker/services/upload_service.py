"""Upload receiver for receipt files.

Uploaded files are validated against a per-field policy table and
streamed to ``settings.UPLOAD_DIRECTORY/<subdir>`` under a generated
name of the form ``<field>-<epoch ms>-<random>.<ext>``. The timestamp
plus random suffix keeps names unique across concurrent requests
without any locking.

The receiver only reports typed failures. Apart from removing its own
partial write when a size limit is hit, it never deletes files: the
ingestion orchestrator owns cleanup and calls :meth:`discard`.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence

from fastapi import UploadFile

from expense_tracker.core.config import resolve_upload_directory, settings
from expense_tracker.core.errors import (
    FileTooLarge,
    InvalidFileType,
    MissingFile,
    TooManyFiles,
    UnexpectedFileField,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
RECEIPT_FIELD = "receipt"


@dataclass(frozen=True)
class UploadPolicy:
    """Constraints applied to files posted under one form field."""

    allowed_types: tuple[str, ...]
    max_bytes: int
    subdir: str
    max_files: int = 1


@dataclass(frozen=True)
class UploadedFile:
    """A file stored in the temporary upload area."""

    filename: str
    field_name: str
    content_type: str
    size: int
    path: Path
    original_name: Optional[str] = None


def default_policies() -> Dict[str, UploadPolicy]:
    return {
        RECEIPT_FIELD: UploadPolicy(
            allowed_types=tuple(settings.RECEIPT_ALLOWED_CONTENT_TYPES),
            max_bytes=settings.MAX_UPLOAD_SIZE,
            subdir="temp",
        ),
    }


def _format_size(num_bytes: int) -> str:
    if num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    return f"{num_bytes} bytes"


@dataclass
class UploadService:
    """Validates and stores incoming uploads."""

    base_dir: Path = field(default_factory=resolve_upload_directory)
    policies: Dict[str, UploadPolicy] = field(default_factory=default_policies)
    _ready: bool = field(default=False, init=False, repr=False)

    def ensure_directories(self) -> None:
        """Create the storage directories once.  Safe to call repeatedly."""
        if self._ready:
            return
        for policy in self.policies.values():
            (self.base_dir / policy.subdir).mkdir(parents=True, exist_ok=True)
        self._ready = True
        logger.info("[upload] storage ready base_dir=%s", self.base_dir)

    def generate_filename(self, field_name: str, original_name: Optional[str]) -> str:
        suffix = Path(original_name or "").suffix.lower()
        unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{field_name}-{unique}{suffix}"

    async def receive(self, field_name: str, uploads: Optional[Sequence[UploadFile]]) -> UploadedFile:
        """Validate ``uploads`` posted under ``field_name`` and store the single file."""
        policy = self.policies.get(field_name)
        if policy is None:
            raise UnexpectedFileField(f"Unexpected file field: {field_name}")
        uploads = list(uploads or [])
        if not uploads:
            raise MissingFile(f"No {field_name} file uploaded")
        if len(uploads) > policy.max_files:
            raise TooManyFiles()

        upload = uploads[0]
        content_type = (upload.content_type or "").lower()
        if content_type not in policy.allowed_types:
            raise InvalidFileType(
                f"Invalid file type for {field_name}. Allowed types: {', '.join(policy.allowed_types)}"
            )

        self.ensure_directories()
        filename = self.generate_filename(field_name, upload.filename)
        target = self.base_dir / policy.subdir / filename
        size = await self._write_limited(upload, target, policy.max_bytes)
        logger.info(
            "[upload] stored field=%s file=%s original=%s bytes=%d",
            field_name, filename, upload.filename, size,
        )
        return UploadedFile(
            filename=filename,
            field_name=field_name,
            content_type=content_type,
            size=size,
            path=target.resolve(),
            original_name=upload.filename,
        )

    async def _write_limited(self, upload: UploadFile, target: Path, max_bytes: int) -> int:
        """Stream ``upload`` to ``target``.

        The partial file is removed if it exceeds ``max_bytes`` or if the
        write fails or is cancelled part way.
        """
        written = 0
        too_large = False
        try:
            await upload.seek(0)
            with target.open("wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        too_large = True
                        break
                    out.write(chunk)
        except BaseException:
            target.unlink(missing_ok=True)
            logger.warning("[upload] write aborted file=%s bytes=%d", target.name, written)
            raise
        if too_large:
            target.unlink(missing_ok=True)
            raise FileTooLarge(f"File size too large. Maximum size is {_format_size(max_bytes)}")
        return written

    def discard(self, uploaded: UploadedFile) -> bool:
        """Best-effort delete of a stored upload.

        Returns True when the file no longer exists.  Errors are logged,
        never raised, so a failed cleanup cannot mask the original failure.
        """
        try:
            uploaded.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("[upload] cleanup failed file=%s err=%s", uploaded.path, exc)
            return False
        logger.info("[upload] removed file=%s", uploaded.filename)
        return True
