"""Shared test doubles and constants."""

from __future__ import annotations

import io
from pathlib import Path

from fastapi import UploadFile
from starlette.datastructures import Headers

from expense_tracker.services.extraction_service import ProcessOutput, parse_extraction_output

USER_ID = "64b7f0c2a1b2c3d4e5f60718"
OTHER_USER_ID = "64b7f0c2a1b2c3d4e5f60719"


def make_upload(data: bytes = b"\xff\xd8fake-jpeg", filename: str = "receipt.jpg", content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


class CannedExtractor:
    """Extractor double that parses a fixed tool output instead of spawning a process."""

    def __init__(self, stdout: str = "", exit_code: int = 0, stderr: str = "", error: Exception | None = None):
        self.output = ProcessOutput(exit_code=exit_code, stdout=stdout, stderr=stderr)
        self.error = error
        self.calls: list[Path] = []

    async def extract(self, file_path):
        self.calls.append(Path(file_path))
        if self.error is not None:
            raise self.error
        return parse_extraction_output(self.output)
