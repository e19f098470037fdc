"""Receipt extraction through an external tool.

The extraction tool is treated as an opaque capability: it is started
as a child process with the stored receipt path as its only positional
argument, prints one JSON object on stdout and exits 0, or exits
non-zero with diagnostics on stderr.

Three layers live here:

* :func:`run_extraction_process` launches the tool and waits for it
  (bounded by a timeout) returning the raw :class:`ProcessOutput`.
* :func:`parse_extraction_output` turns that output into an
  :class:`~expense_tracker.models.schemas.ExtractionResult` or raises a
  typed failure.
* :class:`Extractor` is the capability the orchestrator depends on;
  :class:`SubprocessExtractor` wires the two functions together.  Tests
  substitute a canned implementation that never spawns anything.

Set ``EXTRACTION_DEBUG=1`` to log the raw tool output.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from pydantic import ValidationError

from expense_tracker.core.config import settings
from expense_tracker.core.errors import (
    ExtractionFailed,
    ExtractionIncomplete,
    ExtractionLaunchFailed,
    ExtractionOutputMalformed,
    ExtractionTimeout,
)
from expense_tracker.models.schemas import ExtractionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessOutput:
    exit_code: int
    stdout: str
    stderr: str


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_extraction_process(
    command: Sequence[str],
    file_path: str | os.PathLike[str],
    timeout: Optional[float] = None,
) -> ProcessOutput:
    """Run ``command + [file_path]`` and collect its exit code and output.

    Raises ``ExtractionLaunchFailed`` when the process cannot be started
    and ``ExtractionTimeout`` when it outlives ``timeout`` seconds (the
    child is killed first).  If the calling task is cancelled the child
    is killed before the cancellation propagates.
    """
    if not command:
        raise ExtractionLaunchFailed(detail="no extraction command configured")
    argv = [*command, str(file_path)]
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ExtractionLaunchFailed(detail=f"{argv[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(proc)
        logger.warning("[extraction] timed out after %ss pid=%s", timeout, proc.pid)
        raise ExtractionTimeout(timeout or 0)
    except asyncio.CancelledError:
        await _terminate(proc)
        raise

    return ProcessOutput(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def parse_extraction_output(output: ProcessOutput) -> ExtractionResult:
    """Validate the tool's output and return the structured result."""
    if output.exit_code != 0:
        raise ExtractionFailed(stderr=output.stderr, exit_code=output.exit_code)

    payload = output.stdout.strip()
    if not payload:
        raise ExtractionOutputMalformed("extraction tool produced no output")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ExtractionOutputMalformed(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ExtractionOutputMalformed(f"expected a JSON object, got {type(data).__name__}")
    try:
        result = ExtractionResult.model_validate(data)
    except ValidationError as exc:
        raise ExtractionOutputMalformed(f"unexpected field types: {exc}") from exc

    if result.resolved_amount() is None:
        raise ExtractionIncomplete()
    return result


class Extractor(Protocol):
    """Capability that turns a stored receipt into structured data."""

    async def extract(self, file_path: Path) -> ExtractionResult:
        ...


class SubprocessExtractor:
    """Extractor backed by the configured external command."""

    def __init__(self, command: Optional[Sequence[str]] = None, timeout: Optional[float] = None) -> None:
        self.command: list[str] = list(command) if command else shlex.split(settings.EXTRACTION_COMMAND)
        self.timeout: Optional[float] = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        if self.timeout is not None and self.timeout <= 0:
            self.timeout = None
        self.debug: bool = os.getenv("EXTRACTION_DEBUG", "0").lower() in {"1", "true", "yes"}

    async def extract(self, file_path: Path) -> ExtractionResult:
        if not self.command:
            raise ExtractionLaunchFailed(detail="EXTRACTION_COMMAND is empty")
        logger.info("[extraction] start file=%s command=%s", Path(file_path).name, self.command[0])
        output = await run_extraction_process(self.command, file_path, timeout=self.timeout)
        if self.debug:
            logger.info("[extraction] exit=%s stdout=%s", output.exit_code, output.stdout)
        if output.exit_code != 0:
            logger.warning("[extraction] exit=%s stderr=%s", output.exit_code, output.stderr.strip())
        return parse_extraction_output(output)
