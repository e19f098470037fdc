#!/usr/bin/env python
"""Find (and optionally delete) orphaned receipt uploads.

A file in the temporary upload area is orphaned when no transaction's
provenance block references it and it is older than
``UPLOAD_ORPHAN_MAX_AGE_HOURS``.  This only happens when the process
dies mid-ingestion; normal failures clean up after themselves.  Files
referenced by a transaction are the receipt of record and are never
touched.

Usage (from repo root):

  python -m expense_tracker.scripts.prune_uploads [--max-age-hours 24] [--delete]

Dry-run by default; pass --delete to remove the files.
"""
from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_tracker.core.config import settings
from expense_tracker.models.tables import Transaction
from expense_tracker.services.upload_service import UploadService

logger = logging.getLogger(__name__)


async def referenced_paths(session: AsyncSession) -> Set[str]:
    """Return every file path recorded on a receipt transaction."""
    result = await session.execute(
        select(Transaction.receipt_provenance).where(Transaction.receipt_provenance.is_not(None))
    )
    paths: Set[str] = set()
    for (provenance,) in result.all():
        if isinstance(provenance, dict) and provenance.get("file_path"):
            paths.add(str(Path(provenance["file_path"]).resolve()))
    return paths


def find_orphans(candidates: Iterable[Path], referenced: Set[str], older_than: dt.datetime) -> List[Path]:
    cutoff = older_than.timestamp()
    orphans = []
    for path in candidates:
        if not path.is_file():
            continue
        if str(path.resolve()) in referenced:
            continue
        if path.stat().st_mtime >= cutoff:
            continue
        orphans.append(path)
    return sorted(orphans)


async def prune_uploads(
    session: AsyncSession,
    uploads: UploadService,
    max_age_hours: float,
    delete: bool = False,
    now: Optional[dt.datetime] = None,
) -> List[Path]:
    """Return orphaned temp uploads, deleting them when ``delete`` is set."""
    temp_dir = uploads.base_dir / uploads.policies["receipt"].subdir
    if not temp_dir.exists():
        return []
    now = now or dt.datetime.now()
    orphans = find_orphans(
        temp_dir.iterdir(),
        await referenced_paths(session),
        older_than=now - dt.timedelta(hours=max_age_hours),
    )
    if delete:
        for path in orphans:
            try:
                path.unlink(missing_ok=True)
                logger.info("[prune] removed %s", path)
            except OSError as exc:
                logger.error("[prune] could not remove %s: %s", path, exc)
    return orphans


async def _run(max_age_hours: float, delete: bool) -> int:
    from expense_tracker.core.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        orphans = await prune_uploads(session, UploadService(), max_age_hours, delete=delete)
    action = "Removed" if delete else "Would remove"
    for path in orphans:
        print(f"{action}: {path}")
    print(f"{action} {len(orphans)} orphaned upload(s)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    parser = argparse.ArgumentParser(description='Prune orphaned receipt uploads')
    parser.add_argument(
        '--max-age-hours',
        type=float,
        default=settings.UPLOAD_ORPHAN_MAX_AGE_HOURS,
        help='Only consider files older than this many hours',
    )
    parser.add_argument('--delete', action='store_true', help='Delete orphans (otherwise dry-run)')
    args = parser.parse_args(argv)
    return asyncio.run(_run(args.max_age_hours, args.delete))


if __name__ == '__main__':
    sys.exit(main())
