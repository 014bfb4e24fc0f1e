#!/usr/bin/env python3
"""
Remove stored images that no photo row references (orphans).

Orphans appear when an upload succeeded but the metadata insert failed, or
when a blob delete was skipped. Run this out-of-band, e.g. from cron:

    python scripts/reconcile_orphans.py --dry-run
    python scripts/reconcile_orphans.py --min-age 7200

Uses the same environment variables as the API (DATABASE_URL,
STORAGE_BACKEND, CONTAINER_NAME, ...), loaded from .env if present.
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from dotenv import load_dotenv  # type: ignore[import]

# Load environment variables from .env if present
load_dotenv()

from photo_gallery.coordinator import DEFAULT_ORPHAN_MIN_AGE, MediaCoordinator  # noqa: E402
from photo_gallery.dao import CommentDAO, MetadataStoreError, PhotoDAO  # noqa: E402
from photo_gallery.database import SessionLocal, engine  # noqa: E402
from photo_gallery.storage import ObjectStoreError, get_storage_backend  # noqa: E402

logger = logging.getLogger("reconcile_orphans")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report orphans without deleting them.",
    )
    parser.add_argument(
        "--min-age",
        type=int,
        default=int(DEFAULT_ORPHAN_MIN_AGE.total_seconds()),
        help="Ignore objects modified within this many seconds.",
    )
    return parser.parse_args(argv)


async def run(dry_run: bool, min_age: int) -> int:
    coordinator = MediaCoordinator(
        storage=get_storage_backend(),
        photos=PhotoDAO(SessionLocal),
        comments=CommentDAO(SessionLocal),
    )
    try:
        report = await coordinator.reconcile(
            dry_run=dry_run, min_age=timedelta(seconds=min_age)
        )
    except (ObjectStoreError, MetadataStoreError):
        logger.exception("Reconcile failed")
        return 1
    finally:
        await engine.dispose()
    for key in report.orphaned:
        action = "would delete" if dry_run else "deleted"
        print(f"{action}: {key}")  # noqa: T201
    print(  # noqa: T201
        f"scanned={report.scanned} orphaned={len(report.orphaned)} "
        f"deleted={len(report.deleted)} skipped_recent={report.skipped_recent}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = parse_args(argv)
    return asyncio.run(run(dry_run=args.dry_run, min_age=args.min_age))


if __name__ == "__main__":
    sys.exit(main())
