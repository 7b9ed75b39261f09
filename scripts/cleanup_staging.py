"""Cron entry point for removing abandoned staging objects."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta

from media_store.config import load_config
from media_store.infrastructure.local_media_storage import LocalBackingStore
from media_store.media.identifiers import IdentifierCodec
from media_store.media.staging_cleanup import StagingCleanupSummary, cleanup_stale_staging


def perform_cleanup(
    *,
    dry_run: bool,
    max_age_hours: float | None = None,
    reference_time: datetime | None = None,
) -> StagingCleanupSummary:
    """Execute cleanup logic and return summary counters."""
    config = load_config()
    store = LocalBackingStore(
        root=config.resolved_storage_root,
        public_base_url=config.public_base_url,
    )
    hours = config.staging_max_age_hours if max_age_hours is None else max_age_hours
    return asyncio.run(
        cleanup_stale_staging(
            store,
            IdentifierCodec(prefix=config.key_prefix),
            max_age=timedelta(hours=hours),
            reference_time=reference_time,
            dry_run=dry_run,
        )
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cleanup abandoned staging objects.")
    parser.add_argument("--dry-run", action="store_true", help="Only report counts without deleting files.")
    parser.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Override MEDIA_STORE_STAGING_MAX_AGE_HOURS.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        summary = perform_cleanup(dry_run=args.dry_run, max_age_hours=args.max_age_hours)
    except Exception as exc:
        print(f"cleanup failed: {exc}", file=sys.stderr)
        return 2

    if summary.dry_run:
        print(
            f"cleanup dry-run, scanned={summary.scanned}, staging_expired={summary.removed}",
            file=sys.stdout,
        )
    else:
        print(
            f"cleanup done, scanned={summary.scanned}, staging_removed={summary.removed}",
            file=sys.stdout,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
