#!/usr/bin/env python3
"""Fail processing jobs without a recent heartbeat and pending jobs nobody picked up.

The Celery beat schedule does this every few minutes; this script is for
operators who need to unblock a job by hand.

Usage:
    python reap_stale_jobs.py [--threshold-minutes 30] [--queue-timeout-hours 24] [--dry-run]
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from catalog_ingest.core.config import get_settings
from catalog_ingest.db.session import get_fresh_session
from catalog_ingest.services import job_registry
from catalog_ingest.services.progress_tracker import clear_progress
from catalog_ingest.storage.uploads import delete_upload


def main() -> int:
    parser = argparse.ArgumentParser(description="Fail stale import jobs")
    parser.add_argument(
        "--threshold-minutes",
        type=int,
        default=30,
        help="Processing jobs without a heartbeat for this long are failed (default: 30)",
    )
    parser.add_argument(
        "--queue-timeout-hours",
        type=int,
        default=get_settings().import_job_queue_timeout_seconds // 3600,
        help="Pending jobs queued for this long are failed (default: from settings)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List stale jobs without changing them",
    )
    args = parser.parse_args()

    if args.threshold_minutes < 1:
        print("Error: --threshold-minutes must be at least 1", file=sys.stderr)
        return 1
    if args.queue_timeout_hours < 1:
        print("Error: --queue-timeout-hours must be at least 1", file=sys.stderr)
        return 1

    session = get_fresh_session()
    try:
        job_ids = job_registry.reap_stale_jobs(
            session,
            timedelta(minutes=args.threshold_minutes),
            queue_timeout=timedelta(hours=args.queue_timeout_hours),
            dry_run=args.dry_run,
        )
        staged = [] if args.dry_run else job_registry.staged_files(session, job_ids)
    finally:
        session.close()

    if not job_ids:
        print(f"No stale jobs found (threshold: {args.threshold_minutes} minutes)")
        return 0

    for job_id in job_ids:
        print(f"  {job_id}")
    if args.dry_run:
        print(f"\n[DRY RUN] Would fail {len(job_ids)} job(s). Run without --dry-run to apply.")
    else:
        for path in staged:
            delete_upload(path)
        for job_id in job_ids:
            clear_progress(job_id)
        print(f"\nFailed {len(job_ids)} stale job(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
