"""
migrate_local_store.py — Reconcile the local JSON store and push it to Supabase.

Deduplicates organizations by canonical name, backfills orgId/eventId on
legacy events and payments, then upserts organizations, events, payments,
officer profiles and users into the Supabase document tables.

Safe to re-run. Backs up the local file first (data.json.bak.<timestamp>)
unless --no-backup is given.

Example (PowerShell):
    python scripts/migrate_local_store.py --dry-run
    python scripts/migrate_local_store.py --dedupe-orgs `
        --data-file data.json
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from campuspay.core.config import settings
from campuspay.core.logging import configure_logging, get_logger
from campuspay.services.migration import MigrationOptions, run_migration
from campuspay.stores.local_file import LocalFileRepository
from campuspay.stores.supabase_store import SupabaseRepository, create_supabase_client

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile the local store and backfill the Supabase document tables"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan in memory and print counts; write nothing anywhere",
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Skip the timestamped backup of the local file",
    )
    parser.add_argument(
        "--dedupe-orgs",
        action="store_true",
        help="Merge organizations sharing a canonical name and repoint references to the survivor",
    )
    parser.add_argument(
        "--keep-org-names",
        action="store_true",
        help="Leave each event's display `org` as written instead of the organization's name",
    )
    parser.add_argument(
        "--local-only",
        action="store_true",
        help="Rewrite the local file only; do not push to Supabase",
    )
    parser.add_argument(
        "--data-file",
        type=str,
        default=settings.LOCAL_STORE_PATH,
        help=f"Local store to migrate (default: {settings.LOCAL_STORE_PATH})",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    options = MigrationOptions(
        dry_run=args.dry_run,
        backup=not args.no_backup,
        dedupe_orgs=args.dedupe_orgs,
        normalize_org_names=not args.keep_org_names,
        local_only=args.local_only,
    )

    cloud = None
    if not (args.dry_run or args.local_only):
        if not settings.supabase_enabled:
            print("ERROR: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set (or pass --local-only)", file=sys.stderr)
            return 1
        cloud = SupabaseRepository(create_supabase_client(settings), settings.SUPABASE_TABLE_PREFIX)

    try:
        report = run_migration(LocalFileRepository(args.data_file), cloud, options)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    summary = report.summary()
    if args.dry_run:
        print("Dry run: nothing was written.")
    print(json.dumps(summary, indent=2))

    failed = sum(c["failed"] for c in summary["cloud"].values())
    if failed:
        logger.warning("%d cloud writes failed; re-run to retry them", failed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
