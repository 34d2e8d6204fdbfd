"""
set_officer_roles.py — Grant the officer role for an organization.

Writes `role: "officer"` and `org` onto user records (keyed by the identity
provider's uid). The API reads these to complement token claims, so an
assigned officer can only manage their own organization.

Input is either repeated --assign pairs or a JSON file mapping uid → org.

Example (PowerShell):
    python scripts/set_officer_roles.py --assign 8f2c...:JIECEP
    python scripts/set_officer_roles.py --from-json officers.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from campuspay.core.config import settings
from campuspay.core.errors import CampusPayError
from campuspay.core.logging import configure_logging, get_logger
from campuspay.services.users import UserRegistry
from campuspay.stores.mirrored import build_repository

logger = get_logger(__name__)


def parse_assignments(pairs: List[str], json_file: Optional[str]) -> Dict[str, str]:
    assignments: Dict[str, str] = {}
    if json_file:
        with Path(json_file).open("r", encoding="utf-8") as fh:
            loaded = json.load(fh)
        if not isinstance(loaded, dict):
            raise ValueError(f"{json_file} must contain an object mapping uid to org")
        assignments.update({str(k): str(v) for k, v in loaded.items()})
    for pair in pairs:
        uid, sep, org = pair.partition(":")
        if not sep or not uid.strip() or not org.strip():
            raise ValueError(f"Expected UID:ORG, got {pair!r}")
        assignments[uid.strip()] = org.strip()
    return assignments


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Assign the officer role for an organization to users")
    parser.add_argument(
        "--assign",
        action="append",
        default=[],
        metavar="UID:ORG",
        help="User uid and organization name, separated by a colon (repeatable)",
    )
    parser.add_argument(
        "--from-json",
        type=str,
        default=None,
        help="JSON file mapping uid to organization name",
    )
    args = parser.parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    try:
        assignments = parse_assignments(args.assign, args.from_json)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    if not assignments:
        parser.print_usage(sys.stderr)
        return 1

    users = UserRegistry(build_repository(settings))
    failures = 0
    for uid, org in assignments.items():
        try:
            users.assign_officer(uid, org)
            print(f"{uid}: officer of {org}")
        except CampusPayError as e:
            failures += 1
            logger.error("Could not assign %s to %s: %s", uid, org, e.message)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
