"""
migration.py — Local store reconciliation & cloud backfill

Purpose:
- Reconcile a pre-existing local store and push it to the cloud store.
- Safe to re-run: a second pass over its own output plans no changes.

Steps (plan_migration, pure and in memory):
1. Build canonical name → organization from explicit organization records,
   supplemented by org names found on events (never on payments alone).
2. Give every canonical organization an id, reusing a record's own id.
3. Backfill `orgId` on events; optionally normalize their display `org`.
4. Backfill `orgId`/`eventId` on payments by joining on
   (orgId, event name), then (canonical org name, event name).
5. Optionally merge organizations sharing a canonical name into one
   survivor, rewriting every `orgId` reference to it.

run_migration then backs up the local file, writes the plan, and pushes
every collection to the cloud store. Per-record cloud failures are logged
and counted; they never abort the run.
"""

from __future__ import annotations

import copy
import shutil
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from campuspay.core.errors import UpstreamUnavailable
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.services.organizations import merge_duplicate, org_canonical_key
from campuspay.stores.base import (
    EVENTS,
    KEYED_COLLECTIONS,
    OFFICER_PROFILES,
    ORGANIZATIONS,
    PAYMENTS,
    USERS,
    Record,
    Repository,
)
from campuspay.stores.local_file import LocalFileRepository
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)

PUSH_ORDER = (ORGANIZATIONS, EVENTS, PAYMENTS, OFFICER_PROFILES, USERS)


@dataclass
class CollectionCounts:
    created: int = 0
    reused: int = 0
    updated: int = 0
    written: int = 0
    failed: int = 0


@dataclass
class MigrationOptions:
    dry_run: bool = False
    backup: bool = True
    dedupe_orgs: bool = False
    normalize_org_names: bool = True
    local_only: bool = False


@dataclass
class MigrationPlan:
    data: Dict[str, Any]
    canon_to_org_id: Dict[str, str] = field(default_factory=dict)
    survivor_of: Dict[str, str] = field(default_factory=dict)
    dropped_org_ids: List[str] = field(default_factory=list)
    counts: Dict[str, CollectionCounts] = field(
        default_factory=lambda: {name: CollectionCounts() for name in PUSH_ORDER}
    )


@dataclass
class MigrationReport:
    plan: MigrationPlan
    backup_path: Optional[str] = None
    cloud: Dict[str, CollectionCounts] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "local": {k: asdict(v) for k, v in self.plan.counts.items()},
            "cloud": {k: asdict(v) for k, v in self.cloud.items()},
            "droppedOrganizations": list(self.plan.dropped_org_ids),
            "backup": self.backup_path,
        }


# -----------------------------------------------------------------------------
# Planning
# -----------------------------------------------------------------------------

def _canonical_orgs(data: Dict[str, Any]) -> Tuple[Dict[str, Record], Dict[str, List[Record]]]:
    """Step 1: canonical key → merged org view, plus the raw records per key."""
    merged: Dict[str, Record] = {}
    members: Dict[str, List[Record]] = {}
    for org in data[ORGANIZATIONS]:
        canon = org_canonical_key(org)
        if not canon:
            continue
        members.setdefault(canon, []).append(org)
        if canon not in merged:
            merged[canon] = {**org}
        else:
            merge_duplicate(merged[canon], org)

    for event in data[EVENTS]:
        name = str(event.get("org") or "").strip()
        canon = canonicalize(name)
        if not canon or canon in merged:
            continue
        merged[canon] = {"name": name, "displayName": name, "createdAt": event.get("createdAt")}
        members.setdefault(canon, [])
    return merged, members


def plan_migration(
    data: Dict[str, Any],
    dedupe_orgs: bool = False,
    normalize_org_names: bool = True,
) -> MigrationPlan:
    """
    Steps 1–5 over a copy of `data`; nothing is written anywhere.
    """
    plan = MigrationPlan(data=copy.deepcopy(data))
    data = plan.data
    counts = plan.counts
    merged, members = _canonical_orgs(data)

    # Step 2: ids and canonicalName on every organization record
    org_by_id: Dict[str, Record] = {}
    new_orgs: List[Record] = []
    duplicates: List[Tuple[Record, Record]] = []
    for canon, view in merged.items():
        records = members[canon]
        if records:
            survivor = records[0]
            for record in records:
                before = (record.get("id"), record.get("canonicalName"))
                if not record.get("id"):
                    if record is survivor and dedupe_orgs and view.get("id"):
                        # the survivor takes over the id of the duplicate it absorbs
                        record["id"] = view["id"]
                    elif record is survivor or not dedupe_orgs:
                        record["id"] = str(uuid.uuid4())
                record["canonicalName"] = canon
                if (record.get("id"), record.get("canonicalName")) != before:
                    counts[ORGANIZATIONS].updated += 1
            counts[ORGANIZATIONS].reused += 1
            for dup in records[1:]:
                duplicates.append((survivor, dup))
                if dup.get("id") and dup["id"] != survivor["id"]:
                    plan.survivor_of[dup["id"]] = survivor["id"]
        else:
            survivor = {
                "id": str(uuid.uuid4()),
                "name": view["name"],
                "canonicalName": canon,
                "displayName": view.get("displayName") or view["name"],
                "logoUrl": None,
                "contactEmail": None,
                "metadata": {},
                "createdAt": view.get("createdAt") or utc_now_iso(),
            }
            new_orgs.append(survivor)
            counts[ORGANIZATIONS].created += 1
        plan.canon_to_org_id[canon] = survivor["id"]
        org_by_id[survivor["id"]] = survivor
    data[ORGANIZATIONS].extend(new_orgs)

    # Step 5 (reference side): with dedupe, duplicate ids point at the survivor
    redirect = plan.survivor_of if dedupe_orgs else {}

    # Step 3: events
    for event in data[EVENTS]:
        changed = False
        org_id = event.get("orgId")
        if org_id in redirect:
            event["orgId"] = redirect[org_id]
            changed = True
        elif not org_id:
            mapped = plan.canon_to_org_id.get(canonicalize(event.get("org")))
            if mapped:
                event["orgId"] = mapped
                changed = True
        org = org_by_id.get(event.get("orgId"))
        if org is not None and org.get("name"):
            if not event.get("org") or (normalize_org_names and event.get("org") != org["name"]):
                event["org"] = org["name"]
                changed = True
        if changed:
            counts[EVENTS].updated += 1

    # Step 4: payments
    by_org_id: Dict[Tuple[str, str], Record] = {}
    by_org_name: Dict[Tuple[str, str], Record] = {}
    for event in data[EVENTS]:
        event_key = canonicalize(event.get("name"))
        if event.get("orgId"):
            by_org_id.setdefault((event["orgId"], event_key), event)
        by_org_name.setdefault((canonicalize(event.get("org")), event_key), event)

    for payment in data[PAYMENTS]:
        changed = False
        org_id = payment.get("orgId")
        if org_id in redirect:
            payment["orgId"] = redirect[org_id]
            changed = True
        elif not org_id:
            mapped = plan.canon_to_org_id.get(canonicalize(payment.get("org")))
            if mapped:
                payment["orgId"] = mapped
                changed = True

        if not payment.get("eventId") and payment.get("event"):
            event_key = canonicalize(payment["event"])
            event = None
            if payment.get("orgId"):
                event = by_org_id.get((payment["orgId"], event_key))
            if event is None:
                event = by_org_name.get((canonicalize(payment.get("org")), event_key))
            if event is not None:
                payment["eventId"] = event["id"]
                if not payment.get("orgId") and event.get("orgId"):
                    payment["orgId"] = event["orgId"]
                changed = True
        if changed:
            counts[PAYMENTS].updated += 1

    # Step 5 (record side)
    if dedupe_orgs and duplicates:
        _drop_duplicate_orgs(plan, duplicates)

    return plan


def _drop_duplicate_orgs(plan: MigrationPlan, duplicates: List[Tuple[Record, Record]]) -> None:
    """
    Fold every duplicate record into its survivor and remove it.

    Records are matched by identity, so duplicates without an id (or sharing
    the survivor's id) go too; only ids distinct from the survivor's are
    reported for deletion from the cloud store.
    """
    data = plan.data
    dropped = {id(dup) for _, dup in duplicates}
    for survivor, dup in duplicates:
        merge_duplicate(survivor, dup)
        if dup.get("id") and dup["id"] != survivor.get("id") and dup["id"] not in plan.dropped_org_ids:
            plan.dropped_org_ids.append(dup["id"])
    data[ORGANIZATIONS] = [org for org in data[ORGANIZATIONS] if id(org) not in dropped]

    profiles = data[OFFICER_PROFILES]
    for key in list(profiles):
        profile = profiles[key]
        if isinstance(profile, dict) and profile.get("orgId") in plan.survivor_of:
            profile["orgId"] = plan.survivor_of[profile["orgId"]]
        if key in plan.survivor_of:
            survivor_key = plan.survivor_of[key]
            moved = profiles.pop(key)
            if survivor_key not in profiles:
                moved.update(id=survivor_key, orgKey=survivor_key)
                profiles[survivor_key] = moved

    logger.info("Merged %d duplicate organization records", len(duplicates))


# -----------------------------------------------------------------------------
# Execution
# -----------------------------------------------------------------------------

def backup_local_store(path) -> Optional[str]:
    """Copy the store to `<file>.bak.<UTC timestamp>`; None when there is no file."""
    source = Path(path)
    if not source.exists():
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    target = source.with_name(f"{source.name}.bak.{stamp}")
    shutil.copy2(source, target)
    logger.info("Backed up %s to %s", source, target)
    return str(target)


def _collection_records(data: Dict[str, Any], collection: str) -> List[Record]:
    if collection in KEYED_COLLECTIONS:
        return [{**v, "id": v.get("id") or k} for k, v in data[collection].items() if isinstance(v, dict)]
    return [r for r in data[collection] if isinstance(r, dict) and r.get("id")]


def push_to_cloud(plan: MigrationPlan, cloud: Repository) -> Dict[str, CollectionCounts]:
    counts = {name: CollectionCounts() for name in PUSH_ORDER}
    for collection in PUSH_ORDER:
        for record in _collection_records(plan.data, collection):
            try:
                if collection == ORGANIZATIONS:
                    if cloud.get(ORGANIZATIONS, record["id"]) is not None:
                        counts[collection].reused += 1
                    else:
                        counts[collection].created += 1
                cloud.upsert(collection, record)
                counts[collection].written += 1
            except UpstreamUnavailable as e:
                counts[collection].failed += 1
                logger.error("Cloud write failed for %s/%s: %s", collection, record.get("id"), e.message)

    for org_id in plan.dropped_org_ids:
        try:
            cloud.delete(ORGANIZATIONS, org_id)
        except UpstreamUnavailable as e:
            counts[ORGANIZATIONS].failed += 1
            logger.error("Cloud delete failed for %s/%s: %s", ORGANIZATIONS, org_id, e.message)
    return counts


def run_migration(
    local: LocalFileRepository,
    cloud: Optional[Repository],
    options: MigrationOptions,
) -> MigrationReport:
    data = local.load()
    logger.info(
        "Loaded %s: %d events, %d payments, %d organizations",
        local.path, len(data[EVENTS]), len(data[PAYMENTS]), len(data[ORGANIZATIONS]),
    )
    plan = plan_migration(data, options.dedupe_orgs, options.normalize_org_names)
    report = MigrationReport(plan=plan)

    if options.dry_run:
        logger.info("Dry run: nothing written")
        return report

    if options.backup:
        report.backup_path = backup_local_store(local.path)
    local.save(plan.data)

    if cloud is not None and not options.local_only:
        report.cloud = push_to_cloud(plan, cloud)
    elif not options.local_only:
        logger.warning("No cloud store configured; local store updated only")
    return report
