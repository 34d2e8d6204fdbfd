"""
organizations.py — Organizations registry

Purpose:
- Own the identity rule for organizations: one Organization per canonical
  name (campuspay.utils.text.canonicalize).
- Implement implicit creation on first reference in one place (`resolve`),
  used by events, payments and officer profiles.
- Merge duplicates at read time (`list_all`); write-side duplicates are
  only removed by the migration tool's dedupe pass.

Key Notes:
- No locking: two concurrent first-time upserts of the same name under the
  local file store can both create a record. Listing hides that; migration
  with --dedupe-orgs fixes it.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional

from campuspay.core.errors import NotFound, ValidationError
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.models.org import Organization
from campuspay.stores.base import ORGANIZATIONS, Record, Repository
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "displayName", "logoUrl", "contactEmail", "metadata")


def org_canonical_key(org: Record) -> str:
    """Canonical key of a stored organization (legacy rows may lack canonicalName)."""
    return canonicalize(org.get("canonicalName") or org.get("name") or org.get("displayName") or org.get("id"))


def _created_sort_key(value: Optional[str]) -> str:
    # ISO-8601 strings compare chronologically; missing sorts last
    return value or "\uffff"


def merge_duplicate(existing: Record, other: Record) -> None:
    """
    Fold `other` into `existing` in place (same canonical key).

    The first id wins; missing logo/contact/metadata are filled; a more
    expressive displayName (one that differs from its name) replaces a plain
    one; the earliest createdAt is kept.
    """
    if not existing.get("id") and other.get("id"):
        existing["id"] = other["id"]
    if (
        (not existing.get("displayName") or existing.get("displayName") == existing.get("name"))
        and other.get("displayName")
        and other.get("displayName") != other.get("name")
    ):
        existing["displayName"] = other["displayName"]
    if (
        (not existing.get("name") or existing.get("name") == existing.get("displayName"))
        and other.get("name")
        and other.get("name") != other.get("displayName")
    ):
        existing["name"] = other["name"]
    for key in ("logoUrl", "contactEmail", "metadata"):
        if not existing.get(key) and other.get(key):
            existing[key] = other[key]
    if other.get("createdAt") and _created_sort_key(other["createdAt"]) < _created_sort_key(existing.get("createdAt")):
        existing["createdAt"] = other["createdAt"]


def dedupe_organizations(orgs: Iterable[Record]) -> List[Record]:
    """Collapse organizations sharing a canonical key, preserving first-seen order."""
    merged: Dict[str, Record] = {}
    for org in orgs:
        if not isinstance(org, dict):
            continue
        canon = org_canonical_key(org)
        if not canon:
            continue
        if canon not in merged:
            merged[canon] = {**org, "canonicalName": canon}
        else:
            merge_duplicate(merged[canon], org)
    return list(merged.values())


class OrganizationRegistry:
    def __init__(self, repository: Repository):
        self.repository = repository

    # ------------------------------------------------------------------ #
    # Lookups
    def find_by_name(self, name: Any) -> Optional[Record]:
        canon = canonicalize(name)
        if not canon:
            return None
        for org in self.repository.read(ORGANIZATIONS):
            if org_canonical_key(org) == canon:
                return org
        return None

    def get_by_id(self, org_id: str) -> Optional[Record]:
        """
        Organization by id. Legacy records reference orgs by name, so an id
        that matches no record is also tried as a name.
        """
        if not org_id:
            return None
        org = self.repository.get(ORGANIZATIONS, str(org_id))
        return org or self.find_by_name(org_id)

    def list_all(self) -> List[Record]:
        return dedupe_organizations(self.repository.read(ORGANIZATIONS))

    # ------------------------------------------------------------------ #
    # Writes
    def upsert_by_name(
        self,
        name: Any,
        display_name: Optional[str] = None,
        logo_url: Optional[str] = None,
        contact_email: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Record:
        """
        Existing organization with the same canonical name, with any provided
        attribute it lacked filled in; otherwise a new organization.
        """
        canon = canonicalize(name)
        if not canon:
            raise ValidationError("organization name is required")

        existing = self.find_by_name(name)
        if existing is not None:
            changed = False
            for key, value in (
                ("displayName", display_name),
                ("logoUrl", logo_url),
                ("contactEmail", contact_email),
                ("metadata", metadata),
            ):
                if value and not existing.get(key):
                    existing[key] = value
                    changed = True
            if not existing.get("canonicalName"):
                existing["canonicalName"] = canon
                changed = True
            if changed:
                existing["updatedAt"] = utc_now_iso()
                self.repository.upsert(ORGANIZATIONS, existing)
            return existing

        org = Organization(
            id=str(uuid.uuid4()),
            name=str(name).strip(),
            canonicalName=canon,
            displayName=display_name or str(name).strip(),
            logoUrl=logo_url or None,
            contactEmail=contact_email or None,
            metadata=metadata or {},
            createdAt=utc_now_iso(),
        ).to_record()
        org.pop("updatedAt", None)
        self.repository.upsert(ORGANIZATIONS, org)
        logger.info("Created organization %s (%s)", org["name"], org["id"])
        return org

    def resolve(
        self,
        org_id: Optional[str] = None,
        org_name: Optional[str] = None,
        create: bool = True,
    ) -> Optional[Record]:
        """
        The organization referenced by id and/or name.

        The id wins when it resolves; otherwise the name is looked up and,
        when `create` is set, an unknown name creates the organization.
        """
        if org_id:
            org = self.get_by_id(org_id)
            if org is not None:
                return org
        if org_name and canonicalize(org_name):
            if create:
                return self.upsert_by_name(org_name, display_name=str(org_name).strip())
            return self.find_by_name(org_name)
        return None

    def update(self, org_id: str, fields: Dict[str, Any]) -> Record:
        org = self.repository.get(ORGANIZATIONS, org_id)
        if org is None:
            raise NotFound("organization not found")

        changes = {k: fields[k] for k in UPDATABLE_FIELDS if k in fields and fields[k] is not None}
        if "name" in changes:
            canon = canonicalize(changes["name"])
            if not canon:
                raise ValidationError("organization name is required")
            clash = self.find_by_name(changes["name"])
            if clash is not None and clash.get("id") != org_id:
                raise ValidationError(f"another organization is already named {clash.get('name')!r}")
            changes["name"] = str(changes["name"]).strip()
            org["canonicalName"] = canon

        org.update(changes)
        org["updatedAt"] = utc_now_iso()
        self.repository.upsert(ORGANIZATIONS, org)
        return org

    def delete(self, org_id: str) -> Dict[str, Any]:
        """Remove the organization; events referencing it are left dangling."""
        if not self.repository.delete(ORGANIZATIONS, org_id):
            raise NotFound("organization not found")
        logger.info("Deleted organization %s", org_id)
        return {"ok": True, "id": org_id}
