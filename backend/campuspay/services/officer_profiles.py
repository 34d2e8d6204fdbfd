"""
officer_profiles.py — Officer profile registry

One profile per organization key: the orgId when known, else the canonical
organization name. Upserts merge, so fields an update omits are kept.
Lookups try the key as given and as a canonical name, which also finds
profiles stored before their org had an id.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from campuspay.core.errors import NotFound, ValidationError
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.models.officer_profile import OfficerProfile
from campuspay.services.organizations import OrganizationRegistry
from campuspay.stores.base import OFFICER_PROFILES, Record, Repository
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)


def profile_key(org: Optional[str], org_id: Optional[str]) -> str:
    return str(org_id) if org_id else canonicalize(org)


class OfficerProfileRegistry:
    def __init__(self, repository: Repository, organizations: OrganizationRegistry):
        self.repository = repository
        self.organizations = organizations

    def find(self, key: str) -> Optional[Record]:
        if not key:
            return None
        return self.repository.get(OFFICER_PROFILES, key) or self.repository.get(
            OFFICER_PROFILES, canonicalize(key)
        )

    def get(self, key: str) -> Record:
        profile = self.find(key)
        if profile is None:
            raise NotFound("officer profile not found")
        return profile

    def list(self, org: Optional[str] = None, org_id: Optional[str] = None) -> List[Record]:
        if org_id or org:
            profile = self.find(profile_key(org, org_id))
            return [profile] if profile else []
        return self.repository.read(OFFICER_PROFILES)

    def upsert(self, org: Optional[str], org_id: Optional[str], profile: Dict[str, Any]) -> Record:
        """
        Merge `profile` into the stored profile for the org; creates the
        organization on first reference by name.
        """
        org = org or profile.get("org")
        org_id = org_id or profile.get("orgId")
        if not org and not org_id:
            raise ValidationError("org or orgId is required")

        if org:
            self.organizations.resolve(org_id, org)
        key = profile_key(org, org_id)

        existing = self.repository.get(OFFICER_PROFILES, key) or {}
        merged = {**existing, **{k: v for k, v in profile.items() if v is not None}}
        merged.update(
            id=key,
            orgKey=key,
            org=org or existing.get("org") or "",
            orgId=org_id or existing.get("orgId"),
            updatedAt=utc_now_iso(),
        )
        merged = OfficerProfile(**merged).to_record()
        self.repository.upsert(OFFICER_PROFILES, merged)
        logger.info("Officer profile upserted for key=%s", key)
        return merged
