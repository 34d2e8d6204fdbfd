"""
users.py — User registry (keyed by identity uid)

Purpose:
- Record sign-ins (`POST /session`): email, name, picture, lastSeen, and
  an optional self-reported profile.
- Hold officer role/org assignments written by scripts/set_officer_roles.py,
  which security.py reads to complement token claims.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from campuspay.core.errors import Unauthorized, ValidationError
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.models.user import OFFICER_ROLE, User
from campuspay.stores.base import USERS, Record, Repository

logger = get_logger(__name__)


class UserRegistry:
    def __init__(self, repository: Repository):
        self.repository = repository

    def get(self, uid: str) -> Optional[Record]:
        return self.repository.get(USERS, uid) if uid else None

    def upsert_session(self, identity, profile: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Merge the signed-in identity (and optional profile) into its user
        record; returns `{uid, role, org, profile}`.

        An org already assigned on the record wins over one named in the
        submitted profile.
        """
        uid = getattr(identity, "uid", None)
        if not uid:
            raise Unauthorized("idToken required")

        existing = self.get(uid) or {}
        user: Record = {**existing}
        user.update(
            id=uid,
            uid=uid,
            email=identity.email or existing.get("email"),
            name=identity.name or existing.get("name"),
            picture=identity.picture or existing.get("picture"),
            lastSeen=utc_now_iso(),
        )

        role = identity.role or existing.get("role")
        if role:
            user["role"] = role

        stored_profile = dict(existing.get("profile") or {})
        if profile:
            stored_profile.update({k: v for k, v in profile.items() if v is not None})
            user["profile"] = stored_profile

        org = existing.get("org") or stored_profile.get("org")
        if org:
            user["org"] = org

        user = User(**user).to_record()
        self.repository.upsert(USERS, user)
        return {
            "uid": uid,
            "role": user.get("role"),
            "org": user.get("org"),
            "profile": user.get("profile"),
        }

    def assign_officer(self, uid: str, org: str, email: Optional[str] = None) -> Record:
        """Grant the officer role for `org` to an existing or new user record."""
        if not uid or not org:
            raise ValidationError("uid and org are required")
        user = {**(self.get(uid) or {})}
        user.update(id=uid, uid=uid, role=OFFICER_ROLE, org=org)
        if email and not user.get("email"):
            user["email"] = email
        user = User(**user).to_record()
        self.repository.upsert(USERS, user)
        logger.info("Assigned officer role for %s to %s", org, uid)
        return user
