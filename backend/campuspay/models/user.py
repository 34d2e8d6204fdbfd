"""
user.py — User document, keyed by the identity provider's uid.

Purpose:
- Remember who signed in (email, display name, picture, last seen).
- Carry the role/org assignment used to grant officer capability
  (written by scripts/set_officer_roles.py).
- Hold the student's self-reported profile.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from campuspay.models.base import Document

OFFICER_ROLE = "officer"


class User(Document):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    lastSeen: Optional[str] = None
    role: Optional[str] = None
    org: Optional[str] = None
    profile: Optional[Dict[str, Any]] = Field(default=None)

    def __repr__(self):
        return f"<User {self.email} ({self.uid})>"
