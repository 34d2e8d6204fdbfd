"""
org.py — Organization document.

Purpose:
- Represent a campus organization that owns events and collects payments.
- `canonicalName` is the deduplication key (see campuspay.utils.text); at most
  one Organization exists per canonical name.

Lifecycle:
- Created on first reference (explicitly, or implicitly when an event,
  payment or officer profile names an unknown organization).
- Never auto-deleted; explicit delete leaves referencing events alone.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from campuspay.models.base import Document


class Organization(Document):
    id: str
    name: str = ""
    canonicalName: str = ""
    displayName: Optional[str] = None
    logoUrl: Optional[str] = None
    contactEmail: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default_factory=dict)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    def __repr__(self):
        return f"<Organization {self.name} ({self.id})>"
