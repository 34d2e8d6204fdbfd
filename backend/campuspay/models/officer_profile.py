"""
officer_profile.py — Officer profile document.

One profile per organization key: the orgId when known, otherwise the
canonical organization name. Everything besides the key fields is free-form
(name parts, designation, year, college, department, program, photoURL, ...).
"""

from __future__ import annotations

from typing import Optional

from campuspay.models.base import Document


class OfficerProfile(Document):
    id: str
    orgKey: str
    org: Optional[str] = ""
    orgId: Optional[str] = None
    updatedAt: Optional[str] = None
