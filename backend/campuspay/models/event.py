"""
event.py — Event document.

An event belongs to one Organization through `orgId`; `org` is a denormalized
display name written alongside it and is never used as a foreign key by
server logic.

`receiver` holds the payee details shown to students: `number`, `name` and the
QR code, either inline (`qr` as a data URL) or as a pointer into object
storage (`qrObjectPath` + `qrObjectIsLocal`).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from campuspay.models.base import Document

DEFAULT_EVENT_STATUS = "Open"


class Event(Document):
    id: str
    name: str
    fee: float = 0.0
    deadline: Optional[str] = None
    status: str = DEFAULT_EVENT_STATUS
    orgId: Optional[str] = None
    org: Optional[str] = None
    receiver: Dict[str, Any] = Field(default_factory=dict)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
