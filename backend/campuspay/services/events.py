"""
events.py — Events registry

Purpose:
- CRUD for events owned by an organization.
- Keep `orgId` (the reference) and `org` (display copy) together on write.
- Store the receiver QR code at a fixed object slot per event
  (`events/receiver_qr/<eventId><ext>`) so replacing it never leaves stale
  objects behind.

Inputs arrive as plain dicts (JSON body or multipart form fields); numbers may
arrive as strings and `receiver` may arrive as a JSON string.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

from campuspay.core.errors import NotFound, ValidationError
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.models.event import DEFAULT_EVENT_STATUS, Event
from campuspay.services.organizations import OrganizationRegistry
from campuspay.stores.base import EVENTS, Record, Repository
from campuspay.stores.objects import DEFAULT_URL_TTL, FallbackObjectStorage, Upload, extension_for
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)

QR_SLOT_PREFIX = "events/receiver_qr"
UPDATABLE_FIELDS = ("name", "fee", "deadline", "status")


def parse_fee(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        fee = float(value)
    except (TypeError, ValueError):
        raise ValidationError("fee must be a number")
    if fee < 0:
        raise ValidationError("fee must not be negative")
    return fee


def parse_receiver(value: Any) -> Dict[str, Any]:
    """Receiver sub-object from a dict or a JSON string (multipart forms)."""
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError("receiver must be a JSON object")
        if isinstance(parsed, dict):
            return parsed
    raise ValidationError("receiver must be a JSON object")


class EventRegistry:
    def __init__(
        self,
        repository: Repository,
        objects: FallbackObjectStorage,
        organizations: OrganizationRegistry,
        url_ttl: int = DEFAULT_URL_TTL,
    ):
        self.repository = repository
        self.objects = objects
        self.organizations = organizations
        self.url_ttl = url_ttl

    # ------------------------------------------------------------------ #
    # Reads
    def get(self, event_id: str) -> Record:
        event = self.repository.get(EVENTS, event_id) if event_id else None
        if event is None:
            raise NotFound("event not found")
        return event

    def find(self, event_id: Optional[str]) -> Optional[Record]:
        return self.repository.get(EVENTS, event_id) if event_id else None

    def list_by_org(self, org_id: Optional[str] = None, org_name: Optional[str] = None) -> List[Record]:
        """
        Events of one organization.

        `org_id` is authoritative whenever given; only without it are events
        matched on their display `org` (canonically).
        """
        if org_id:
            return self.repository.read(EVENTS, {"orgId": org_id})
        events = self.repository.read(EVENTS)
        canon = canonicalize(org_name)
        if not canon:
            return events
        return [e for e in events if canonicalize(e.get("org")) == canon]

    def find_by_name(self, name: Any, org_id: Optional[str] = None, org_name: Optional[str] = None) -> Optional[Record]:
        """Event with this display name, within the given org when one is known."""
        target = canonicalize(name)
        if not target:
            return None
        for event in self.list_by_org(org_id, org_name):
            if canonicalize(event.get("name")) == target:
                return event
        return None

    def get_qr_url(self, event_id: str) -> Dict[str, Any]:
        """
        `{url, expiresIn, local}` for the event's receiver QR.

        Object pointers go through storage resolution; an inline image
        (`data:` URL) is returned unchanged.
        """
        receiver = self.get(event_id).get("receiver") or {}
        object_path = receiver.get("qrObjectPath")
        if object_path:
            resolved = self.objects.resolve_url(object_path, bool(receiver.get("qrObjectIsLocal")), self.url_ttl)
            return resolved.to_dict()
        inline = receiver.get("qr")
        if inline:
            return {"url": inline, "expiresIn": None, "local": True}
        raise NotFound("event has no QR code")

    # ------------------------------------------------------------------ #
    # Writes
    def create(self, fields: Dict[str, Any], qr: Optional[Upload] = None) -> Record:
        name = str(fields.get("name") or "").strip()
        org_name = fields.get("org")
        org_id = fields.get("orgId")
        if not name or not (org_name or org_id):
            raise ValidationError("name and org or orgId are required")
        fee = parse_fee(fields.get("fee"))
        receiver = parse_receiver(fields.get("receiver"))

        org = self.organizations.resolve(org_id, org_name)
        event = Event(
            id=str(uuid.uuid4()),
            name=name,
            fee=fee,
            deadline=fields.get("deadline") or None,
            status=fields.get("status") or DEFAULT_EVENT_STATUS,
            orgId=org["id"] if org else org_id,
            org=org["name"] if org else (org_name or ""),
            receiver=receiver,
            createdAt=utc_now_iso(),
        ).to_record()
        event.pop("updatedAt", None)

        if qr is not None and qr.data:
            self._store_qr(event, qr)

        self.repository.upsert(EVENTS, event)
        logger.info("Created event %s (%s) for org %s", event["name"], event["id"], event["orgId"])
        return event

    def update(self, event_id: str, fields: Dict[str, Any], qr: Optional[Upload] = None) -> Record:
        """Partial update; omitted fields stay as they are."""
        event = self.get(event_id)

        if fields.get("orgId") or fields.get("org"):
            org = self.organizations.resolve(fields.get("orgId"), fields.get("org"))
            if org is not None:
                event["orgId"] = org["id"]
                event["org"] = org["name"]
            elif fields.get("org"):
                event["org"] = fields["org"]

        for key in UPDATABLE_FIELDS:
            if key not in fields or fields[key] is None:
                continue
            if key == "fee":
                event["fee"] = parse_fee(fields["fee"])
            elif key == "name":
                name = str(fields["name"]).strip()
                if not name:
                    raise ValidationError("name must not be empty")
                event["name"] = name
            else:
                event[key] = fields[key]

        if fields.get("receiver") is not None:
            receiver = dict(event.get("receiver") or {})
            receiver.update(parse_receiver(fields["receiver"]))
            event["receiver"] = receiver

        if qr is not None and qr.data:
            self._store_qr(event, qr)

        event["updatedAt"] = utc_now_iso()
        self.repository.upsert(EVENTS, event)
        return event

    def delete(self, event_id: str) -> Dict[str, Any]:
        """Remove the event; its payments keep their eventId."""
        if not self.repository.delete(EVENTS, event_id):
            raise NotFound("event not found")
        logger.info("Deleted event %s", event_id)
        return {"ok": True, "id": event_id}

    def _store_qr(self, event: Record, qr: Upload) -> None:
        ext = extension_for(qr.filename, qr.content_type) or ".png"
        slot = f"{QR_SLOT_PREFIX}/{event['id']}{ext}"
        stored = self.objects.store(qr.data, slot, qr.content_type, overwrite=True)
        receiver = dict(event.get("receiver") or {})
        receiver.pop("qr", None)
        receiver["qrObjectPath"] = stored.path
        receiver["qrObjectIsLocal"] = stored.is_local
        event["receiver"] = receiver
