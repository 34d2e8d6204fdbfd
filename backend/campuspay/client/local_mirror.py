"""
local_mirror.py — Offline mirror & dashboard synchronization.

LocalMirrorRepository:
- The per-device copy of server state. Same JSON layout as the server's
  local store (it *is* a LocalFileRepository) plus a `lastUpdated` marker
  stamped on every write, so other open sessions sharing the file can tell
  when to refresh (`changed_since`).

DashboardSync:
- Read: ask the server, mirror the answer, return it. When the server is
  unreachable, answer from the mirror with the same org dedupe and payment
  listing rules the server applies.
- Status changes go to the server. A server without unapprove support
  (404/405/501) gets a local-only advisory change instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from campuspay.client.api_client import ApiError, CampusPayClient, ServerUnavailable
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.services.organizations import dedupe_organizations
from campuspay.services.payments import build_listing
from campuspay.stores.base import EVENTS, ORGANIZATIONS, PAYMENTS
from campuspay.stores.local_file import LocalFileRepository
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)

LAST_UPDATED_KEY = "lastUpdated"
UNSUPPORTED_STATUS_CODES = (404, 405, 501)


class LocalMirrorRepository(LocalFileRepository):
    def save(self, data: Dict[str, Any]) -> None:
        data[LAST_UPDATED_KEY] = utc_now_iso()
        super().save(data)

    def last_updated(self) -> Optional[str]:
        return self.load().get(LAST_UPDATED_KEY)

    def changed_since(self, marker: Optional[str]) -> bool:
        """True when the mirror was written after `marker` (None: ever written)."""
        current = self.last_updated()
        if current is None:
            return False
        return marker is None or current > marker


@dataclass
class StatusChange:
    payment: Dict[str, Any]
    local_only: bool = False


class DashboardSync:
    def __init__(self, client: CampusPayClient, mirror: LocalMirrorRepository):
        self.client = client
        self.mirror = mirror

    def organizations(self) -> List[Dict[str, Any]]:
        try:
            orgs = self.client.list_orgs()
        except ServerUnavailable:
            logger.info("Server unreachable; organizations from local mirror")
            return dedupe_organizations(self.mirror.read(ORGANIZATIONS))
        self.mirror.replace_all(ORGANIZATIONS, orgs)
        return orgs

    def events(self, org: Optional[str] = None, org_id: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            events = self.client.list_events(org=org, org_id=org_id)
        except ServerUnavailable:
            logger.info("Server unreachable; events from local mirror")
            if org_id:
                return self.mirror.read(EVENTS, {"orgId": org_id})
            canon = canonicalize(org)
            cached = self.mirror.read(EVENTS)
            return [e for e in cached if canonicalize(e.get("org")) == canon] if canon else cached

        if org or org_id:
            self._merge(EVENTS, events)
        else:
            self.mirror.replace_all(EVENTS, events)
        return events

    def payments(
        self,
        event_id: Optional[str] = None,
        years: Optional[Iterable[str]] = None,
        blocks: Optional[Iterable[str]] = None,
    ) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        years = list(years) if years is not None else None
        blocks = list(blocks) if blocks is not None else None
        # empty filter values count as not supplied, as on the server
        filtered = bool(event_id or years or blocks)
        try:
            result = self.client.list_payments(event_id, years, blocks)
        except ServerUnavailable:
            logger.info("Server unreachable; payments from local mirror")
            if not filtered:
                return self.mirror.read(PAYMENTS)
            baseline = self.mirror.read(PAYMENTS, {"eventId": event_id} if event_id else None)
            return build_listing(baseline, years, blocks)

        if isinstance(result, dict):
            self._merge(PAYMENTS, result.get("payments") or [])
        else:
            self.mirror.replace_all(PAYMENTS, result)
        return result

    def set_status(self, payment_id: str, status: str, reason: Optional[str] = None) -> StatusChange:
        """
        Move a payment to `status` ("approved", "pending" or "rejected").

        Returns the payment and whether the change only exists locally.
        """
        status = status.strip().lower()
        if status == "approved":
            payment = self.client.approve(payment_id)
        elif status == "rejected":
            payment = self.client.reject(payment_id, reason)
        elif status == "pending":
            try:
                payment = self.client.unapprove(payment_id)
            except ApiError as e:
                if e.status_code not in UNSUPPORTED_STATUS_CODES:
                    raise
                logger.warning("Server cannot unapprove %s (HTTP %s); changing local mirror only", payment_id, e.status_code)
                return StatusChange(payment=self._unapprove_locally(payment_id), local_only=True)
        else:
            raise ValueError(f"Unknown payment status: {status}")

        self.mirror.upsert(PAYMENTS, payment)
        return StatusChange(payment=payment)

    def _unapprove_locally(self, payment_id: str) -> Dict[str, Any]:
        payment = dict(self.mirror.get(PAYMENTS, payment_id) or {"id": payment_id})
        payment["status"] = "pending"
        for key in ("approvedAt", "approvedBy", "verifiedBy", "rejectedAt", "rejectionReason"):
            payment.pop(key, None)
        payment["localOnly"] = True
        self.mirror.upsert(PAYMENTS, payment)
        return payment

    def _merge(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """Upsert a partial server answer into the mirror in one write."""
        data = self.mirror.load()
        items = data[collection]
        position = {r.get("id"): i for i, r in enumerate(items) if isinstance(r, dict)}
        fresh = []
        for record in records:
            if not record.get("id"):
                continue
            if record["id"] in position:
                items[position[record["id"]]] = record
            else:
                fresh.append(record)
        data[collection] = fresh + items
        self.mirror.save(data)
