"""
payments.py — Payments intake & review pipeline

Purpose:
- Accept a submission (amount, reference, proof image, event/org reference,
  submitter identity), store the proof blob, persist the payment as pending.
- Review transitions, enforced here:

      pending  --approve-->   approved   (repeat: refreshes approvedAt)
      approved --unapprove--> pending    (clears approval/rejection metadata)
      pending  --reject-->    rejected   (terminal; repeat is a no-op)

  Anything else raises InvalidTransition.
- Listing with event scope, student year/block filters and headline stats.
- Proof URLs minted on demand for the submitter or an officer.

Key Notes:
- Headline totals are computed over the event-scoped baseline; year/block
  filters narrow only the returned rows, never the totals.
- Duplicate submissions (same submitter, event and amount among open rows)
  are always logged and refused only when REJECT_DUPLICATE_SUBMISSIONS is on.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from campuspay.core.errors import (
    DuplicateSubmission,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from campuspay.core.logging import get_logger
from campuspay.models.base import utc_now_iso
from campuspay.models.payment import Payment, PaymentStatus
from campuspay.services.events import EventRegistry
from campuspay.services.organizations import OrganizationRegistry
from campuspay.stores.base import PAYMENTS, Record, Repository
from campuspay.stores.objects import DEFAULT_URL_TTL, FallbackObjectStorage, Upload, extension_for
from campuspay.utils.text import normalize_filter_value

logger = get_logger(__name__)

PENDING = PaymentStatus.PENDING.value
APPROVED = PaymentStatus.APPROVED.value
REJECTED = PaymentStatus.REJECTED.value

# Accepted client spellings, first non-empty wins
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "reference": ("reference", "referenceNumber", "ref"),
    "orgId": ("orgId", "org_id"),
    "org": ("org",),
    "eventId": ("eventId", "event_id"),
    "event": ("event",),
    "studentName": ("studentName", "student_name"),
    "studentYear": ("studentYear", "student_year"),
    "studentCollege": ("studentCollege", "student_college"),
    "studentDepartment": ("studentDepartment", "student_department"),
    "studentProgram": ("studentProgram", "student_program"),
    "studentBlock": ("studentBlock", "student_block", "block"),
    "submittedByEmail": ("submittedByEmail",),
}


def pick(fields: Dict[str, Any], key: str) -> Optional[str]:
    for alias in FIELD_ALIASES.get(key, (key,)):
        value = fields.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def parse_amount(value: Any) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("name and amount are required")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("amount must be a number")
    if amount != amount or amount <= 0:
        raise ValidationError("amount must be greater than zero")
    return amount


def _status(payment: Record) -> str:
    return str(payment.get("status") or "").strip().lower()


def submitter_key(payment: Record) -> str:
    """Identity used to count distinct payers: uid, email, student name, else reference:amount."""
    return (
        payment.get("submittedByUid")
        or payment.get("submittedByEmail")
        or payment.get("studentName")
        or f"{payment.get('reference') or ''}:{payment.get('amount') or ''}"
    )


def summarize_payments(payments: Iterable[Record]) -> Dict[str, Any]:
    """
    Headline figures for a payment set.

    totalCount/totalAmount cover every row; approvedCount/totalReceived only
    approved rows; paidCount counts distinct submitters, not rows.
    """
    total_count = 0
    approved_count = 0
    total_amount = 0.0
    total_received = 0.0
    payers = set()
    for p in payments:
        amount = _as_float(p.get("amount"))
        total_count += 1
        total_amount += amount
        payers.add(submitter_key(p))
        if _status(p) == APPROVED:
            approved_count += 1
            total_received += amount
    return {
        "totalCount": total_count,
        "approvedCount": approved_count,
        "totalAmount": total_amount,
        "paidCount": len(payers),
        "totalReceived": total_received,
    }


def available_filters(payments: Iterable[Record]) -> Dict[str, List[str]]:
    years = set()
    blocks = set()
    for p in payments:
        year = str(p.get("studentYear") or p.get("year") or "").strip()
        block = str(p.get("studentBlock") or p.get("block") or "").strip()
        if year:
            years.add(year)
        if block:
            blocks.add(block)
    return {"years": sorted(years), "blocks": sorted(blocks)}


def build_listing(
    baseline: List[Record],
    years: Optional[Iterable[str]] = None,
    blocks: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    `{payments, totals, availableFilters}` for an event-scoped baseline.

    Year/block filters narrow `payments` only; totals and available
    filters always describe the whole baseline.
    """
    wanted_years = _normalized_set(years)
    wanted_blocks = _normalized_set(blocks)

    def keep(p: Record) -> bool:
        if wanted_years and normalize_filter_value(p.get("studentYear") or p.get("year")) not in wanted_years:
            return False
        if wanted_blocks and normalize_filter_value(p.get("studentBlock") or p.get("block")) not in wanted_blocks:
            return False
        return True

    return {
        "payments": [p for p in baseline if keep(p)],
        "totals": summarize_payments(baseline),
        "availableFilters": available_filters(baseline),
    }


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _normalized_set(values: Optional[Iterable[str]]) -> set:
    return {normalize_filter_value(v) for v in (values or []) if normalize_filter_value(v)}


class PaymentService:
    def __init__(
        self,
        repository: Repository,
        objects: FallbackObjectStorage,
        organizations: OrganizationRegistry,
        events: EventRegistry,
        url_ttl: int = DEFAULT_URL_TTL,
        reject_duplicates: bool = False,
    ):
        self.repository = repository
        self.objects = objects
        self.organizations = organizations
        self.events = events
        self.url_ttl = url_ttl
        self.reject_duplicates = reject_duplicates

    # ------------------------------------------------------------------ #
    # Intake
    def submit(self, fields: Dict[str, Any], identity=None, proof: Optional[Upload] = None) -> Record:
        """
        Validate, resolve references, store the proof, persist as pending.

        Nothing is stored (blob or record) when validation fails.
        """
        name = str(fields.get("name") or "").strip()
        if not name:
            raise ValidationError("name and amount are required")
        amount = parse_amount(fields.get("amount"))

        org_id, org_name = pick(fields, "orgId"), pick(fields, "org")
        event_id, event_name = pick(fields, "eventId"), pick(fields, "event")
        if not (event_id or event_name):
            raise ValidationError("event or eventId is required")

        event = self.events.find(event_id) if event_id else None
        if event is None and event_name:
            event = self.events.find_by_name(event_name, org_id, org_name)
        if event is not None:
            event_id = event_id or event.get("id")
            event_name = event_name or event.get("name")
            org_id = org_id or event.get("orgId")
            org_name = org_name or event.get("org")
        if not (org_id or org_name):
            raise ValidationError("org or orgId is required")

        org = self.organizations.get_by_id(org_id) if org_id else None
        if org is not None:
            org_id = org["id"]
            org_name = org_name or org.get("name")
        elif org_name:
            org = self.organizations.upsert_by_name(org_name, display_name=org_name)
            org_id = org_id or org["id"]

        uid = getattr(identity, "uid", None)
        email = getattr(identity, "email", None) or pick(fields, "submittedByEmail")
        student_name = pick(fields, "studentName") or getattr(identity, "name", None)

        self._check_duplicate(uid, email, event_id, event_name, amount)

        proof_path = None
        proof_is_local = False
        if proof is not None and proof.data:
            ext = extension_for(proof.filename, proof.content_type)
            suggested = f"proofs/{uid or 'anon'}/{int(time.time() * 1000)}-{uuid.uuid4()}{ext}"
            stored = self.objects.store(proof.data, suggested, proof.content_type)
            proof_path, proof_is_local = stored.path, stored.is_local

        payment = Payment(
            id=str(uuid.uuid4()),
            name=name,
            amount=amount,
            purpose=pick(fields, "purpose"),
            orgId=org_id,
            org=org_name,
            eventId=event_id,
            event=event_name,
            reference=pick(fields, "reference"),
            proofObjectPath=proof_path,
            proofObjectIsLocal=proof_is_local,
            status=PENDING,
            notes=fields.get("notes") or "",
            studentName=student_name,
            studentYear=pick(fields, "studentYear"),
            studentCollege=pick(fields, "studentCollege"),
            studentDepartment=pick(fields, "studentDepartment"),
            studentProgram=pick(fields, "studentProgram"),
            studentBlock=pick(fields, "studentBlock"),
            submittedByUid=uid,
            submittedByEmail=email,
            createdAt=utc_now_iso(),
        ).to_record()

        self.repository.upsert(PAYMENTS, payment)
        logger.info(
            "Payment created id=%s orgId=%s eventId=%s reference=%s",
            payment["id"], payment["orgId"], payment["eventId"], payment["reference"],
        )
        return payment

    def _check_duplicate(self, uid, email, event_id, event_name, amount: float) -> None:
        if not (uid or email):
            return
        for p in self.repository.read(PAYMENTS):
            if _status(p) not in (PENDING, APPROVED):
                continue
            same_submitter = (uid and p.get("submittedByUid") == uid) or (email and p.get("submittedByEmail") == email)
            same_event = (event_id and p.get("eventId") == event_id) or (
                not event_id and event_name and p.get("event") == event_name
            )
            if same_submitter and same_event and _as_float(p.get("amount")) == amount:
                logger.warning(
                    "Possible duplicate submission by %s for event %s (existing payment %s)",
                    uid or email, event_id or event_name, p.get("id"),
                )
                if self.reject_duplicates:
                    raise DuplicateSubmission()
                return

    # ------------------------------------------------------------------ #
    # Reads
    def get(self, payment_id: str) -> Record:
        payment = self.repository.get(PAYMENTS, payment_id) if payment_id else None
        if payment is None:
            raise NotFound("payment not found")
        return payment

    def list(
        self,
        event_id: Optional[str] = None,
        years: Optional[List[str]] = None,
        blocks: Optional[List[str]] = None,
    ) -> Union[List[Record], Dict[str, Any]]:
        """
        All payments (legacy array) when no filter is given at all;
        otherwise `{payments, totals, availableFilters}`.

        `None` means "filter not supplied"; an empty list is a supplied but
        empty filter (rich shape, no narrowing).
        """
        if event_id is None and years is None and blocks is None:
            return self.repository.read(PAYMENTS)
        baseline = self.repository.read(PAYMENTS, {"eventId": event_id} if event_id else None)
        return build_listing(baseline, years, blocks)

    def list_for_submitter(self, identity) -> List[Record]:
        uid = getattr(identity, "uid", None)
        email = getattr(identity, "email", None)
        if not (uid or email):
            return []
        return [
            p for p in self.repository.read(PAYMENTS)
            if (uid and p.get("submittedByUid") == uid) or (email and p.get("submittedByEmail") == email)
        ]

    def get_proof_url(self, payment_id: str, identity) -> Dict[str, Any]:
        """
        `{url, expiresIn, local}` for the payment's proof.

        Only the submitter (uid or email) or an officer may ask; everyone
        else gets a bare Forbidden.
        """
        payment = self.get(payment_id)
        uid = getattr(identity, "uid", None)
        email = getattr(identity, "email", None)
        is_submitter = (uid and payment.get("submittedByUid") == uid) or (
            email and payment.get("submittedByEmail") == email
        )
        if not (is_submitter or getattr(identity, "is_officer", False)):
            raise Forbidden()

        object_path = payment.get("proofObjectPath")
        if not object_path:
            raise NotFound("payment has no proof")
        resolved = self.objects.resolve_url(object_path, bool(payment.get("proofObjectIsLocal")), self.url_ttl)
        return resolved.to_dict()

    # ------------------------------------------------------------------ #
    # Review
    def approve(self, payment_id: str, identity=None) -> Record:
        payment = self.get(payment_id)
        if _status(payment) == REJECTED:
            raise InvalidTransition("a rejected payment cannot be approved")
        payment["status"] = APPROVED
        payment["approvedAt"] = utc_now_iso()
        payment["approvedBy"] = _actor(identity)
        self.repository.upsert(PAYMENTS, payment)
        logger.info("Payment %s approved by %s", payment_id, payment["approvedBy"])
        return payment

    def unapprove(self, payment_id: str, identity=None) -> Record:
        payment = self.get(payment_id)
        if _status(payment) == REJECTED:
            raise InvalidTransition("a rejected payment cannot be unapproved")
        payment["status"] = PENDING
        for key in ("approvedAt", "approvedBy", "verifiedBy", "rejectedAt", "rejectionReason"):
            payment.pop(key, None)
        self.repository.upsert(PAYMENTS, payment)
        logger.info("Payment %s returned to pending by %s", payment_id, _actor(identity))
        return payment

    def reject(self, payment_id: str, identity=None, reason: Optional[str] = None) -> Record:
        payment = self.get(payment_id)
        status = _status(payment)
        if status == REJECTED:
            return payment
        if status == APPROVED:
            raise InvalidTransition("unapprove the payment before rejecting it")
        payment["status"] = REJECTED
        payment["rejectedAt"] = utc_now_iso()
        if reason:
            payment["rejectionReason"] = reason
        self.repository.upsert(PAYMENTS, payment)
        logger.info("Payment %s rejected by %s", payment_id, _actor(identity))
        return payment


def _actor(identity) -> Optional[str]:
    if identity is None:
        return None
    return getattr(identity, "email", None) or getattr(identity, "uid", None)
