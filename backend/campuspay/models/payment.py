"""
payment.py — Payment document and its review states.

States:
    pending  --approve-->   approved
    approved --unapprove--> pending
    pending  --reject-->    rejected   (terminal)

`proofObjectPath` points into object storage and never changes after
creation; URLs for cloud-stored proofs are minted per request and never
stored.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from campuspay.models.base import Document


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Payment(Document):
    id: str
    name: str
    amount: float
    purpose: Optional[str] = None
    orgId: Optional[str] = None
    org: Optional[str] = None
    eventId: Optional[str] = None
    event: Optional[str] = None
    reference: Optional[str] = None
    proofObjectPath: Optional[str] = None
    proofObjectIsLocal: bool = False
    status: str = PaymentStatus.PENDING.value
    notes: Optional[str] = ""

    # Submitter academic metadata (officer-side filtering only)
    studentName: Optional[str] = None
    studentYear: Optional[str] = None
    studentCollege: Optional[str] = None
    studentDepartment: Optional[str] = None
    studentProgram: Optional[str] = None
    studentBlock: Optional[str] = None

    # Submitter identity from the identity provider
    submittedByUid: Optional[str] = None
    submittedByEmail: Optional[str] = None

    createdAt: Optional[str] = None
    approvedAt: Optional[str] = None
    approvedBy: Optional[str] = None
    rejectedAt: Optional[str] = None
    rejectionReason: Optional[str] = None

    @property
    def normalized_status(self) -> str:
        return str(self.status or "").strip().lower()
