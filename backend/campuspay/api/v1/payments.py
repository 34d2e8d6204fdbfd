"""
payments.py — Payment intake & review endpoints

Listing (`GET /api/payments`):
- No filter value in the query → legacy plain array. A key present with an
  empty value (`?eventId=&year=`) counts as not supplied.
- A non-empty eventId/event_id, year/years or block/blocks (values may be
  comma-separated or repeated) → `{payments, totals, availableFilters}`.

Review actions require officer capability; officers assigned to an org can
only review that org's payments.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict
from starlette.concurrency import run_in_threadpool

from campuspay.api.v1.forms import query_list, query_value, read_payload
from campuspay.core.database import Services, get_services
from campuspay.core.security import Identity, ensure_officer_for_ref, require_identity, require_officer

router = APIRouter(tags=["payments"])

PROOF_FIELD = "proof"


class RejectIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reason: Optional[str] = None


@router.get("/payments")
def list_payments(request: Request, services: Services = Depends(get_services)):
    event_id = query_value(request, "eventId", "event_id")
    years = query_list(request, "year", "years")
    blocks = query_list(request, "block", "blocks")
    if not (event_id or years or blocks):
        return services.payments.list()
    return services.payments.list(event_id=event_id, years=years or [], blocks=blocks or [])


@router.get("/my-payments")
def my_payments(
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    return services.payments.list_for_submitter(identity)


@router.post("/payments")
async def submit_payment(
    request: Request,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    fields, proof = await read_payload(request, PROOF_FIELD, services.settings.MAX_UPLOAD_BYTES)
    return await run_in_threadpool(services.payments.submit, fields, identity, proof)


@router.get("/payments/{payment_id}/proof-url")
def proof_url(
    payment_id: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    return services.payments.get_proof_url(payment_id, identity)


def _reviewable(services: Services, identity: Identity, payment_id: str) -> None:
    payment = services.payments.get(payment_id)
    ensure_officer_for_ref(identity, services, payment.get("orgId"), payment.get("org"))


@router.post("/payments/{payment_id}/approve")
def approve_payment(
    payment_id: str,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    _reviewable(services, identity, payment_id)
    return services.payments.approve(payment_id, identity)


@router.post("/payments/{payment_id}/unapprove")
def unapprove_payment(
    payment_id: str,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    _reviewable(services, identity, payment_id)
    return services.payments.unapprove(payment_id, identity)


@router.post("/payments/{payment_id}/reject")
def reject_payment(
    payment_id: str,
    body: Optional[RejectIn] = Body(None),
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    _reviewable(services, identity, payment_id)
    return services.payments.reject(payment_id, identity, body.reason if body else None)
