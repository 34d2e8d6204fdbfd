"""
events.py — Event endpoints

Writes accept JSON or multipart (`receiverQR` file, `receiver` as a JSON
string). Officers assigned to an org may only touch that org's events.
The form is read on the event loop; store and blob writes run in the
threadpool.
"""

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from campuspay.api.v1.forms import query_value, read_payload
from campuspay.core.database import Services, get_services
from campuspay.core.security import Identity, ensure_officer_for_ref, require_officer

router = APIRouter(prefix="/events", tags=["events"])

QR_FIELD = "receiverQR"


@router.get("")
def list_events(request: Request, services: Services = Depends(get_services)):
    """GET /api/events?org=&orgId= (orgId wins when both are given)"""
    return services.events.list_by_org(
        org_id=query_value(request, "orgId", "org_id"),
        org_name=query_value(request, "org"),
    )


@router.get("/{event_id}")
def get_event(event_id: str, services: Services = Depends(get_services)):
    return services.events.get(event_id)


@router.get("/{event_id}/qr-url")
def get_event_qr_url(event_id: str, services: Services = Depends(get_services)):
    return services.events.get_qr_url(event_id)


@router.post("")
async def create_event(
    request: Request,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    fields, qr = await read_payload(request, QR_FIELD, services.settings.MAX_UPLOAD_BYTES)

    def create():
        ensure_officer_for_ref(identity, services, fields.get("orgId"), fields.get("org"))
        return services.events.create(fields, qr)

    return await run_in_threadpool(create)


@router.put("/{event_id}")
async def update_event(
    event_id: str,
    request: Request,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    fields, qr = await read_payload(request, QR_FIELD, services.settings.MAX_UPLOAD_BYTES)

    def update():
        event = services.events.get(event_id)
        ensure_officer_for_ref(identity, services, event.get("orgId"), event.get("org"))
        if fields.get("orgId") or fields.get("org"):
            ensure_officer_for_ref(identity, services, fields.get("orgId"), fields.get("org"))
        return services.events.update(event_id, fields, qr)

    return await run_in_threadpool(update)


@router.delete("/{event_id}")
def delete_event(
    event_id: str,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    event = services.events.get(event_id)
    ensure_officer_for_ref(identity, services, event.get("orgId"), event.get("org"))
    return services.events.delete(event_id)
