"""
session.py — Sign-in bookkeeping

    POST /session        → record the verified identity (and optional
                           `profile`) on its user record; returns
                           {uid, role, org, profile}
    GET  /api/my-profile → {uid, profile, role} of the caller
"""

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from campuspay.api.v1.forms import read_payload
from campuspay.core.database import Services, get_services
from campuspay.core.errors import Unauthorized, ValidationError
from campuspay.core.security import Identity, require_identity

router = APIRouter(tags=["session"])


@router.post("/session")
async def create_session(
    request: Request,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    body, _ = await read_payload(request)
    profile = body.get("profile")
    if profile is not None and not isinstance(profile, dict):
        raise ValidationError("profile must be an object")
    return await run_in_threadpool(services.users.upsert_session, identity, profile)


@router.get("/api/my-profile")
def my_profile(
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    if not identity.uid:
        raise Unauthorized("not authenticated")
    user = services.users.get(identity.uid) or {}
    return {
        "uid": identity.uid,
        "profile": user.get("profile"),
        "role": user.get("role") or identity.role,
    }
