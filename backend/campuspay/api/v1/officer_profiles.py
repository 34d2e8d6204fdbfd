"""
officer_profiles.py — Officer profile endpoints

    GET  /api/officer-profiles?org=&orgId=  → matching profiles (list)
    GET  /api/officer-profiles/{key}        → one profile (orgId or org name)
    POST /api/officer-profiles              → merge-upsert; body
         {org?, orgId?, profile: {...}} or the profile fields at the root
"""

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from campuspay.api.v1.forms import query_value, read_payload
from campuspay.core.database import Services, get_services
from campuspay.core.errors import ValidationError
from campuspay.core.security import Identity, require_identity

router = APIRouter(prefix="/officer-profiles", tags=["officer-profiles"])


@router.get("")
def list_profiles(request: Request, services: Services = Depends(get_services)):
    return services.officer_profiles.list(
        org=query_value(request, "org"),
        org_id=query_value(request, "orgId", "org_id"),
    )


@router.get("/{key}")
def get_profile(key: str, services: Services = Depends(get_services)):
    return services.officer_profiles.get(key)


@router.post("")
async def upsert_profile(
    request: Request,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    body, _ = await read_payload(request)
    profile = body.get("profile") if body.get("profile") is not None else body
    if not isinstance(profile, dict):
        raise ValidationError("profile must be an object")
    return await run_in_threadpool(services.officer_profiles.upsert, body.get("org"), body.get("orgId"), profile)
