"""
orgs.py — Organization endpoints

    GET    /api/orgs          → deduplicated list
    GET    /api/orgs/{id}     → one organization (id or legacy name)
    POST   /api/orgs          → upsert by canonical name
    PUT    /api/orgs/{id}     → officer edit (rename refreshes canonicalName)
    DELETE /api/orgs/{id}     → officer delete, no cascade
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from campuspay.core.database import Services, get_services
from campuspay.core.errors import NotFound
from campuspay.core.security import Identity, ensure_officer_for_org, require_officer

router = APIRouter(prefix="/orgs", tags=["organizations"])


# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class OrgIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    displayName: Optional[str] = None
    logoUrl: Optional[str] = None
    contactEmail: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class OrgUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    displayName: Optional[str] = None
    logoUrl: Optional[str] = None
    contactEmail: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("")
def list_orgs(services: Services = Depends(get_services)):
    return services.organizations.list_all()


@router.get("/{org_id}")
def get_org(org_id: str, services: Services = Depends(get_services)):
    org = services.organizations.get_by_id(org_id)
    if org is None:
        raise NotFound("organization not found")
    return org


@router.post("")
def create_org(body: OrgIn, services: Services = Depends(get_services)):
    return services.organizations.upsert_by_name(
        body.name,
        display_name=body.displayName,
        logo_url=body.logoUrl,
        contact_email=body.contactEmail,
        metadata=body.metadata,
    )


@router.put("/{org_id}")
def update_org(
    org_id: str,
    body: OrgUpdate,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    org = services.organizations.get_by_id(org_id)
    if org is None:
        raise NotFound("organization not found")
    ensure_officer_for_org(identity, org["id"], org.get("name"))
    return services.organizations.update(org["id"], body.model_dump(exclude_unset=True))


@router.delete("/{org_id}")
def delete_org(
    org_id: str,
    identity: Identity = Depends(require_officer),
    services: Services = Depends(get_services),
):
    org = services.organizations.get_by_id(org_id)
    if org is None:
        raise NotFound("organization not found")
    ensure_officer_for_org(identity, org["id"], org.get("name"))
    return services.organizations.delete(org["id"])
