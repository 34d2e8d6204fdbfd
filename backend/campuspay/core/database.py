"""
database.py — Store wiring & per-request access

Purpose:
- Build the document repository and object storage selected by Settings
  (local only, or Supabase mirrored to the local file).
- Assemble the registries on top of them into one `Services` container.
- Expose a FastAPI dependency `get_services()` returning the container the
  app factory attached to `app.state`.

This module does NOT:
- Implement any business rule (see campuspay.services.*).
- Create tables or buckets; those are expected to exist in Supabase.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from campuspay.core.config import Settings
from campuspay.services.events import EventRegistry
from campuspay.services.officer_profiles import OfficerProfileRegistry
from campuspay.services.organizations import OrganizationRegistry
from campuspay.services.payments import PaymentService
from campuspay.services.users import UserRegistry
from campuspay.stores.base import Repository
from campuspay.stores.mirrored import build_repository
from campuspay.stores.objects import FallbackObjectStorage, build_object_storage


@dataclass
class Services:
    settings: Settings
    repository: Repository
    objects: FallbackObjectStorage
    organizations: OrganizationRegistry
    events: EventRegistry
    payments: PaymentService
    officer_profiles: OfficerProfileRegistry
    users: UserRegistry


def build_services(settings: Settings, supabase_client=None) -> Services:
    """
    Wire stores and registries for one app instance.

    `supabase_client` replaces the client built from SUPABASE_URL (tests pass
    a fake here).
    """
    repository = build_repository(settings, supabase_client)
    objects = build_object_storage(settings, supabase_client)
    organizations = OrganizationRegistry(repository)
    events = EventRegistry(repository, objects, organizations, url_ttl=settings.SIGNED_URL_TTL_SECONDS)
    payments = PaymentService(
        repository,
        objects,
        organizations,
        events,
        url_ttl=settings.SIGNED_URL_TTL_SECONDS,
        reject_duplicates=settings.REJECT_DUPLICATE_SUBMISSIONS,
    )
    return Services(
        settings=settings,
        repository=repository,
        objects=objects,
        organizations=organizations,
        events=events,
        payments=payments,
        officer_profiles=OfficerProfileRegistry(repository, organizations),
        users=UserRegistry(repository),
    )


# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_services(request: Request) -> Services:
    """
    FastAPI dependency: the Services container of the running app.

    Usage in API endpoint:
        def endpoint(services: Services = Depends(get_services)):
            services.payments.list(...)
    """
    services: Optional[Services] = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services are not initialized; build the app with campuspay.main.create_app()")
    return services
