"""
security.py — Bearer-token verification & request identity

Purpose:
- Verify access tokens issued by the external identity provider
  (HS256 JWTs signed with AUTH_JWT_SECRET, `aud` = AUTH_JWT_AUDIENCE).
- Turn verified claims into an `Identity` and complement it with the stored
  user record (role/org written by scripts/set_officer_roles.py).
- Provide FastAPI dependencies for optional, required and officer identity.

Claims read:
- `sub` → uid, `email`, `name` or `user_metadata.full_name`, `picture` or
  `user_metadata.avatar_url`
- role: `app_metadata.role`, else a top-level custom `role` claim (the
  provider's own "authenticated"/"anon" values are not roles)
- org: `app_metadata.org`, else `org`

Development posture:
- With no AUTH_JWT_SECRET, tokens are not verified. Claims of a presented
  token are still read (unverified) so submissions stay attributable, and
  every request holds officer capability. main.py logs a warning at startup.

This module does NOT:
- Issue tokens (the identity provider does).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from jose import JWTError, jwt

from campuspay.core.config import Settings
from campuspay.core.database import Services, get_services
from campuspay.core.errors import Forbidden, Unauthorized
from campuspay.core.logging import get_logger
from campuspay.models.user import OFFICER_ROLE
from campuspay.utils.text import canonicalize

logger = get_logger(__name__)

_PROVIDER_ROLES = {"authenticated", "anon", "service_role"}


@dataclass
class Identity:
    uid: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    role: Optional[str] = None
    org: Optional[str] = None
    unverified: bool = False
    claims: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_officer(self) -> bool:
        return self.unverified or (self.role or "").lower() == OFFICER_ROLE

    @property
    def is_anonymous(self) -> bool:
        return not self.uid and not self.email


# -----------------------------------------------------------------------------
# Token Handling
# -----------------------------------------------------------------------------

def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Verify signature, expiry and audience; return the claims.

    Raises:
        Unauthorized: token is malformed, expired or signed with another key.
    """
    audience = settings.AUTH_JWT_AUDIENCE or None
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=settings.AUTH_JWT_ALGORITHMS,
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise Unauthorized() from e


def identity_from_claims(claims: Dict[str, Any], unverified: bool = False) -> Identity:
    app_meta = claims.get("app_metadata") or {}
    user_meta = claims.get("user_metadata") or {}

    role = app_meta.get("role")
    if not role and claims.get("role") not in _PROVIDER_ROLES:
        role = claims.get("role")

    return Identity(
        uid=claims.get("sub") or claims.get("uid"),
        email=claims.get("email"),
        name=claims.get("name") or user_meta.get("full_name") or user_meta.get("name"),
        picture=claims.get("picture") or user_meta.get("avatar_url"),
        role=role,
        org=app_meta.get("org") or claims.get("org"),
        unverified=unverified,
        claims=claims,
    )


def complement_with_user(identity: Identity, user: Optional[Dict[str, Any]]) -> Identity:
    """Fill role/org missing from the claims with the stored user record's."""
    if user:
        identity.role = identity.role or user.get("role")
        identity.org = identity.org or user.get("org")
    return identity


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# -----------------------------------------------------------------------------
# FastAPI Dependencies
# -----------------------------------------------------------------------------

def get_optional_identity(
    request: Request,
    services: Services = Depends(get_services),
) -> Optional[Identity]:
    """
    Identity of the caller, or None when no bearer token was presented.

    An invalid token is an error (401), not an anonymous request.
    """
    settings = services.settings
    token = bearer_token(request)

    if not settings.auth_enabled:
        claims: Dict[str, Any] = {}
        if token:
            try:
                claims = jwt.get_unverified_claims(token)
            except JWTError:
                logger.debug("Ignoring unparseable token (auth disabled)")
        return identity_from_claims(claims, unverified=True)

    if not token:
        return None
    identity = identity_from_claims(decode_token(token, settings))
    if identity.uid:
        complement_with_user(identity, services.users.get(identity.uid))
    return identity


def require_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise Unauthorized("Missing Authorization header")
    return identity


def require_officer(identity: Identity = Depends(require_identity)) -> Identity:
    if not identity.is_officer:
        raise Forbidden()
    return identity


def ensure_officer_for_org(identity: Identity, org_id: Optional[str], org_name: Optional[str] = None) -> None:
    """
    Officers assigned to an org may only act on that org's records.

    `identity.org` may hold an org id or an org name (the role script stores
    names); either form matches.
    """
    if not identity.is_officer:
        raise Forbidden()
    assigned = identity.org
    if not assigned or identity.unverified:
        return
    if not org_id and not org_name:
        return
    if org_id and assigned == org_id:
        return
    if org_name and canonicalize(assigned) == canonicalize(org_name):
        return
    raise Forbidden()


def ensure_officer_for_ref(
    identity: Identity,
    services: Services,
    org_id: Optional[str],
    org_name: Optional[str] = None,
) -> None:
    """
    `ensure_officer_for_org` against the organization a request or record
    references. The reference is resolved first, so an officer assigned by
    name is matched even when only an orgId is given (and vice versa).
    """
    org = services.organizations.resolve(org_id, org_name, create=False)
    if org is not None:
        org_id = org["id"]
        org_name = org.get("name") or org_name
    ensure_officer_for_org(identity, org_id, org_name)
