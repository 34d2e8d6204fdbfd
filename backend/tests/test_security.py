"""
Tests for token verification and officer scoping.
"""

from __future__ import annotations

import pytest
from jose import jwt

from campuspay.core.errors import Forbidden, Unauthorized
from campuspay.core.security import (
    Identity,
    complement_with_user,
    decode_token,
    ensure_officer_for_org,
    ensure_officer_for_ref,
    identity_from_claims,
)


def test_decode_valid_token(settings, token_factory):
    claims = decode_token(token_factory("u1", email="a@campus.edu"), settings)
    assert claims["sub"] == "u1"


@pytest.mark.parametrize("case", ["wrong-secret", "expired", "garbage", "wrong-audience"])
def test_decode_rejects_bad_tokens(settings, token_factory, case):
    token = {
        "wrong-secret": lambda: token_factory("u1", secret="wrong-secret"),
        "expired": lambda: token_factory("u1", expires_in=-60),
        "garbage": lambda: "not-a-jwt",
        "wrong-audience": lambda: jwt.encode({"sub": "u1", "aud": "someone-else"}, settings.AUTH_JWT_SECRET, algorithm="HS256"),
    }[case]()
    with pytest.raises(Unauthorized):
        decode_token(token, settings)


def test_identity_from_provider_claims():
    identity = identity_from_claims({
        "sub": "u1",
        "email": "a@campus.edu",
        "role": "authenticated",
        "app_metadata": {"role": "officer", "org": "JIECEP"},
        "user_metadata": {"full_name": "Ana Cruz", "avatar_url": "https://img/a.png"},
    })
    assert identity.uid == "u1"
    assert identity.name == "Ana Cruz"
    assert identity.picture == "https://img/a.png"
    assert identity.role == "officer"
    assert identity.org == "JIECEP"
    assert identity.is_officer


def test_provider_role_is_not_a_capability():
    identity = identity_from_claims({"sub": "u1", "role": "authenticated"})
    assert identity.role is None
    assert not identity.is_officer
    assert identity_from_claims({"sub": "u1", "role": "officer"}).is_officer


def test_user_record_complements_claims():
    identity = complement_with_user(Identity(uid="u1"), {"role": "officer", "org": "Chess Club"})
    assert identity.is_officer
    assert identity.org == "Chess Club"
    kept = complement_with_user(Identity(uid="u1", org="JIECEP"), {"org": "Chess Club"})
    assert kept.org == "JIECEP"


def test_officer_scope_by_id_or_name():
    officer = Identity(uid="o", role="officer", org="JIECEP")
    ensure_officer_for_org(officer, "org-1", "  jiecep ")
    ensure_officer_for_org(Identity(uid="o", role="officer", org="org-1"), "org-1", "Other")
    ensure_officer_for_org(Identity(uid="o", role="officer"), "org-9", "Anything")
    with pytest.raises(Forbidden):
        ensure_officer_for_org(officer, "org-2", "Chess Club")
    with pytest.raises(Forbidden):
        ensure_officer_for_org(Identity(uid="s"), "org-1", "JIECEP")


def test_unverified_identity_is_unscoped_officer():
    identity = Identity(uid="dev", org="JIECEP", unverified=True)
    assert identity.is_officer
    ensure_officer_for_org(identity, "org-2", "Chess Club")


def test_officer_scope_resolves_org_id_to_name(services):
    org = services.organizations.upsert_by_name("JIECEP")
    other = services.organizations.upsert_by_name("Chess Club")
    officer = Identity(uid="o", role="officer", org="jiecep")
    ensure_officer_for_ref(officer, services, org["id"])
    with pytest.raises(Forbidden):
        ensure_officer_for_ref(officer, services, other["id"])
    # unknown ids fall back to the plain comparison
    with pytest.raises(Forbidden):
        ensure_officer_for_ref(officer, services, "org-404")
