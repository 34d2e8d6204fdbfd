"""
Tests for the organizations registry.

Verifies:
- upsert-by-name identity (same canonical name → same id)
- attribute merge never overwrites populated fields
- read-time dedupe of write-side duplicates
- rename collisions and legacy name lookups
"""

from __future__ import annotations

import pytest

from campuspay.core.errors import NotFound, ValidationError
from campuspay.services.organizations import dedupe_organizations
from campuspay.stores.base import ORGANIZATIONS


def test_upsert_by_name_is_idempotent_on_identity(services):
    orgs = services.organizations
    first = orgs.upsert_by_name("JIECEP")
    second = orgs.upsert_by_name("  jiecep  ")
    third = orgs.upsert_by_name("Jiécep")
    assert first["id"] == second["id"] == third["id"]
    assert first["canonicalName"] == "jiecep"
    assert len(services.repository.read(ORGANIZATIONS)) == 1


def test_upsert_merges_only_missing_attributes(services):
    orgs = services.organizations
    org = orgs.upsert_by_name("Chess Club", contact_email="chess@campus.edu")
    merged = orgs.upsert_by_name("chess club", contact_email="other@campus.edu", logo_url="/logo.png")
    assert merged["id"] == org["id"]
    assert merged["contactEmail"] == "chess@campus.edu"
    assert merged["logoUrl"] == "/logo.png"
    assert merged["updatedAt"]


def test_upsert_requires_a_name(services):
    with pytest.raises(ValidationError):
        services.organizations.upsert_by_name("   ")


def test_list_all_dedupes_write_side_duplicates(services):
    repo = services.repository
    repo.upsert(ORGANIZATIONS, {"id": "b", "name": "  jiecep ", "createdAt": "2024-02-01T00:00:00+00:00"})
    repo.upsert(ORGANIZATIONS, {
        "id": "a", "name": "JIECEP", "displayName": "JIECEP", "logoUrl": "/a.png",
        "createdAt": "2024-03-01T00:00:00+00:00",
    })
    listed = services.organizations.list_all()
    assert len(listed) == 1
    org = listed[0]
    assert org["id"] == "a"  # newest-first on disk, first seen wins
    assert org["canonicalName"] == "jiecep"
    assert org["logoUrl"] == "/a.png"
    assert org["createdAt"] == "2024-02-01T00:00:00+00:00"


def test_dedupe_prefers_expressive_display_name():
    merged = dedupe_organizations([
        {"id": "1", "name": "CSS", "displayName": "CSS"},
        {"id": "2", "name": "css", "displayName": "Computer Science Society"},
    ])
    assert merged[0]["id"] == "1"
    assert merged[0]["displayName"] == "Computer Science Society"


def test_resolve_creates_on_first_reference(services):
    orgs = services.organizations
    created = orgs.resolve(org_name="Drama Guild")
    assert created is not None
    assert orgs.resolve(org_id=created["id"])["id"] == created["id"]
    assert orgs.resolve(org_name="drama guild", create=False)["id"] == created["id"]
    assert orgs.resolve(org_name="Unknown", create=False) is None
    assert orgs.resolve() is None


def test_get_by_id_accepts_legacy_name(services):
    org = services.organizations.upsert_by_name("Math Circle")
    assert services.organizations.get_by_id("math circle")["id"] == org["id"]
    assert services.organizations.get_by_id("nope") is None


def test_rename_refreshes_canonical_name_and_rejects_collisions(services):
    orgs = services.organizations
    a = orgs.upsert_by_name("Alpha")
    orgs.upsert_by_name("Beta")

    renamed = orgs.update(a["id"], {"name": "Alpha Prime"})
    assert renamed["canonicalName"] == "alpha prime"

    with pytest.raises(ValidationError):
        orgs.update(a["id"], {"name": " BETA "})


def test_delete_does_not_cascade(services):
    org = services.organizations.upsert_by_name("Temp Org")
    event = services.events.create({"name": "Meetup", "orgId": org["id"]})
    assert services.organizations.delete(org["id"]) == {"ok": True, "id": org["id"]}
    assert services.events.get(event["id"])["orgId"] == org["id"]
    with pytest.raises(NotFound):
        services.organizations.delete(org["id"])
