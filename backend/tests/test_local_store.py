"""
Tests for the local JSON-file store.

Covers:
- newest-first insertion and in-place replacement
- keyed collections (officer profiles, users)
- recovery from a corrupt file (logs a warning, next write succeeds)
- backfill of missing collections
"""

from __future__ import annotations

import json
import logging

from campuspay.stores.base import EVENTS, OFFICER_PROFILES, PAYMENTS, USERS
from campuspay.stores.local_file import LocalFileRepository


def test_missing_file_reads_as_empty(local_repo):
    assert local_repo.read(PAYMENTS) == []
    assert local_repo.get(EVENTS, "nope") is None


def test_upsert_prepends_new_records_and_replaces_existing(local_repo):
    local_repo.upsert(PAYMENTS, {"id": "p1", "amount": 100})
    local_repo.upsert(PAYMENTS, {"id": "p2", "amount": 200})
    assert [p["id"] for p in local_repo.read(PAYMENTS)] == ["p2", "p1"]

    local_repo.upsert(PAYMENTS, {"id": "p1", "amount": 150})
    payments = local_repo.read(PAYMENTS)
    assert [p["id"] for p in payments] == ["p2", "p1"]
    assert local_repo.get(PAYMENTS, "p1")["amount"] == 150


def test_read_filters_on_equality(local_repo):
    local_repo.upsert(EVENTS, {"id": "e1", "orgId": "o1"})
    local_repo.upsert(EVENTS, {"id": "e2", "orgId": "o2"})
    assert [e["id"] for e in local_repo.read(EVENTS, {"orgId": "o1"})] == ["e1"]


def test_keyed_collections_are_objects_on_disk(local_repo, settings):
    local_repo.upsert(OFFICER_PROFILES, {"id": "jiecep", "designation": "President"})
    local_repo.upsert(USERS, {"id": "u1", "uid": "u1", "email": "a@b.c"})

    with open(settings.LOCAL_STORE_PATH, encoding="utf-8") as fh:
        raw = json.load(fh)
    assert raw["officerProfiles"]["jiecep"]["designation"] == "President"
    assert raw["users"]["u1"]["email"] == "a@b.c"
    assert local_repo.get(USERS, "u1")["uid"] == "u1"


def test_delete_reports_whether_anything_was_removed(local_repo):
    local_repo.upsert(EVENTS, {"id": "e1"})
    assert local_repo.delete(EVENTS, "e1") is True
    assert local_repo.delete(EVENTS, "e1") is False


def test_corrupt_file_recovers_with_warning(settings, caplog):
    """Malformed JSON reads as an empty store and the next write succeeds."""
    with open(settings.LOCAL_STORE_PATH, "w", encoding="utf-8") as fh:
        fh.write("{ not json")
    repo = LocalFileRepository(settings.LOCAL_STORE_PATH)

    with caplog.at_level(logging.WARNING):
        assert repo.read(PAYMENTS) == []
    assert any("unreadable" in r.getMessage() for r in caplog.records)

    repo.upsert(PAYMENTS, {"id": "p1", "amount": 1})
    with open(settings.LOCAL_STORE_PATH, encoding="utf-8") as fh:
        raw = json.load(fh)
    assert raw["payments"][0]["id"] == "p1"
    assert raw["organizations"] == [] and raw["officerProfiles"] == {}


def test_non_object_root_is_replaced(settings):
    with open(settings.LOCAL_STORE_PATH, "w", encoding="utf-8") as fh:
        json.dump([1, 2, 3], fh)
    repo = LocalFileRepository(settings.LOCAL_STORE_PATH)
    assert repo.load()["events"] == []


def test_missing_collections_are_backfilled(settings):
    with open(settings.LOCAL_STORE_PATH, "w", encoding="utf-8") as fh:
        json.dump({"payments": [{"id": "p1"}]}, fh)
    data = LocalFileRepository(settings.LOCAL_STORE_PATH).load()
    assert data["payments"] == [{"id": "p1"}]
    assert data["events"] == [] and data["users"] == {}


def test_replace_all(local_repo):
    local_repo.upsert(EVENTS, {"id": "old"})
    local_repo.replace_all(EVENTS, [{"id": "a"}, {"id": "b"}])
    assert [e["id"] for e in local_repo.read(EVENTS)] == ["a", "b"]

    local_repo.replace_all(USERS, [{"id": "u1", "uid": "u1"}])
    assert local_repo.get(USERS, "u1") == {"id": "u1", "uid": "u1"}
