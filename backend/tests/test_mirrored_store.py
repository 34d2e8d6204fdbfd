"""
Tests for the Supabase-backed store and the mirrored composite.

Verifies:
- records land in `doc` and filters push down as `doc->>field`
- reads fall back to the local mirror only when the cloud is unreachable
- an empty cloud result is authoritative
- failed mirror writes keep the local write and are logged
"""

from __future__ import annotations

import logging

import pytest

from campuspay.core.errors import UpstreamUnavailable
from campuspay.stores.base import EVENTS, PAYMENTS
from campuspay.stores.mirrored import MirroredRepository, build_repository
from campuspay.stores.local_file import LocalFileRepository
from campuspay.stores.supabase_store import SupabaseRepository


def test_supabase_repository_round_trips_documents(fake_supabase):
    repo = SupabaseRepository(fake_supabase, table_prefix="cp_")
    repo.upsert(EVENTS, {"id": "e1", "orgId": "o1", "name": "Fun Run"})
    repo.upsert(EVENTS, {"id": "e2", "orgId": "o2", "name": "Gala"})

    assert "cp_events" in fake_supabase.tables
    assert repo.get(EVENTS, "e1")["name"] == "Fun Run"
    assert [e["id"] for e in repo.read(EVENTS, {"orgId": "o2"})] == ["e2"]
    assert repo.delete(EVENTS, "e1") is True
    assert repo.get(EVENTS, "e1") is None


def test_supabase_failures_become_upstream_unavailable(fake_supabase):
    repo = SupabaseRepository(fake_supabase)
    fake_supabase.db_down = True
    with pytest.raises(UpstreamUnavailable):
        repo.read(PAYMENTS)
    with pytest.raises(UpstreamUnavailable):
        repo.upsert(PAYMENTS, {"id": "p1"})


def test_unknown_collection_is_a_programming_error(fake_supabase):
    with pytest.raises(ValueError):
        SupabaseRepository(fake_supabase).read("invoices")


@pytest.fixture
def mirrored(settings, fake_supabase):
    local = LocalFileRepository(settings.LOCAL_STORE_PATH)
    return MirroredRepository(SupabaseRepository(fake_supabase), local), local


def test_writes_go_to_both_stores(mirrored, fake_supabase):
    repo, local = mirrored
    repo.upsert(PAYMENTS, {"id": "p1", "amount": 10})
    assert local.get(PAYMENTS, "p1")["amount"] == 10
    assert fake_supabase.docs("payments") == [{"id": "p1", "amount": 10}]


def test_empty_cloud_result_does_not_fall_back(mirrored):
    repo, local = mirrored
    local.upsert(PAYMENTS, {"id": "only-local"})
    assert repo.read(PAYMENTS) == []
    assert repo.get(PAYMENTS, "only-local") is None


def test_unreachable_cloud_falls_back_to_local(mirrored, fake_supabase):
    repo, local = mirrored
    local.upsert(PAYMENTS, {"id": "only-local"})
    fake_supabase.db_down = True
    assert [p["id"] for p in repo.read(PAYMENTS)] == ["only-local"]
    assert repo.get(PAYMENTS, "only-local") == {"id": "only-local"}


def test_failed_mirror_write_keeps_local_write(mirrored, fake_supabase, caplog):
    repo, local = mirrored
    fake_supabase.db_down = True
    with caplog.at_level(logging.ERROR):
        stored = repo.upsert(EVENTS, {"id": "e1", "name": "Gala"})
    assert stored["id"] == "e1"
    assert local.get(EVENTS, "e1")["name"] == "Gala"
    message = " ".join(r.getMessage() for r in caplog.records)
    assert "upsert" in message and "events/e1" in message


def test_local_write_failure_propagates(settings, fake_supabase, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    local = LocalFileRepository(blocker / "data.json")
    repo = MirroredRepository(SupabaseRepository(fake_supabase), local)
    with pytest.raises(OSError):
        repo.upsert(EVENTS, {"id": "e1"})
    assert fake_supabase.docs("events") == []


def test_build_repository_selects_backend(settings, fake_supabase):
    assert isinstance(build_repository(settings), LocalFileRepository)
    assert isinstance(build_repository(settings, fake_supabase), MirroredRepository)
