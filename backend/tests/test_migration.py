"""
Tests for the local store migration.

Verifies:
- organizations sharing a canonical name collapse to one survivor and every
  reference is repointed to it
- legacy events/payments get orgId/eventId backfilled
- a second pass plans no further changes
- dry runs write nothing; real runs back up, rewrite and push
- per-record cloud failures are counted, not fatal
"""

from __future__ import annotations

import json

from campuspay.services.migration import MigrationOptions, plan_migration, run_migration
from campuspay.stores.base import EVENTS, OFFICER_PROFILES, ORGANIZATIONS, PAYMENTS
from campuspay.stores.local_file import LocalFileRepository, empty_store
from campuspay.stores.supabase_store import SupabaseRepository
from scripts import migrate_local_store


def legacy_store():
    data = empty_store()
    data[ORGANIZATIONS] = [
        {"id": "o1", "name": "JIECEP", "createdAt": "2024-01-01T00:00:00+00:00"},
        {"id": "o2", "name": "  jiecep  ", "logoUrl": "/jiecep.png", "createdAt": "2023-06-01T00:00:00+00:00"},
    ]
    data[EVENTS] = [
        {"id": "e1", "name": "Fest", "orgId": "o2", "org": "  jiecep  "},
        {"id": "e2", "name": "Assembly", "org": "Chess Club"},
    ]
    data[PAYMENTS] = [
        {"id": "p1", "name": "Fee", "amount": 100, "orgId": "o2", "event": "Fest", "status": "pending"},
        {"id": "p2", "name": "Fee", "amount": 100, "org": "JIECEP", "event": "fest", "status": "approved"},
        {"id": "p3", "name": "Dues", "amount": 50, "org": "Chess Club", "event": "Assembly"},
    ]
    data[OFFICER_PROFILES] = {"o2": {"orgKey": "o2", "org": "jiecep", "orgId": "o2", "gcash": "0917"}}
    return data


def test_dedupe_repoints_every_reference():
    plan = plan_migration(legacy_store(), dedupe_orgs=True)
    data = plan.data

    orgs = [o for o in data[ORGANIZATIONS] if o["canonicalName"] == "jiecep"]
    assert len(orgs) == 1
    survivor = orgs[0]
    assert survivor["id"] == "o1"
    assert survivor["logoUrl"] == "/jiecep.png"
    assert survivor["createdAt"] == "2023-06-01T00:00:00+00:00"
    assert plan.dropped_org_ids == ["o2"]

    events = {e["id"]: e for e in data[EVENTS]}
    assert events["e1"]["orgId"] == "o1"
    assert events["e1"]["org"] == "JIECEP"

    payments = {p["id"]: p for p in data[PAYMENTS]}
    assert payments["p1"]["orgId"] == "o1"
    assert payments["p1"]["eventId"] == "e1"
    assert payments["p2"]["orgId"] == "o1"
    assert payments["p2"]["eventId"] == "e1"

    assert "o2" not in data[OFFICER_PROFILES]
    assert data[OFFICER_PROFILES]["o1"]["orgId"] == "o1"
    assert data[OFFICER_PROFILES]["o1"]["gcash"] == "0917"


def test_org_found_only_on_events_is_created():
    plan = plan_migration(legacy_store())
    chess = [o for o in plan.data[ORGANIZATIONS] if o["canonicalName"] == "chess club"]
    assert len(chess) == 1
    events = {e["id"]: e for e in plan.data[EVENTS]}
    payments = {p["id"]: p for p in plan.data[PAYMENTS]}
    assert events["e2"]["orgId"] == chess[0]["id"]
    assert payments["p3"]["orgId"] == chess[0]["id"]
    assert payments["p3"]["eventId"] == "e2"
    assert plan.counts[ORGANIZATIONS].created == 1


def test_without_dedupe_duplicates_stay():
    plan = plan_migration(legacy_store())
    ids = {o["id"] for o in plan.data[ORGANIZATIONS]}
    assert {"o1", "o2"} <= ids
    assert plan.dropped_org_ids == []
    assert {e["id"]: e for e in plan.data[EVENTS]}["e1"]["orgId"] == "o2"


def test_second_pass_changes_nothing():
    first = plan_migration(legacy_store(), dedupe_orgs=True)
    second = plan_migration(first.data, dedupe_orgs=True)
    assert second.data == first.data
    for counts in second.counts.values():
        assert counts.created == 0
        assert counts.updated == 0
    assert second.dropped_org_ids == []


def test_plan_does_not_touch_input():
    data = legacy_store()
    plan_migration(data, dedupe_orgs=True)
    assert data == legacy_store()


def test_dry_run_writes_nothing(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(legacy_store()), encoding="utf-8")
    before = path.read_text(encoding="utf-8")

    report = run_migration(LocalFileRepository(path), None, MigrationOptions(dry_run=True, dedupe_orgs=True))
    assert report.plan.dropped_org_ids == ["o2"]
    assert report.backup_path is None
    assert path.read_text(encoding="utf-8") == before
    assert list(tmp_path.iterdir()) == [path]


def test_run_backs_up_rewrites_and_pushes(tmp_path, fake_supabase):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(legacy_store()), encoding="utf-8")
    fake_supabase.tables[ORGANIZATIONS] = {"o2": {"id": "o2", "doc": {"id": "o2", "name": "jiecep"}}}
    cloud = SupabaseRepository(fake_supabase)

    report = run_migration(LocalFileRepository(path), cloud, MigrationOptions(dedupe_orgs=True))

    assert report.backup_path is not None
    assert json.loads(open(report.backup_path, encoding="utf-8").read()) == legacy_store()

    local = LocalFileRepository(path)
    assert {o["id"] for o in local.read(ORGANIZATIONS)} == {o["id"] for o in report.plan.data[ORGANIZATIONS]}

    cloud_orgs = {d["id"] for d in fake_supabase.docs(ORGANIZATIONS)}
    assert "o2" not in cloud_orgs
    assert "o1" in cloud_orgs
    assert {d["id"] for d in fake_supabase.docs(PAYMENTS)} == {"p1", "p2", "p3"}
    assert report.cloud[PAYMENTS].written == 3
    assert report.cloud[ORGANIZATIONS].created == 2
    assert fake_supabase.docs(OFFICER_PROFILES)[0]["id"] == "o1"


def test_cloud_failures_are_counted(tmp_path, fake_supabase):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(legacy_store()), encoding="utf-8")
    fake_supabase.db_down = True

    report = run_migration(
        LocalFileRepository(path),
        SupabaseRepository(fake_supabase),
        MigrationOptions(backup=False),
    )
    assert report.cloud[PAYMENTS].failed == 3
    assert report.cloud[PAYMENTS].written == 0
    # the local rewrite still happened
    assert LocalFileRepository(path).get(PAYMENTS, "p2")["eventId"] == "e1"


def test_script_local_only(tmp_path, capsys):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(legacy_store()), encoding="utf-8")

    code = migrate_local_store.main(["--local-only", "--dedupe-orgs", "--no-backup", "--data-file", str(path)])
    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["droppedOrganizations"] == ["o2"]
    assert summary["cloud"] == {}
    assert [p.name for p in tmp_path.iterdir()] == ["data.json"]


def test_script_dry_run(tmp_path, capsys):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(legacy_store()), encoding="utf-8")
    before = path.read_text(encoding="utf-8")
    assert migrate_local_store.main(["--dry-run", "--data-file", str(path)]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Dry run: nothing was written.")
    assert path.read_text(encoding="utf-8") == before


def test_every_org_record_gets_canonical_name():
    plan = plan_migration(legacy_store())
    assert all(o["canonicalName"] for o in plan.data[ORGANIZATIONS])
    o2 = [o for o in plan.data[ORGANIZATIONS] if o["id"] == "o2"][0]
    assert o2["canonicalName"] == "jiecep"


def test_dedupe_drops_duplicates_without_ids():
    data = empty_store()
    data[ORGANIZATIONS] = [{"name": "JIECEP"}, {"name": "  jiecep  ", "logoUrl": "/j.png"}]
    plan = plan_migration(data, dedupe_orgs=True)
    orgs = plan.data[ORGANIZATIONS]
    assert len(orgs) == 1
    assert orgs[0]["canonicalName"] == "jiecep"
    assert orgs[0]["id"]
    assert orgs[0]["logoUrl"] == "/j.png"
    assert plan.dropped_org_ids == []


def test_dedupe_drops_duplicates_sharing_the_survivor_id():
    data = empty_store()
    data[ORGANIZATIONS] = [{"id": "O1", "name": "JIECEP"}, {"id": "O1", "name": "jiecep", "contactEmail": "j@campus.edu"}]
    plan = plan_migration(data, dedupe_orgs=True)
    orgs = plan.data[ORGANIZATIONS]
    assert len(orgs) == 1
    assert orgs[0]["id"] == "O1"
    assert orgs[0]["contactEmail"] == "j@campus.edu"
    # the shared id is the survivor's; nothing to delete in the cloud
    assert plan.dropped_org_ids == []


def test_without_dedupe_id_less_duplicates_get_their_own_ids():
    data = empty_store()
    data[ORGANIZATIONS] = [{"name": "JIECEP"}, {"name": "  jiecep  "}]
    plan = plan_migration(data)
    ids = [o["id"] for o in plan.data[ORGANIZATIONS]]
    assert len(ids) == 2
    assert len(set(ids)) == 2
    assert plan.counts[ORGANIZATIONS].updated == 2
