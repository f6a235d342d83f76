"""Work-order state machine tests against a seeded record store."""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from app.core.errors import (
    ContractorNotFoundError,
    InvalidStatusTransitionError,
    ToolValidationError,
    WorkOrderNotFoundError,
)
from app.services.directory import Directory
from app.services.record_store import WORK_ORDERS, JsonRecordStore
from app.services.work_orders import WorkOrderStateMachine, normalize_work_order


LEGACY_ID = "wo-1717000000000"


def _machine(data_dir: Path) -> WorkOrderStateMachine:
    store = JsonRecordStore(data_dir)
    return WorkOrderStateMachine(store, Directory(store))


def _raw_orders(data_dir: Path) -> list[dict]:
    return json.loads((data_dir / "work_orders.json").read_text(encoding="utf-8"))


def test_create_resolves_contractor_by_exact_name(seeded_db: Path):
    machine = _machine(seeded_db)
    order = machine.create("tenant-001", "Kitchen tap dripping", "Mike's Plumbing", "Medium")

    assert order["id"].startswith("wo-")
    assert order["contractor_id"] == "contractor-001"
    assert order["contractor_name"] == "Mike's Plumbing"
    assert order["trade"] == "plumbing"
    assert order["status"] == "assigned"
    assert order["created_at"]

    listed = machine.list("tenant-001")
    assert [row["id"] for row in listed] == [order["id"]]
    assert listed[0]["status"] == "assigned"
    assert listed[0]["has_attachments"] is False


def test_create_resolves_contractor_by_id_and_substring(seeded_db: Path):
    machine = _machine(seeded_db)
    by_id = machine.create("tenant-001", "Lost key", "contractor-005", "High")
    by_fragment = machine.create("tenant-001", "Lock jammed", "keymaster", "Low")

    assert by_id["contractor_id"] == "contractor-005"
    assert by_fragment["contractor_id"] == "contractor-005"


def test_create_with_unknown_contractor_writes_nothing(seeded_db: Path):
    machine = _machine(seeded_db)
    before = _raw_orders(seeded_db)

    with pytest.raises(ContractorNotFoundError) as excinfo:
        machine.create("tenant-001", "Fence broken", "Acme Fencing", "Low")

    message = str(excinfo.value)
    assert "Acme Fencing" in message
    assert "contractor-001 (Mike's Plumbing)" in message
    assert _raw_orders(seeded_db) == before


def test_create_rejects_unknown_priority(seeded_db: Path):
    machine = _machine(seeded_db)
    with pytest.raises(ToolValidationError):
        machine.create("tenant-001", "Leak", "contractor-001", "Whenever")
    assert len(_raw_orders(seeded_db)) == 1


def test_create_keeps_attachments_and_list_summarizes_them(seeded_db: Path):
    machine = _machine(seeded_db)
    order = machine.create(
        "tenant-001",
        "Damp patch on ceiling",
        "contractor-004",
        "Medium",
        attachments=[{"url": "/uploads/damp.jpg", "filename": "damp.jpg", "mediaType": "image/jpeg"}],
    )

    assert order["attachments"][0]["media_type"] == "image/jpeg"
    assert order["attachments"][0]["id"].startswith("att-")

    summary = machine.list("tenant-001")[0]
    assert "attachments" not in summary
    assert summary["attachment_count"] == 1
    assert summary["has_attachments"] is True

    full = machine.list("tenant-001", include_attachments=True)[0]
    assert full["attachments"][0]["url"] == "/uploads/damp.jpg"


def test_legacy_camel_case_record_is_normalized(seeded_db: Path):
    machine = _machine(seeded_db)
    rows = machine.list("tenant-002")

    assert len(rows) == 1
    legacy = rows[0]
    assert legacy["id"] == LEGACY_ID
    assert legacy["tenant_id"] == "tenant-002"
    assert legacy["issue_summary"] == "Bathroom extractor fan not working"
    assert legacy["created_at"] == "2024-05-29T16:26:40.000Z"
    assert legacy["attachment_count"] == 1
    assert "issueSummary" not in legacy


def test_normalize_prefers_first_non_empty_value():
    row = normalize_work_order({"issue_summary": "Leak", "description": "ignored", "attachments": "bad"})
    assert row["issue_summary"] == "Leak"
    assert row["attachments"] == []
    assert row["resolved_at"] is None


def test_list_filters_by_status_and_tenant(seeded_db: Path):
    machine = _machine(seeded_db)
    machine.create("tenant-001", "Leak", "contractor-001", "Low")

    assert machine.list("tenant-002", status="pending")[0]["id"] == LEGACY_ID
    assert machine.list("tenant-002", status="assigned") == []
    assert machine.list("tenant-003") == []


def test_complete_marks_solved_from_any_state(seeded_db: Path):
    machine = _machine(seeded_db)
    order = machine.complete(LEGACY_ID, resolution_notes="Fan replaced")

    assert order["status"] == "solved"
    assert order["resolved_at"]
    assert order["updated_at"] == order["resolved_at"]
    assert order["resolution_notes"] == "Fan replaced"
    assert machine.active_for_tenant("tenant-002") == []


def test_complete_missing_order_leaves_store_untouched(seeded_db: Path):
    machine = _machine(seeded_db)
    before = _raw_orders(seeded_db)

    with pytest.raises(WorkOrderNotFoundError) as excinfo:
        machine.complete("wo-does-not-exist")

    assert str(excinfo.value) == "Work order 'wo-does-not-exist' not found"
    assert _raw_orders(seeded_db) == before


def test_update_follows_transition_table(seeded_db: Path):
    machine = _machine(seeded_db)
    order = machine.create("tenant-001", "Leak", "contractor-001", "Low")

    progressed = machine.update(order["id"], status="in_progress", priority="High")
    assert progressed["status"] == "in_progress"
    assert progressed["priority"] == "High"
    assert progressed["resolved_at"] is None
    assert progressed["updated_at"]

    done = machine.update(order["id"], status="completed")
    assert done["status"] == "completed"
    assert done["resolved_at"]

    with pytest.raises(InvalidStatusTransitionError):
        machine.update(order["id"], status="assigned")
    assert machine.get(order["id"])["status"] == "completed"


def test_update_same_status_only_touches_other_fields(seeded_db: Path):
    machine = _machine(seeded_db)
    row = machine.update(LEGACY_ID, status="pending", issue_summary="Extractor fan rattles then stops")
    assert row["status"] == "pending"
    assert row["issue_summary"] == "Extractor fan rattles then stops"


def test_update_requires_a_field(seeded_db: Path):
    machine = _machine(seeded_db)
    with pytest.raises(ToolValidationError):
        machine.update(LEGACY_ID)
    with pytest.raises(ToolValidationError):
        machine.update(LEGACY_ID, status="archived")


def test_delete_returns_snapshot_and_removes_record(seeded_db: Path):
    machine = _machine(seeded_db)
    snapshot = machine.delete(LEGACY_ID)

    assert snapshot["id"] == LEGACY_ID
    assert snapshot["status"] == "pending"
    assert snapshot["attachments"][0]["filename"] == "fan.jpg"
    assert _raw_orders(seeded_db) == []

    with pytest.raises(WorkOrderNotFoundError):
        machine.delete(LEGACY_ID)


def test_mutations_scoped_to_tenant(seeded_db: Path):
    machine = _machine(seeded_db)

    with pytest.raises(WorkOrderNotFoundError):
        machine.complete(LEGACY_ID, tenant_id="tenant-001")
    with pytest.raises(WorkOrderNotFoundError):
        machine.delete(LEGACY_ID, tenant_id="tenant-001")

    assert machine.get(LEGACY_ID, tenant_id="tenant-002")["status"] == "pending"


def test_ids_strictly_increase():
    ids = [WorkOrderStateMachine.next_work_order_id() for _ in range(50)]
    values = [int(work_order_id.split("-", 1)[1]) for work_order_id in ids]
    assert values == sorted(values)
    assert len(set(values)) == len(values)


def test_concurrent_creates_all_persist(seeded_db: Path):
    machine = _machine(seeded_db)

    def create(index: int) -> str:
        return machine.create("tenant-003", f"Issue {index}", "contractor-004", "Low")["id"]

    with ThreadPoolExecutor(max_workers=8) as pool:
        created = list(pool.map(create, range(20)))

    stored = JsonRecordStore(seeded_db).read_all(WORK_ORDERS) or []
    stored_ids = {row["id"] for row in stored}
    assert len(set(created)) == 20
    assert set(created) <= stored_ids
    assert len(stored) == 21


def test_record_without_status_can_rejoin_lifecycle(seeded_db: Path):
    rows = _raw_orders(seeded_db)
    del rows[0]["status"]
    (seeded_db / "work_orders.json").write_text(json.dumps(rows), encoding="utf-8")
    machine = _machine(seeded_db)

    row = machine.update(LEGACY_ID, status="in_progress")

    assert row["status"] == "in_progress"
    assert machine.get(LEGACY_ID)["status"] == "in_progress"


def test_deleted_order_drops_out_of_list(seeded_db: Path):
    machine = _machine(seeded_db)
    assert [row["id"] for row in machine.list("tenant-002")] == [LEGACY_ID]

    machine.delete(LEGACY_ID, tenant_id="tenant-002")

    assert machine.list("tenant-002") == []
    assert machine.active_for_tenant("tenant-002") == []


def test_contractor_trade_normalized_to_enumeration(seeded_db: Path):
    contractors = json.loads((seeded_db / "contractors.json").read_text(encoding="utf-8"))
    contractors[0]["service"] = "Plumbing"
    contractors[1]["service"] = "hvac"
    (seeded_db / "contractors.json").write_text(json.dumps(contractors), encoding="utf-8")
    machine = _machine(seeded_db)

    order = machine.create("tenant-001", "Leak", "contractor-001", "Low")
    assert order["trade"] == "plumbing"

    with pytest.raises(ToolValidationError):
        machine.create("tenant-001", "Aircon rattles", "contractor-002", "Low")
    assert len(_raw_orders(seeded_db)) == 2
