"""Unit tests for the JSON record store."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.services.directory import Directory
from app.services.record_store import CONTRACTORS, KNOWLEDGE, TENANTS, WORK_ORDERS, JsonRecordStore
from app.services.work_orders import WorkOrderStateMachine


def test_missing_collection_reads_as_none(tmp_path: Path):
    store = JsonRecordStore(tmp_path)
    assert store.read_all(WORK_ORDERS) is None


def test_replace_all_then_read_back(tmp_path: Path):
    store = JsonRecordStore(tmp_path / "nested")
    rows = [{"id": "tenant-9", "name": "Ada", "unit": "Flat 1"}]

    assert store.replace_all(TENANTS, rows) is True
    assert store.read_all(TENANTS) == rows
    assert not (tmp_path / "nested" / "tenants.tmp").exists()


def test_unreadable_collection_reads_as_none(tmp_path: Path):
    (tmp_path / "knowledge.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "contractors.json").write_text(json.dumps({"id": "x"}), encoding="utf-8")
    store = JsonRecordStore(tmp_path)

    assert store.read_all(KNOWLEDGE) is None
    assert store.read_all(CONTRACTORS) is None


def test_unknown_kind_rejected(tmp_path: Path):
    with pytest.raises(ValueError):
        JsonRecordStore(tmp_path).path_for("invoices")


def test_transaction_writes_only_when_replaced(tmp_path: Path):
    store = JsonRecordStore(tmp_path)
    store.replace_all(WORK_ORDERS, [{"id": "wo-1"}])

    with store.transaction(WORK_ORDERS) as tx:
        assert tx.records == [{"id": "wo-1"}]
    assert store.read_all(WORK_ORDERS) == [{"id": "wo-1"}]

    with store.transaction(WORK_ORDERS) as tx:
        tx.replace(tx.records + [{"id": "wo-2"}])
    assert [row["id"] for row in store.read_all(WORK_ORDERS)] == ["wo-1", "wo-2"]


def test_transaction_discards_changes_when_block_raises(tmp_path: Path):
    store = JsonRecordStore(tmp_path)
    store.replace_all(WORK_ORDERS, [{"id": "wo-1"}])

    with pytest.raises(RuntimeError):
        with store.transaction(WORK_ORDERS) as tx:
            tx.replace([])
            raise RuntimeError("boom")

    assert store.read_all(WORK_ORDERS) == [{"id": "wo-1"}]


def test_transaction_on_missing_collection_starts_empty(tmp_path: Path):
    store = JsonRecordStore(tmp_path)
    with store.transaction(WORK_ORDERS) as tx:
        assert tx.records == []
        tx.replace([{"id": "wo-1"}])
    assert store.read_all(WORK_ORDERS) == [{"id": "wo-1"}]


def test_transaction_refuses_unreadable_collection(tmp_path: Path):
    path = tmp_path / "work_orders.json"
    path.write_text('[{"id": "wo-1"},]', encoding="utf-8")
    store = JsonRecordStore(tmp_path)

    with pytest.raises(OSError):
        with store.transaction(WORK_ORDERS) as tx:
            tx.replace([{"id": "wo-2"}])

    assert path.read_text(encoding="utf-8") == '[{"id": "wo-1"},]'


def test_create_against_corrupt_work_orders_leaves_file_untouched(seeded_db: Path):
    path = seeded_db / "work_orders.json"
    corrupted = path.read_text(encoding="utf-8").rstrip().rstrip("]") + ",]"
    path.write_text(corrupted, encoding="utf-8")
    before = path.read_bytes()
    store = JsonRecordStore(seeded_db)
    machine = WorkOrderStateMachine(store, Directory(store))

    with pytest.raises(OSError):
        machine.create("tenant-001", "Leak", "contractor-001", "Low")

    assert path.read_bytes() == before
    assert b"wo-1717000000000" in path.read_bytes()
