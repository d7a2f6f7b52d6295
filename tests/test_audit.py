"""Unit tests for the best-effort audit logger."""

from __future__ import annotations

import logging
import threading

from datastore.spatial_store import MockSpatialStore
from models.records import AvailabilityHistoryEntry
from services.audit import AuditLogger
from tests.conftest import INSIDE


class FailingHistoryStore(MockSpatialStore):
    def insert_history(self, entry: AvailabilityHistoryEntry) -> None:
        raise RuntimeError("ledger table is read-only")


def test_record_writes_entry(store: MockSpatialStore) -> None:
    audit = AuditLogger(store, workers=1)
    try:
        assert audit.record("rider-valid", INSIDE, '{"message": "Success"}') is True
    finally:
        audit.shutdown()

    history = store.list_history()
    assert len(history) == 1
    entry = history[0]
    assert entry.rider_id == "rider-valid"
    assert (entry.latitude, entry.longitude) == (INSIDE.latitude, INSIDE.longitude)
    assert entry.response == '{"message": "Success"}'
    assert entry.created_at.tzinfo is not None


def test_record_failure_returns_false_and_logs(caplog) -> None:
    audit = AuditLogger(FailingHistoryStore(name="failing"), workers=1)

    with caplog.at_level(logging.ERROR, logger="services.audit"):
        result = audit.record("rider-valid", INSIDE, "{}")
    audit.shutdown()

    assert result is False
    records = [record for record in caplog.records if record.name == "services.audit"]
    assert any("Failed to record availability history" in record.getMessage() for record in records)
    assert any(getattr(record, "rider_id", None) == "rider-valid" for record in records)


def test_submit_returns_immediately_and_writes_in_background(store: MockSpatialStore) -> None:
    release = threading.Event()

    class SlowStore(MockSpatialStore):
        def insert_history(self, entry: AvailabilityHistoryEntry) -> None:
            release.wait(timeout=5)
            super().insert_history(entry)

    slow = SlowStore(name="slow")
    audit = AuditLogger(slow, workers=2)
    try:
        entry_id = audit.submit("rider-valid", INSIDE, "{}")
        assert audit.pending_count() == 1
        assert slow.list_history() == []

        release.set()
        audit.wait_for_pending(timeout=5)
    finally:
        audit.shutdown()

    assert [entry.id for entry in slow.list_history()] == [entry_id]


def test_submit_after_shutdown_drops_entry_without_raising(store: MockSpatialStore, caplog) -> None:
    audit = AuditLogger(store, workers=1)
    audit.shutdown()

    with caplog.at_level(logging.ERROR, logger="services.audit"):
        entry_id = audit.submit("rider-valid", INSIDE, "{}")

    assert entry_id
    assert store.list_history() == []
    assert any("dropping history entry" in record.getMessage() for record in caplog.records)
