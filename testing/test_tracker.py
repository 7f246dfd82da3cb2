import json

import pytest

from change_tracker.src.audit_log import AuditLog
from change_tracker.src.diff import MODIFIED, DiffOptions
from change_tracker.src.errors import DecodeError
from change_tracker.src.state_store import ChangeFilter, LocalStateStore
from change_tracker.src.tracker import SnapshotTracker


def _collection(name, postman_id="p1", schema="v2.1"):
    return json.dumps(
        {
            "collection": {
                "info": {"name": "Demo", "_postman_id": postman_id, "schema": schema},
                "item": [{"name": name, "request": {"method": "GET", "url": "https://x/users"}}],
            }
        }
    )


def test_process_creates_baseline_then_records_changes(tmp_path):
    store = LocalStateStore(tmp_path / "state")
    audit = AuditLog(str(tmp_path / "audit.log"))
    tracker = SnapshotTracker(store=store, audit=audit)

    first = tracker.process("c1", _collection("Users"))
    assert first.snapshot_id == 1
    assert first.changes == []
    assert not first.skipped

    second = tracker.process("c1", _collection("List users"))
    assert second.old_snapshot_id == 1
    assert second.snapshot_id == 2
    assert [(c.change_type, c.path) for c in second.changes] == [(MODIFIED, "collection.item[0].name")]
    assert second.changes[0].id is not None

    page, total = store.query_changes(ChangeFilter(collection_id="c1"))
    assert total == 1
    assert page[0].new_snapshot_id == 2

    events = audit.read_events()
    assert events[0]["event_type"] == "SNAPSHOT_COMPARED"
    assert events[0]["changes_by_type"] == {MODIFIED: 1}


def test_identical_content_is_skipped(tmp_path):
    tracker = SnapshotTracker(store=LocalStateStore(tmp_path))
    tracker.process("c1", _collection("Users", postman_id="p1"))
    result = tracker.process("c1", _collection("Users", postman_id="p2"))
    assert result.skipped
    assert result.snapshot_id == 1
    assert len(tracker.store.list_snapshots("c1")) == 1


def test_hash_change_without_differences_stores_nothing(tmp_path):
    options = DiffOptions(ignore_paths=["collection.info.schema"])
    tracker = SnapshotTracker(store=LocalStateStore(tmp_path), options=options)
    tracker.process("c1", _collection("Users", schema="v2.0"))
    result = tracker.process("c1", _collection("Users", schema="v2.1"))
    assert result.snapshot_id == 2
    assert result.changes == []
    assert tracker.store.query_changes(ChangeFilter(collection_id="c1")) == ([], 0)


def test_invalid_content_raises(tmp_path):
    tracker = SnapshotTracker(store=LocalStateStore(tmp_path))
    with pytest.raises(DecodeError):
        tracker.process("c1", "not json")
    assert tracker.store.list_snapshots("c1") == []
