from __future__ import annotations

from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.enrich import decode_modification, enrich
from change_tracker.src.state_store import Snapshot


def _snapshot_meta(snapshot: Optional[Snapshot]) -> Optional[Dict[str, Any]]:
    if snapshot is None:
        return None
    return {
        "id": snapshot.id,
        "hash": snapshot.content_hash,
        "created_at": snapshot.created_at.isoformat().replace("+00:00", "Z"),
    }


def compare_snapshots(
    records: List[ChangeRecord],
    collection_id: str,
    old_snapshot_id: Optional[int],
    new_snapshot_id: int,
    old_snapshot: Optional[Snapshot] = None,
    new_snapshot: Optional[Snapshot] = None,
) -> Dict[str, Any]:
    statistics: Dict[str, int] = {"total": 0}
    affected_paths: Dict[str, List[str]] = {}
    changes: List[Dict[str, Any]] = []

    pair = [
        record
        for record in records
        if record.collection_id == collection_id
        and record.old_snapshot_id == old_snapshot_id
        and record.new_snapshot_id == new_snapshot_id
    ]
    for record in sorted(pair, key=lambda item: item.path):
        enriched = enrich(record)
        statistics[record.change_type] = statistics.get(record.change_type, 0) + 1
        statistics["total"] += 1
        affected_paths.setdefault(enriched.resource_type, []).append(record.path)
        entry: Dict[str, Any] = {
            "type": record.change_type,
            "path": record.path,
            "human_path": enriched.human_path,
            "created_at": record.to_dict()["created_at"],
        }
        if record.modification is not None:
            entry["modification"] = decode_modification(record.modification)
        changes.append(entry)

    return {
        "collection_id": collection_id,
        "old_snapshot_id": old_snapshot_id,
        "new_snapshot_id": new_snapshot_id,
        "changes": changes,
        "statistics": statistics,
        "affected_paths": affected_paths,
        "old_snapshot": _snapshot_meta(old_snapshot),
        "new_snapshot": _snapshot_meta(new_snapshot),
    }
