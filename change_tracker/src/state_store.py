from __future__ import annotations

import dataclasses
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.errors import StorageError


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class Snapshot:
    id: int
    collection_id: str
    created_at: datetime
    content: Any
    content_hash: str


@dataclass
class ChangeFilter:
    collection_id: str
    snapshot_id: Optional[int] = None
    old_snapshot_id: Optional[int] = None
    change_types: Sequence[str] = ()
    path_pattern: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    limit: int = 100
    offset: int = 0

    def matches(self, record: ChangeRecord) -> bool:
        if record.collection_id != self.collection_id:
            return False
        if self.snapshot_id is not None and record.new_snapshot_id != self.snapshot_id:
            return False
        if self.old_snapshot_id is not None and record.old_snapshot_id != self.old_snapshot_id:
            return False
        if self.change_types and record.change_type not in self.change_types:
            return False
        if self.path_pattern and self.path_pattern not in record.path:
            return False
        if self.start_time and (record.created_at is None or record.created_at < self.start_time):
            return False
        if self.end_time and (record.created_at is None or record.created_at > self.end_time):
            return False
        return True


@dataclass
class LocalStateStore:
    base_dir: Path

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        for sub in ("snapshots", "collections", "changes", "checkpoints"):
            (self.base_dir / sub).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _digest(collection_id: str) -> str:
        return hashlib.sha256(collection_id.encode("utf-8")).hexdigest()

    def _read(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"failed to read {path}: {exc}") from exc

    def _write(self, path: Path, payload: Any) -> None:
        try:
            path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"failed to write {path}: {exc}") from exc

    def _next_id(self, sequence: str) -> int:
        path = self.base_dir / "sequence.json"
        counters = self._read(path, {})
        counters[sequence] = counters.get(sequence, 0) + 1
        self._write(path, counters)
        return counters[sequence]

    def _index_path(self, collection_id: str) -> Path:
        return self.base_dir / "collections" / f"{self._digest(collection_id)}.json"

    def _changes_path(self, collection_id: str) -> Path:
        return self.base_dir / "changes" / f"{self._digest(collection_id)}.json"

    def _index(self, collection_id: str) -> List[Dict[str, Any]]:
        entries = self._read(self._index_path(collection_id), [])
        return sorted(entries, key=lambda entry: (_parse_time(entry["created_at"]), entry["id"]))

    def create_snapshot(
        self,
        collection_id: str,
        content: Any,
        content_hash: str,
        created_at: Optional[datetime] = None,
    ) -> int:
        snapshot_id = self._next_id("snapshot")
        created = _iso(created_at or datetime.now(timezone.utc))
        self._write(
            self.base_dir / "snapshots" / f"{snapshot_id}.json",
            {
                "id": snapshot_id,
                "collection_id": collection_id,
                "created_at": created,
                "content_hash": content_hash,
                "content": content,
            },
        )
        index = self._index(collection_id)
        index.append({"id": snapshot_id, "created_at": created, "content_hash": content_hash})
        self._write(self._index_path(collection_id), index)
        return snapshot_id

    def get_snapshot(self, snapshot_id: int) -> Snapshot:
        data = self._read(self.base_dir / "snapshots" / f"{snapshot_id}.json", None)
        if data is None:
            raise StorageError(f"snapshot {snapshot_id} not found")
        return Snapshot(
            id=data["id"],
            collection_id=data["collection_id"],
            created_at=_parse_time(data["created_at"]),
            content=data["content"],
            content_hash=data["content_hash"],
        )

    def list_snapshots(self, collection_id: str) -> List[Snapshot]:
        return [self.get_snapshot(entry["id"]) for entry in self._index(collection_id)]

    def get_previous_snapshot(self, collection_id: str, excluding_id: int) -> Optional[Snapshot]:
        candidates = [entry for entry in self._index(collection_id) if entry["id"] != excluding_id]
        if not candidates:
            return None
        return self.get_snapshot(candidates[-1]["id"])

    def find_snapshot_by_hash(self, collection_id: str, content_hash: str) -> Optional[Snapshot]:
        for entry in reversed(self._index(collection_id)):
            if entry["content_hash"] == content_hash:
                return self.get_snapshot(entry["id"])
        return None

    def insert_changes(
        self,
        collection_id: str,
        old_snapshot_id: Optional[int],
        new_snapshot_id: int,
        records: List[ChangeRecord],
    ) -> List[ChangeRecord]:
        path = self._changes_path(collection_id)
        existing = self._read(path, [])
        taken = {
            entry["path"]
            for entry in existing
            if entry["old_snapshot_id"] == old_snapshot_id and entry["new_snapshot_id"] == new_snapshot_id
        }
        now = datetime.now(timezone.utc)
        stored: List[ChangeRecord] = []
        for record in records:
            if record.path in taken:
                raise StorageError(
                    f"change for {record.path!r} already stored for snapshots "
                    f"{old_snapshot_id} -> {new_snapshot_id}"
                )
            taken.add(record.path)
            stored.append(
                dataclasses.replace(
                    record,
                    id=self._next_id("change"),
                    collection_id=collection_id,
                    old_snapshot_id=old_snapshot_id,
                    new_snapshot_id=new_snapshot_id,
                    created_at=record.created_at or now,
                )
            )
        self._write(path, existing + [record.to_dict() for record in stored])
        return stored

    def query_changes(self, change_filter: ChangeFilter) -> Tuple[List[ChangeRecord], int]:
        records = [
            ChangeRecord.from_dict(entry)
            for entry in self._read(self._changes_path(change_filter.collection_id), [])
        ]
        matched = [record for record in records if change_filter.matches(record)]
        matched.sort(key=lambda record: (record.created_at, record.id or 0), reverse=True)
        total = len(matched)
        page = matched[change_filter.offset :]
        if change_filter.limit:
            page = page[: change_filter.limit]
        return page, total

    def get_change(self, collection_id: str, change_id: int) -> ChangeRecord:
        for entry in self._read(self._changes_path(collection_id), []):
            if entry.get("id") == change_id:
                return ChangeRecord.from_dict(entry)
        raise StorageError(f"change {change_id} not found")

    def get_checkpoint(self, collection_id: str) -> Optional[str]:
        data = self._read(self.base_dir / "checkpoints" / f"{self._digest(collection_id)}.json", {})
        return data.get("last_successful_poll_utc")

    def save_checkpoint(self, collection_id: str, timestamp_utc: datetime) -> None:
        self._write(
            self.base_dir / "checkpoints" / f"{self._digest(collection_id)}.json",
            {"last_successful_poll_utc": _iso(timestamp_utc)},
        )
