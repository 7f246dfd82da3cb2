from __future__ import annotations

import dataclasses
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from change_tracker.src.errors import DecodeError, UnsupportedShapeError
from change_tracker.src.identity import is_identity_array, keyed_items
from change_tracker.src.ignore import should_ignore
from change_tracker.src.paths import join_path


ADDED = "added"
DELETED = "deleted"
MODIFIED = "modified"
CHANGE_TYPES = (ADDED, DELETED, MODIFIED)

HASH_PREFIX = "sha256:"

VOLATILE_FIELDS = {
    "_postman_id",
    "id",
    "processing_time",
    "masked_at",
    "masking_id",
    "Date",
    "ETag",
    "currentHelper",
    "helperAttributes",
}


@dataclasses.dataclass
class DiffOptions:
    max_depth: int = 0
    max_changes: int = 0
    ignore_paths: List[str] = dataclasses.field(default_factory=list)
    hash_threshold: int = 4096
    opaque_threshold: int = 5000
    compact: bool = False


@dataclasses.dataclass
class ChangeRecord:
    change_type: str
    path: str
    modification: Optional[str] = None
    collection_id: Optional[str] = None
    old_snapshot_id: Optional[int] = None
    new_snapshot_id: Optional[int] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        if self.created_at is not None:
            payload["created_at"] = self.created_at.isoformat().replace("+00:00", "Z")
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            change_type=data["change_type"],
            path=data["path"],
            modification=data.get("modification"),
            collection_id=data.get("collection_id"),
            old_snapshot_id=data.get("old_snapshot_id"),
            new_snapshot_id=data.get("new_snapshot_id"),
            created_at=created_at,
            id=data.get("id"),
        )


def stable_hash(payload: Any) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _normalize(item) for key, item in value.items() if key not in VOLATILE_FIELDS}
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    return value


def content_hash(document: Any) -> str:
    return stable_hash(_normalize(decode_document(document)))


def decode_document(content: Any) -> Any:
    if isinstance(content, (bytes, bytearray)):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"snapshot is not valid UTF-8: {exc}") from exc
    if isinstance(content, str):
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"snapshot is not valid JSON: {exc}") from exc
    return content


def encode_modification(value: Any, hash_threshold: int) -> str:
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    raw = encoded.encode("utf-8")
    if hash_threshold and len(raw) > hash_threshold:
        return HASH_PREFIX + hashlib.sha256(raw).hexdigest()
    return encoded


def is_hash_token(modification: Optional[str]) -> bool:
    return bool(modification) and modification.startswith(HASH_PREFIX)


def value_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    raise UnsupportedShapeError(f"unsupported document value of type {type(value).__name__}")


def documents_equal(left: Any, right: Any) -> bool:
    try:
        kind = value_kind(left)
        if kind != value_kind(right):
            return False
    except UnsupportedShapeError:
        return left == right
    if kind == "object":
        return left.keys() == right.keys() and all(documents_equal(left[key], right[key]) for key in left)
    if kind == "array":
        return len(left) == len(right) and all(documents_equal(a, b) for a, b in zip(left, right))
    return left == right


def _pair_keyless(
    old: List[Any], old_indices: List[int], new: List[Any], new_indices: List[int]
) -> Tuple[List[int], List[int]]:
    remaining = list(new_indices)
    unmatched_old: List[int] = []
    for old_index in old_indices:
        for pos, new_index in enumerate(remaining):
            if documents_equal(old[old_index], new[new_index]):
                del remaining[pos]
                break
        else:
            unmatched_old.append(old_index)
    return unmatched_old, remaining


class _DiffRun:
    def __init__(self, options: DiffOptions, created_at: datetime) -> None:
        self.options = options
        self.created_at = created_at
        self.changes: List[ChangeRecord] = []
        self.seen: Set[str] = set()

    @property
    def full(self) -> bool:
        return bool(self.options.max_changes) and len(self.changes) >= self.options.max_changes

    def ignored(self, path: str) -> bool:
        return bool(self.options.ignore_paths) and should_ignore(path, self.options.ignore_paths)

    def too_deep(self, depth: int) -> bool:
        return bool(self.options.max_depth) and depth >= self.options.max_depth

    def opaque(self, value: Any) -> bool:
        return bool(self.options.opaque_threshold) and len(value) > self.options.opaque_threshold

    def emit(self, change_type: str, path: str, value: Any) -> None:
        if self.full or path in self.seen:
            return
        self.seen.add(path)
        self.changes.append(
            ChangeRecord(
                change_type=change_type,
                path=path,
                modification=encode_modification(value, self.options.hash_threshold),
                created_at=self.created_at,
            )
        )

    def _kinds(self, old: Any, new: Any) -> Optional[str]:
        """Return the shared container kind, or None when there is nothing to walk into."""
        try:
            old_kind, new_kind = value_kind(old), value_kind(new)
        except UnsupportedShapeError:
            return None
        if old_kind != new_kind or old_kind not in ("object", "array"):
            return None
        if self.opaque(old) or self.opaque(new):
            return None
        return old_kind

    def _identity_split(
        self, old: List[Any], new: List[Any]
    ) -> Tuple[List[Tuple[int, int]], List[int], List[int]]:
        old_keyed, old_keyless = keyed_items(old)
        new_keyed, new_keyless = keyed_items(new)
        matched = [(old_keyed[key][0], new_keyed[key][0]) for key in old_keyed if key in new_keyed]
        deleted = [old_keyed[key][0] for key in old_keyed if key not in new_keyed]
        added = [new_keyed[key][0] for key in new_keyed if key not in old_keyed]
        loose_deleted, loose_added = _pair_keyless(old, old_keyless, new, new_keyless)
        return matched, sorted(deleted + loose_deleted), sorted(added + loose_added)

    def has_structural_change(self, old: Any, new: Any, path: str, depth: int) -> bool:
        if self.ignored(path) or self.too_deep(depth):
            return False
        kind = self._kinds(old, new)
        if kind == "object":
            for key in old:
                if key not in new and not self.ignored(join_path(path, str(key))):
                    return True
            for key in new:
                if key not in old and not self.ignored(join_path(path, str(key))):
                    return True
            return any(
                self.has_structural_change(old[key], new[key], join_path(path, str(key)), depth + 1)
                for key in old
                if key in new
            )
        if kind == "array":
            if is_identity_array(path):
                matched, deleted, added = self._identity_split(old, new)
                if any(not self.ignored(join_path(path, index)) for index in deleted):
                    return True
                if any(not self.ignored(join_path(path, index)) for index in added):
                    return True
                return any(
                    self.has_structural_change(old[i], new[j], join_path(path, j), depth + 1)
                    for i, j in matched
                )
            common = min(len(old), len(new))
            extra = range(common, max(len(old), len(new)))
            if any(not self.ignored(join_path(path, i)) for i in extra):
                return True
            return any(
                self.has_structural_change(old[i], new[i], join_path(path, i), depth + 1)
                for i in range(common)
            )
        return False

    def emit_structural(self, old: Any, new: Any, path: str, depth: int) -> None:
        if self.full or self.ignored(path) or self.too_deep(depth):
            return
        kind = self._kinds(old, new)
        if kind is None or documents_equal(old, new):
            return
        if kind == "object":
            for key in old:
                child = join_path(path, str(key))
                if key in new:
                    self.emit_structural(old[key], new[key], child, depth + 1)
                elif not self.ignored(child):
                    self.emit(DELETED, child, old[key])
            for key in new:
                child = join_path(path, str(key))
                if key not in old and not self.ignored(child):
                    self.emit(ADDED, child, new[key])
            return
        if is_identity_array(path):
            matched, deleted, added = self._identity_split(old, new)
            for i in deleted:
                self._emit_unless_ignored(DELETED, join_path(path, i), old[i])
            for i, j in matched:
                self.emit_structural(old[i], new[j], join_path(path, j), depth + 1)
            for j in added:
                self._emit_unless_ignored(ADDED, join_path(path, j), new[j])
            return
        common = min(len(old), len(new))
        for i in range(common):
            self.emit_structural(old[i], new[i], join_path(path, i), depth + 1)
        for i in range(common, len(old)):
            self._emit_unless_ignored(DELETED, join_path(path, i), old[i])
        for i in range(common, len(new)):
            self._emit_unless_ignored(ADDED, join_path(path, i), new[i])

    def compare_recursive(self, old: Any, new: Any, path: str, depth: int) -> None:
        if self.full or self.ignored(path):
            return
        try:
            old_kind, new_kind = value_kind(old), value_kind(new)
        except UnsupportedShapeError:
            if old != new:
                self.emit(MODIFIED, path, new)
            return
        if old_kind != new_kind:
            self.emit(MODIFIED, path, new)
            return
        if old_kind not in ("object", "array"):
            if old != new:
                self.emit(MODIFIED, path, new)
            return
        if documents_equal(old, new):
            return
        if self.too_deep(depth) or self.opaque(old) or self.opaque(new):
            self.emit(MODIFIED, path, new)
            return
        if old_kind == "object":
            for key in old:
                child = join_path(path, str(key))
                if key in new:
                    self.compare_recursive(old[key], new[key], child, depth + 1)
                else:
                    self._emit_unless_ignored(DELETED, child, old[key])
            for key in new:
                if key not in old:
                    self._emit_unless_ignored(ADDED, join_path(path, str(key)), new[key])
            return
        if is_identity_array(path):
            matched, deleted, added = self._identity_split(old, new)
            for i in deleted:
                self._emit_unless_ignored(DELETED, join_path(path, i), old[i])
            for i, j in matched:
                self.compare_recursive(old[i], new[j], join_path(path, j), depth + 1)
            for j in added:
                self._emit_unless_ignored(ADDED, join_path(path, j), new[j])
            return
        common = min(len(old), len(new))
        for i in range(common):
            self.compare_recursive(old[i], new[i], join_path(path, i), depth + 1)
        for i in range(common, len(old)):
            self._emit_unless_ignored(DELETED, join_path(path, i), old[i])
        for i in range(common, len(new)):
            self._emit_unless_ignored(ADDED, join_path(path, i), new[i])

    def _emit_unless_ignored(self, change_type: str, path: str, value: Any) -> None:
        if not self.ignored(path):
            self.emit(change_type, path, value)


def has_structural_change(old: Any, new: Any, options: Optional[DiffOptions] = None) -> bool:
    run = _DiffRun(options or DiffOptions(), datetime.now(timezone.utc))
    return run.has_structural_change(decode_document(old), decode_document(new), "", 0)


def diff(old: Any, new: Any, options: Optional[DiffOptions] = None) -> List[ChangeRecord]:
    """Compare two snapshots and return path-addressed change records.

    Either side may be serialized JSON (str/bytes) or an already decoded
    tree. When any key or identity-array member was added or removed
    anywhere, only ``added``/``deleted`` records are produced for this run;
    value-level ``modified`` records are reported only for structurally
    stable pairs.
    """
    old_doc = decode_document(old)
    new_doc = decode_document(new)
    run = _DiffRun(options or DiffOptions(), datetime.now(timezone.utc))
    if run.has_structural_change(old_doc, new_doc, "", 0):
        run.emit_structural(old_doc, new_doc, "", 0)
    else:
        run.compare_recursive(old_doc, new_doc, "", 0)
    return run.changes
