from __future__ import annotations

import dataclasses
import json
import re
from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.identity import LIST_CONTAINERS
from change_tracker.src.paths import is_index_token, path_segments, value_at_path


SEGMENT_LABELS = {
    "collection": "Collection",
    "info": "Info",
    "item": "Items",
    "request": "Request",
    "response": "Response",
    "body": "Body",
    "header": "Headers",
    "url": "URL",
}

HUMAN_PATH_SEPARATOR = " → "

ENTRY_INDEX = re.compile(r"(?:^|\.)item\[(\d+)\]")

# Checked in order; the first substring found wins.
RESOURCE_TYPES = (
    (".request", "request"),
    (".response", "response"),
    (".info", "info"),
    (".item", "endpoint"),
)
ROOT_RESOURCE = "collection"


@dataclasses.dataclass
class EnrichedChange:
    record: ChangeRecord
    path_segments: List[str]
    human_path: str
    endpoint_name: str
    resource_type: str

    def to_dict(self) -> Dict[str, Any]:
        payload = self.record.to_dict()
        payload.update(
            {
                "path_segments": self.path_segments,
                "human_path": self.human_path,
                "endpoint_name": self.endpoint_name,
                "resource_type": self.resource_type,
            }
        )
        return payload


def decode_modification(modification: Optional[str]) -> Any:
    if modification is None:
        return None
    try:
        return json.loads(modification)
    except json.JSONDecodeError:
        return modification


def human_path(segments: List[str]) -> str:
    parts: List[str] = []
    for idx, segment in enumerate(segments):
        if segment in SEGMENT_LABELS:
            parts.append(SEGMENT_LABELS[segment])
        elif is_index_token(segment) and idx > 0 and segments[idx - 1] in LIST_CONTAINERS:
            parts.append(f"#{segment[1:-1]}")
        else:
            parts.append(segment)
    return HUMAN_PATH_SEPARATOR.join(parts)


def entry_display_name(entry_path: str, path: str, modification: Optional[str], snapshot: Any = None) -> str:
    """Resolve the display name of the list entry at ``entry_path``, or ""."""
    if path == f"{entry_path}.name":
        name = decode_modification(modification)
        if isinstance(name, str) and name and name != modification:
            return name
    if snapshot is not None:
        node = value_at_path(snapshot, entry_path, skip_if_missing=True)
        if isinstance(node, dict) and isinstance(node.get("name"), str):
            return node["name"]
    return ""


def endpoint_name(path: str, modification: Optional[str] = None, snapshot: Any = None) -> str:
    matches = list(ENTRY_INDEX.finditer(path))
    if not matches:
        return ""
    entry = matches[-1]
    name = entry_display_name(path[: entry.end()], path, modification, snapshot)
    return name or f"Endpoint {entry.group(1)}"


def resource_type(path: str) -> str:
    for marker, label in RESOURCE_TYPES:
        if marker in path:
            return label
    return ROOT_RESOURCE


def enrich(record: ChangeRecord, snapshot: Any = None) -> EnrichedChange:
    segments = path_segments(record.path)
    return EnrichedChange(
        record=record,
        path_segments=segments,
        human_path=human_path(segments),
        endpoint_name=endpoint_name(record.path, record.modification, snapshot),
        resource_type=resource_type(record.path),
    )


def enrich_all(records: List[ChangeRecord], snapshot: Any = None) -> List[EnrichedChange]:
    return [enrich(record, snapshot) for record in records]
