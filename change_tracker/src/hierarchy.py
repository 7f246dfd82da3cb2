from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.enrich import EnrichedChange, enrich, entry_display_name
from change_tracker.src.identity import LIST_CONTAINERS
from change_tracker.src.paths import is_index_token, join_path


FOLDER = "folder"
CHANGE = "change"
ROOT_NAME = "Collection"
ROOT_SEGMENT = "collection"


@dataclasses.dataclass
class ChangeNode:
    name: str
    path: str
    kind: str = FOLDER
    change_type: Optional[str] = None
    change_count: int = 0
    children: List["ChangeNode"] = dataclasses.field(default_factory=list)
    change_ref: Optional[EnrichedChange] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "kind": self.kind,
            "change_count": self.change_count,
        }
        if self.change_type:
            payload["change_type"] = self.change_type
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        if self.change_ref is not None:
            payload["change_ref"] = self.change_ref.to_dict()
        return payload


def _folder_name(segment: str, previous: Optional[str], folder_path: str, change: EnrichedChange, snapshot: Any) -> str:
    if not (is_index_token(segment) and previous in LIST_CONTAINERS):
        return segment
    record = change.record
    name = entry_display_name(folder_path, record.path, record.modification, snapshot)
    return name or f"Entry {segment[1:-1]}"


def _add_change(root: ChangeNode, nodes: Dict[str, ChangeNode], change: EnrichedChange, snapshot: Any) -> None:
    segments = change.path_segments
    current = root
    current_path = ""
    previous: Optional[str] = None
    for idx, segment in enumerate(segments):
        current_path = join_path(current_path, segment)
        if idx == 0 and segment == ROOT_SEGMENT:
            previous = segment
            continue
        node = nodes.get(current_path)
        if node is None:
            node = ChangeNode(
                name=_folder_name(segment, previous, current_path, change, snapshot),
                path=current_path,
            )
            current.children.append(node)
            nodes[current_path] = node
        current = node
        previous = segment

    label = segments[-1] if segments else change.record.path
    current.children.append(
        ChangeNode(
            name=f"{change.record.change_type}: {label}",
            path=change.record.path,
            kind=CHANGE,
            change_type=change.record.change_type,
            change_ref=change,
        )
    )


def _count_changes(node: ChangeNode) -> int:
    if node.kind == CHANGE:
        node.change_count = 1
        return 1
    node.change_count = sum(_count_changes(child) for child in node.children)
    return node.change_count


def build_hierarchy(records: List[ChangeRecord], snapshot: Any = None) -> ChangeNode:
    root = ChangeNode(name=ROOT_NAME, path=ROOT_SEGMENT)
    nodes: Dict[str, ChangeNode] = {}
    for record in records:
        _add_change(root, nodes, enrich(record, snapshot), snapshot)
    _count_changes(root)
    return root
