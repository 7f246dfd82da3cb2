from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional, Tuple

from change_tracker.src.diff import ADDED, DELETED, MODIFIED, ChangeRecord, decode_document
from change_tracker.src.enrich import EnrichedChange, enrich
from change_tracker.src.paths import value_at_path


LOGGER = logging.getLogger("api-change-tracker")

COLLECTION_LEVEL = "Collection Level"
SORT_KEYS = {
    "endpoint": lambda detail: detail.change.endpoint_name,
    "type": lambda detail: detail.change.record.change_type,
    "path": lambda detail: detail.change.human_path,
}


@dataclasses.dataclass
class DiffDetail:
    change: EnrichedChange
    old_value: Any = None
    new_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.change.to_dict()
        payload["old_value"] = self.old_value
        payload["new_value"] = self.new_value
        return payload


@dataclasses.dataclass
class DiffRequest:
    search: str = ""
    filter_type: str = "all"
    group_by: str = "none"
    sort_by: str = ""
    sort_order: str = "asc"
    page: int = 1
    page_size: int = 50


def _extract(document: Any, path: str, tolerate_missing: bool) -> Tuple[Any, bool]:
    """Return ``(value, failed)``; a JSON null is a value, not a failure."""
    try:
        return value_at_path(document, path, skip_if_missing=tolerate_missing), False
    except LookupError as exc:
        LOGGER.warning("Failed to extract value for %s: %s", path, exc)
        return None, True


def snapshot_diff(records: List[ChangeRecord], old_content: Any, new_content: Any) -> List[DiffDetail]:
    """Attach the old and new values at each change path.

    Changes whose path cannot be resolved on either side are dropped.
    """
    old_doc = decode_document(old_content)
    new_doc = decode_document(new_content)
    details: List[DiffDetail] = []
    for record in records:
        old_value, old_failed = _extract(old_doc, record.path, record.change_type == ADDED)
        new_value, new_failed = _extract(new_doc, record.path, record.change_type == DELETED)
        if old_failed and new_failed:
            LOGGER.error("Skipping change at %s: path not found in either snapshot", record.path)
            continue
        details.append(DiffDetail(change=enrich(record, new_doc), old_value=old_value, new_value=new_value))
    return details


def _matches_search(detail: DiffDetail, needle: str) -> bool:
    change = detail.change
    haystacks = [change.human_path, change.record.path, change.endpoint_name, change.resource_type]
    if any(needle in (text or "").lower() for text in haystacks):
        return True
    if change.record.change_type == MODIFIED:
        return needle in str(detail.old_value).lower() or needle in str(detail.new_value).lower()
    return False


def filter_details(details: List[DiffDetail], request: DiffRequest) -> List[DiffDetail]:
    needle = request.search.lower()
    filtered = []
    for detail in details:
        if request.filter_type not in ("", "all") and detail.change.record.change_type != request.filter_type:
            continue
        if needle and not _matches_search(detail, needle):
            continue
        filtered.append(detail)
    return filtered


def sort_details(details: List[DiffDetail], sort_by: str, sort_order: str) -> List[DiffDetail]:
    if not sort_by:
        return list(details)
    key = SORT_KEYS.get(sort_by, SORT_KEYS["endpoint"])
    return sorted(details, key=key, reverse=sort_order == "desc")


def group_details(details: List[DiffDetail], group_by: str) -> List[Dict[str, Any]]:
    groups: Dict[str, List[DiffDetail]] = {}
    for detail in details:
        if group_by == "endpoint":
            name = detail.change.endpoint_name or COLLECTION_LEVEL
        elif group_by == "type":
            name = detail.change.record.change_type.title()
        else:
            name = "All Changes"
        groups.setdefault(name, []).append(detail)
    return [
        {"name": name, "count": len(items), "changes": items, "expanded": True}
        for name, items in sorted(groups.items())
    ]


def summarize(details: List[DiffDetail]) -> Dict[str, Any]:
    by_type: Dict[str, int] = {}
    for detail in details:
        change_type = detail.change.record.change_type
        by_type[change_type] = by_type.get(change_type, 0) + 1
    return {
        "total_changes": len(details),
        "changes_by_type": by_type,
        "affected_endpoints": sorted({d.change.endpoint_name for d in details if d.change.endpoint_name}),
    }


def filter_snapshot_diff(
    details: List[DiffDetail],
    request: DiffRequest,
    collection_id: Optional[str] = None,
    old_snapshot_id: Optional[int] = None,
    new_snapshot_id: Optional[int] = None,
) -> Dict[str, Any]:
    filtered = sort_details(filter_details(details, request), request.sort_by, request.sort_order)
    groups: List[Dict[str, Any]] = []
    ordered = filtered
    if request.group_by not in ("", "none"):
        groups = group_details(filtered, request.group_by)
        ordered = [detail for group in groups for detail in group["changes"]]

    page_size = max(request.page_size, 1)
    page = max(request.page, 1)
    start = (page - 1) * page_size
    total_items = len(filtered)
    total_pages = (total_items + page_size - 1) // page_size

    return {
        "collection_id": collection_id,
        "old_snapshot_id": old_snapshot_id,
        "new_snapshot_id": new_snapshot_id,
        "changes": [detail.to_dict() for detail in ordered[start : start + page_size]],
        "summary": summarize(filtered),
        "pagination": {
            "page": page,
            "page_size": page_size,
            "total_items": total_items,
            "total_pages": total_pages,
            "has_more": page < total_pages,
        },
        "groups": [
            {**group, "changes": [detail.to_dict() for detail in group["changes"]]} for group in groups
        ],
    }
