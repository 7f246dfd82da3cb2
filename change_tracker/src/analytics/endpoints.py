from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.enrich import EnrichedChange, enrich, enrich_all


COLLECTION_SETTINGS = "Collection Settings"


def changes_by_endpoint(records: List[ChangeRecord], snapshot: Any = None) -> Dict[str, List[EnrichedChange]]:
    grouped: Dict[str, List[EnrichedChange]] = {}
    for record in sorted(records, key=lambda item: item.path):
        enriched = enrich(record, snapshot)
        grouped.setdefault(enriched.endpoint_name or COLLECTION_SETTINGS, []).append(enriched)
    return grouped


def change_summary(
    records: List[ChangeRecord],
    collection_id: Optional[str] = None,
    snapshot: Any = None,
) -> Dict[str, Any]:
    enriched = enrich_all(records, snapshot)
    times = [record.created_at for record in records if record.created_at is not None]
    earliest = min(times).isoformat().replace("+00:00", "Z") if times else None
    latest = max(times).isoformat().replace("+00:00", "Z") if times else None
    return {
        "collection_id": collection_id,
        "total_changes": len(records),
        "changes_by_type": dict(Counter(record.change_type for record in records)),
        "affected_endpoints": sorted({item.endpoint_name for item in enriched if item.endpoint_name}),
        "time_range": {"earliest": earliest, "latest": latest},
        "changes_by_path": dict(Counter(record.path for record in records)),
    }
