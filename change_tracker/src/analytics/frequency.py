from __future__ import annotations

import dataclasses
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord
from change_tracker.src.enrich import ENTRY_INDEX, human_path
from change_tracker.src.paths import path_segments


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclasses.dataclass
class PathFrequency:
    path: str
    human_path: str
    count: int
    percentage: float
    last_changed: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "human_path": self.human_path,
            "count": self.count,
            "percentage": self.percentage,
            "last_changed": _iso(self.last_changed),
        }


@dataclasses.dataclass
class EndpointVolatility:
    endpoint_name: str
    change_count: int
    last_changed: Optional[datetime]
    change_types: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint_name": self.endpoint_name,
            "change_count": self.change_count,
            "last_changed": _iso(self.last_changed),
            "change_types": dict(self.change_types),
        }


@dataclasses.dataclass
class FrequencyAnalysis:
    collection_id: Optional[str]
    start_time: datetime
    end_time: datetime
    total_changes: int
    frequent_paths: List[PathFrequency]
    volatile_endpoints: List[EndpointVolatility]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "time_range": {"earliest": _iso(self.start_time), "latest": _iso(self.end_time)},
            "total_changes": self.total_changes,
            "frequent_paths": [item.to_dict() for item in self.frequent_paths],
            "volatile_endpoints": [item.to_dict() for item in self.volatile_endpoints],
        }


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if current is None:
        return candidate
    if candidate is None:
        return current
    return max(current, candidate)


def _top_level_entry(path: str) -> Optional[str]:
    match = ENTRY_INDEX.match(path, len("collection")) if path.startswith("collection.") else None
    return match.group(1) if match else None


def volatile_endpoints(records: List[ChangeRecord]) -> List[EndpointVolatility]:
    grouped: Dict[str, EndpointVolatility] = {}
    for record in records:
        key = _top_level_entry(record.path)
        if key is None:
            continue
        entry = grouped.setdefault(
            key,
            EndpointVolatility(endpoint_name=f"Endpoint {key}", change_count=0, last_changed=None, change_types={}),
        )
        entry.change_count += 1
        entry.change_types[record.change_type] = entry.change_types.get(record.change_type, 0) + 1
        entry.last_changed = _latest(entry.last_changed, record.created_at)
    return sorted(grouped.values(), key=lambda item: (-item.change_count, item.endpoint_name))


def analyze_frequency(
    records: List[ChangeRecord],
    collection_id: Optional[str] = None,
    days: int = 30,
    now: Optional[datetime] = None,
    limit: int = 20,
) -> FrequencyAnalysis:
    end_time = now or datetime.now(timezone.utc)
    start_time = end_time - timedelta(days=days)
    window = [
        record
        for record in records
        if (collection_id is None or record.collection_id == collection_id)
        and record.created_at is not None
        and start_time <= record.created_at <= end_time
    ]

    counts = Counter(record.path for record in window)
    last_changed: Dict[str, Optional[datetime]] = defaultdict(lambda: None)
    for record in window:
        last_changed[record.path] = _latest(last_changed[record.path], record.created_at)

    total = len(window)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    frequent = [
        PathFrequency(
            path=path,
            human_path=human_path(path_segments(path)),
            count=count,
            percentage=(count / total) * 100,
            last_changed=last_changed[path],
        )
        for path, count in ranked
    ]
    return FrequencyAnalysis(
        collection_id=collection_id,
        start_time=start_time,
        end_time=end_time,
        total_changes=total,
        frequent_paths=frequent,
        volatile_endpoints=volatile_endpoints(window),
    )
