from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from change_tracker.src.diff import ChangeRecord


LOGGER = logging.getLogger("api-change-tracker")


class AuditLog:
    def __init__(self, log_file: str) -> None:
        self.log_path = Path(log_file)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_event(self, event: Dict[str, Any]) -> None:
        event.setdefault("event_time", datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"))
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, sort_keys=True) + "\n")

    def log_comparison(
        self,
        collection_id: str,
        old_snapshot_id: Optional[int],
        new_snapshot_id: int,
        changes: List[ChangeRecord],
    ) -> None:
        by_type = Counter(change.change_type for change in changes)
        self.log_event(
            {
                "event_type": "SNAPSHOT_COMPARED",
                "collection_id": collection_id,
                "old_snapshot_id": old_snapshot_id,
                "new_snapshot_id": new_snapshot_id,
                "change_count": len(changes),
                "changes_by_type": dict(by_type),
            }
        )
        LOGGER.info(
            "Collection %s: %d changes between snapshots %s and %s",
            collection_id,
            len(changes),
            old_snapshot_id,
            new_snapshot_id,
        )

    def read_events(self) -> List[Dict[str, Any]]:
        if not self.log_path.exists():
            return []
        lines = self.log_path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
