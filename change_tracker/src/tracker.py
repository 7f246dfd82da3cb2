from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from change_tracker.src.audit_log import AuditLog
from change_tracker.src.diff import ChangeRecord, DiffOptions, content_hash, decode_document, diff
from change_tracker.src.state_store import LocalStateStore


LOGGER = logging.getLogger("api-change-tracker")


@dataclass
class SnapshotResult:
    collection_id: str
    snapshot_id: Optional[int]
    old_snapshot_id: Optional[int] = None
    changes: List[ChangeRecord] = field(default_factory=list)
    skipped: bool = False


@dataclass
class SnapshotTracker:
    store: LocalStateStore
    options: DiffOptions = field(default_factory=DiffOptions)
    audit: Optional[AuditLog] = None

    def process(self, collection_id: str, content: Any) -> SnapshotResult:
        document = decode_document(content)
        digest = content_hash(document)

        existing = self.store.find_snapshot_by_hash(collection_id, digest)
        if existing is not None:
            LOGGER.info(
                "Snapshot with identical content already exists for %s (snapshot %s)",
                collection_id,
                existing.id,
            )
            return SnapshotResult(collection_id=collection_id, snapshot_id=existing.id, skipped=True)

        snapshot_id = self.store.create_snapshot(collection_id, document, digest)
        LOGGER.info("Created snapshot %s for %s (hash %s)", snapshot_id, collection_id, digest)

        previous = self.store.get_previous_snapshot(collection_id, snapshot_id)
        if previous is None:
            LOGGER.info("First snapshot for %s, nothing to compare", collection_id)
            return SnapshotResult(collection_id=collection_id, snapshot_id=snapshot_id)

        changes = diff(previous.content, document, self.options)
        if not changes:
            LOGGER.warning(
                "Hash changed but no differences found for %s between snapshots %s and %s",
                collection_id,
                previous.id,
                snapshot_id,
            )
            return SnapshotResult(collection_id=collection_id, snapshot_id=snapshot_id, old_snapshot_id=previous.id)

        stored = self.store.insert_changes(collection_id, previous.id, snapshot_id, changes)
        if self.audit is not None:
            self.audit.log_comparison(collection_id, previous.id, snapshot_id, stored)
        return SnapshotResult(
            collection_id=collection_id,
            snapshot_id=snapshot_id,
            old_snapshot_id=previous.id,
            changes=stored,
        )
