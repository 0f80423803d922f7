"""Incremental change detection for taskdigest.

The task source has no "changed since" API, so each run diffs freshly
fetched tasks against snapshots persisted by the previous run.
"""

from taskdigest.incremental.delta import (
    ChangeCache,
    DateHistoryTracker,
    StatusChangeDetector,
    feature_entity_id,
)
from taskdigest.incremental.state import DateRecord, SnapshotPair, SnapshotStore, StatusRecord
from taskdigest.incremental.window import TimeWindowPolicy

__all__ = [
    "SnapshotStore",
    "SnapshotPair",
    "StatusRecord",
    "DateRecord",
    "ChangeCache",
    "StatusChangeDetector",
    "DateHistoryTracker",
    "feature_entity_id",
    "TimeWindowPolicy",
]
