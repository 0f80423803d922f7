"""Change detection against the persisted snapshots.

Detects status transitions and superseded date values by diffing freshly
fetched tasks against the last observed state. Both detectors mutate the
in-memory snapshot maps; persisting them is the snapshot pair's job.
"""

from datetime import datetime, tzinfo
from typing import Callable, Dict, Optional

from taskdigest.incremental.state import DateRecord, StatusRecord
from taskdigest.incremental.window import utc_now
from taskdigest.models.report import ChangeDescriptor, DateHistory
from taskdigest.models.task import Task
from taskdigest.report.text import UNSCHEDULED, format_change_time

FEATURE_ENTITY_PREFIX = "feature_"


def feature_entity_id(list_id: str) -> str:
    """Date-snapshot key for a feature list, disjoint from task ids."""
    return f"{FEATURE_ENTITY_PREFIX}{list_id}"


class ChangeCache:
    """Status changes detected during the current run, keyed by task id.

    Write-once per task: the first descriptor recorded for a task is the one
    every later category sees.
    """

    def __init__(self) -> None:
        self._changes: Dict[str, ChangeDescriptor] = {}

    def get(self, task_id: str) -> Optional[ChangeDescriptor]:
        return self._changes.get(task_id)

    def record(self, task_id: str, change: ChangeDescriptor) -> ChangeDescriptor:
        return self._changes.setdefault(task_id, change)

    def clear(self) -> None:
        self._changes.clear()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._changes

    def __len__(self) -> int:
        return len(self._changes)


class StatusChangeDetector:
    """Detects per-task status transitions across runs."""

    def __init__(
        self,
        status_map: Dict[str, StatusRecord],
        cache: ChangeCache,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the detector.

        Args:
            status_map: Mutable status snapshot for this run
            cache: Run-scoped cache of detected changes
            tz: Reference timezone for change times
            clock: Callable returning the current aware datetime
        """
        self.status_map = status_map
        self.cache = cache
        self.tz = tz
        self.clock = clock or utc_now

    def detect(self, task: Task) -> Optional[ChangeDescriptor]:
        """Compare a task's status with its snapshot record.

        The first sighting of a task seeds the snapshot and is never a
        change. A detected change overwrites the record, keeping the prior
        status, and is added to the run cache.

        Args:
            task: Task to evaluate

        Returns:
            ChangeDescriptor if the status differs from the record, else None
        """
        now = self.clock()
        previous = self.status_map.get(task.id)

        if previous is None:
            self.status_map[task.id] = StatusRecord(status=task.status, since=now)
            return None

        if previous.status == task.status:
            return None

        self.status_map[task.id] = StatusRecord(
            status=task.status,
            since=now,
            previous_status=previous.status,
        )
        change = ChangeDescriptor(
            old_status=previous.status,
            new_status=task.status,
            change_time=format_change_time(task.date_updated, self.tz),
        )
        return self.cache.record(task.id, change)

    def observe(self, task: Task) -> Optional[ChangeDescriptor]:
        """Return this run's change for a task, detecting it if not yet seen."""
        cached = self.cache.get(task.id)
        if cached is not None:
            return cached
        return self.detect(task)

    def recover(self, task: Task, cutoff: datetime) -> Optional[ChangeDescriptor]:
        """Rebuild change evidence from the snapshot for a recently settled task.

        Only records written by a detected transition count. A record that
        merely seeds a first observation carries no prior status and is never
        evidence, in this run or any later one.

        Args:
            task: Task whose record was not changed in this evaluation
            cutoff: Earliest ``since`` that still counts as recent

        Returns:
            ``previous -> current`` when the record keeps a distinct prior
            status, ``None -> current`` when the prior status equals the
            current one, or None if the record is missing, is a first
            observation or is older than the cutoff
        """
        record = self.status_map.get(task.id)
        if record is None or record.since < cutoff:
            return None
        if not record.previous_status:
            return None

        change_time = format_change_time(task.date_updated, self.tz)
        if record.previous_status != record.status:
            return ChangeDescriptor(
                old_status=record.previous_status,
                new_status=record.status,
                change_time=change_time,
            )
        return ChangeDescriptor(old_status=None, new_status=record.status, change_time=change_time)


class DateHistoryTracker:
    """Keeps an append-only history of superseded start and due dates."""

    def __init__(self, date_map: Dict[str, DateRecord]):
        """Initialize the tracker.

        Args:
            date_map: Mutable date snapshot for this run
        """
        self.date_map = date_map

    def track(self, entity_id: str, start_date: str, due_date: str) -> DateHistory:
        """Record current dates for an entity and return its histories.

        A previous value is appended to its history only when it exists,
        differs from the current value and is not the unscheduled sentinel.

        Args:
            entity_id: Task id, or a feature entity id
            start_date: Current formatted start date
            due_date: Current formatted due date

        Returns:
            Start and due histories after this observation
        """
        previous = self.date_map.get(entity_id) or DateRecord()

        start_history = list(previous.start_date_history)
        due_history = list(previous.due_date_history)
        if _superseded(previous.start_date, start_date):
            start_history.append(previous.start_date)
        if _superseded(previous.due_date, due_date):
            due_history.append(previous.due_date)

        self.date_map[entity_id] = DateRecord(
            start_date=start_date,
            due_date=due_date,
            start_date_history=start_history,
            due_date_history=due_history,
        )
        return DateHistory(
            start_date_history=list(start_history),
            due_date_history=list(due_history),
        )


def _superseded(previous: Optional[str], current: str) -> bool:
    return bool(previous) and previous != current and previous != UNSCHEDULED
