"""Assembles digest categories from one fetched snapshot of task state."""

from datetime import datetime
from typing import Dict, List, Optional, Set

import structlog

from taskdigest.incremental.delta import (
    DateHistoryTracker,
    StatusChangeDetector,
    feature_entity_id,
)
from taskdigest.incremental.window import TimeWindowPolicy
from taskdigest.models.config import Settings
from taskdigest.models.report import (
    BlockedEntry,
    ChangeDescriptor,
    ChangeEntry,
    CompletedEntry,
    CreatedEntry,
    DigestReport,
    FeatureNode,
    MilestoneNode,
    TaskUpdateEntry,
)
from taskdigest.models.task import ListTasks, Task, TaskList
from taskdigest.report.text import (
    format_date,
    is_feature_list,
    member_initials,
    most_recent_meaningful_comment,
    parse_feature_metadata,
    strip_feature_prefix,
)
from taskdigest.source.base import BaseTaskSource, SourceError

logger = structlog.get_logger(__name__)

BLOCKED_STATUS = "blocked"


class ChangeAggregator:
    """Builds the completed, blocked, updates, created and feature views.

    All categories read the same list of fetched tasks and share one status
    detector. Categories must be built in the order of :meth:`build`: the
    detector consumes a transition the first time it sees a task, so later
    categories rely on the detector's run cache to surface it again.
    """

    def __init__(
        self,
        source: BaseTaskSource,
        settings: Settings,
        detector: StatusChangeDetector,
        tracker: DateHistoryTracker,
        policy: TimeWindowPolicy,
    ) -> None:
        """Initialize the aggregator.

        Args:
            source: Task source, used only for per-task notes and durations
            settings: Application settings with list and status rules
            detector: Status detector bound to this run's snapshot and cache
            tracker: Date tracker bound to this run's snapshot
            policy: Lookback window policy
        """
        self.source = source
        self.settings = settings
        self.detector = detector
        self.tracker = tracker
        self.policy = policy
        self.tz = policy.tz

    # ============================================================================
    # Shared helpers
    # ============================================================================

    def _is_excluded_list(self, task_list: TaskList) -> bool:
        excluded = {name.lower() for name in self.settings.excluded_lists}
        return task_list.name.lower() in excluded

    def _is_feature_list(self, task_list: TaskList) -> bool:
        return is_feature_list(task_list, self.settings.feature_list_prefix)

    def _initials(self, task: Task) -> List[str]:
        return member_initials(task, self.settings.team_members)

    def _update_lists(self, all_lists: List[ListTasks]) -> List[ListTasks]:
        """Lists named in the update allow-list, in allow-list order."""
        selected = []
        for name in self.settings.task_update_lists:
            entry = next((lt for lt in all_lists if lt.name.lower() == name.lower()), None)
            if entry is not None:
                selected.append(entry)
        return selected

    async def _fetch_note(self, task: Task) -> Optional[str]:
        """Most recent meaningful comment, or None if comments are unavailable."""
        try:
            comments = await self.source.fetch_comments(task.id)
        except SourceError as e:
            logger.warning("note_unavailable", task_id=task.id, error=str(e))
            return None
        return most_recent_meaningful_comment(comments)

    # ============================================================================
    # Categories
    # ============================================================================

    async def build_completed(self, all_lists: List[ListTasks]) -> List[CompletedEntry]:
        """Tasks closed inside the activity window."""
        cutoff = self.policy.cutoff(self.settings.activity_window_hours)
        completed = []

        for entry in all_lists:
            if self._is_excluded_list(entry.task_list) or self._is_feature_list(entry.task_list):
                continue
            for task in entry.tasks:
                closed_at = task.closed_at
                if closed_at is None or closed_at < cutoff:
                    continue

                status_change = self.detector.observe(task)
                start_date = format_date(task.start_date, self.tz)
                history = self.tracker.track(
                    task.id, start_date, format_date(task.due_date, self.tz)
                )

                completed.append(
                    CompletedEntry(
                        id=task.id,
                        name=task.name,
                        url=task.url,
                        priority=task.priority,
                        initials=self._initials(task),
                        list_name=entry.name,
                        start_date=start_date,
                        completed_date=format_date(closed_at, self.tz),
                        start_date_history=history.start_date_history,
                        status_change=status_change,
                        note=await self._fetch_note(task),
                    )
                )

        logger.info("completed_built", count=len(completed))
        return completed

    async def build_blocked(self, all_lists: List[ListTasks]) -> List[BlockedEntry]:
        """Blocked tasks; a subtask counts only when its parent is blocked too."""
        blocked = []

        for entry in all_lists:
            if self._is_excluded_list(entry.task_list):
                continue
            task_map = entry.task_map()

            for task in entry.tasks:
                if task.status_key != BLOCKED_STATUS:
                    continue
                if task.is_subtask:
                    parent = task_map.get(task.parent)
                    if parent is None or parent.status_key != BLOCKED_STATUS:
                        continue

                blocked.append(
                    BlockedEntry(**await self._scheduled_fields(task, entry.name))
                )

        logger.info("blocked_built", count=len(blocked))
        return blocked

    async def build_task_updates(
        self, all_lists: List[ListTasks], completed_ids: Set[str]
    ) -> List[TaskUpdateEntry]:
        """Active top-level tasks from the update lists, minus completed ones."""
        excluded_statuses = {s.lower() for s in self.settings.update_excluded_statuses}
        updates = []

        for entry in self._update_lists(all_lists):
            for task in entry.tasks:
                if task.is_subtask:
                    continue
                if task.status_key in excluded_statuses:
                    continue
                if task.id in completed_ids:
                    continue

                fields = await self._scheduled_fields(task, entry.name)
                updates.append(TaskUpdateEntry(status=task.status or "Unknown", **fields))

        await self.attach_time_in_status(updates)
        logger.info("task_updates_built", count=len(updates))
        return updates

    async def attach_time_in_status(self, updates: List[TaskUpdateEntry]) -> None:
        """Fill durations in the current status. Missing data leaves them unset."""
        if not updates:
            return
        try:
            durations = await self.source.fetch_time_in_status([u.id for u in updates])
        except SourceError as e:
            logger.warning("time_in_status_unavailable", error=str(e))
            return
        for update in updates:
            update.time_in_status_ms = durations.get(update.id)

    async def build_recently_created(self, all_lists: List[ListTasks]) -> List[CreatedEntry]:
        """Top-level tasks from the update lists created inside the window."""
        cutoff = self.policy.cutoff(self.settings.activity_window_hours)
        created = []

        for entry in self._update_lists(all_lists):
            for task in entry.tasks:
                if task.is_subtask:
                    continue
                if task.date_created is None or task.date_created < cutoff:
                    continue

                created.append(
                    CreatedEntry(
                        id=task.id,
                        name=task.name,
                        url=task.url,
                        priority=task.priority,
                        initials=self._initials(task),
                        list_name=entry.name,
                        note=await self._fetch_note(task),
                    )
                )

        logger.info("recently_created_built", count=len(created))
        return created

    def build_features(
        self, all_lists: List[ListTasks], details: Dict[str, TaskList]
    ) -> List[FeatureNode]:
        """Feature lists with milestone nodes and recent change evidence."""
        features = []
        for entry in all_lists:
            if not self._is_feature_list(entry.task_list):
                continue
            detailed = details.get(entry.task_list.id, entry.task_list)
            features.append(self._build_feature(entry, detailed))

        logger.info("features_built", count=len(features))
        return features

    def _build_feature(self, entry: ListTasks, detailed: TaskList) -> FeatureNode:
        metadata = parse_feature_metadata(detailed.content)

        initials: List[str] = []
        for task in entry.tasks:
            for value in self._initials(task):
                if value not in initials:
                    initials.append(value)

        start_date = format_date(detailed.start_date, self.tz)
        due_date = format_date(detailed.due_date, self.tz)
        history = self.tracker.track(feature_entity_id(entry.task_list.id), start_date, due_date)

        milestones: List[MilestoneNode] = []
        milestone_map: Dict[str, MilestoneNode] = {}
        for task in entry.tasks:
            if not task.is_milestone:
                continue
            node = self._build_milestone(task)
            milestones.append(node)
            milestone_map[task.id] = node

        cutoff = self.policy.cutoff(self.settings.feature_window_hours)
        excluded_statuses = {s.lower() for s in self.settings.feature_excluded_statuses}
        other_changes: List[ChangeEntry] = []

        for task in entry.tasks:
            if task.is_milestone:
                continue
            if task.status_key in excluded_statuses:
                continue
            if task.date_updated is None or task.date_updated < cutoff:
                continue

            status_change = self._feature_evidence(task, cutoff)
            if status_change is None:
                continue

            change = ChangeEntry(id=task.id, name=task.name, url=task.url, status_change=status_change)
            parent = milestone_map.get(task.parent) if task.parent else None
            if parent is not None:
                parent.recent_changes.append(change)
            else:
                other_changes.append(change)

        if other_changes:
            milestones.append(MilestoneNode.other(other_changes))

        return FeatureNode(
            id=entry.task_list.id,
            name=strip_feature_prefix(entry.name, self.settings.feature_list_prefix),
            initials=initials,
            status=metadata.status,
            original_sizing=metadata.original_sizing,
            sizing_after_planning=metadata.sizing_after_planning,
            daily_report_note=metadata.daily_report_note,
            start_date=start_date,
            due_date=due_date,
            start_date_history=history.start_date_history,
            due_date_history=history.due_date_history,
            milestones=milestones,
        )

    def _build_milestone(self, task: Task) -> MilestoneNode:
        start_date = format_date(task.start_date, self.tz)
        due_date = format_date(task.due_date, self.tz)
        history = self.tracker.track(task.id, start_date, due_date)
        return MilestoneNode(
            id=task.id,
            name=task.name,
            url=task.url,
            priority=task.priority,
            initials=self._initials(task),
            status=task.status or "Unknown",
            start_date=start_date,
            due_date=due_date,
            start_date_history=history.start_date_history,
            due_date_history=history.due_date_history,
            status_change=self.detector.observe(task),
        )

    def _feature_evidence(self, task: Task, cutoff: datetime) -> Optional[ChangeDescriptor]:
        """Change seen this run, else a recent change persisted by an earlier run."""
        change = self.detector.observe(task)
        if change is not None:
            return change
        return self.detector.recover(task, cutoff)

    async def _scheduled_fields(self, task: Task, list_name: str) -> dict:
        """Fields shared by entries that show start and due dates."""
        status_change = self.detector.observe(task)
        start_date = format_date(task.start_date, self.tz)
        due_date = format_date(task.due_date, self.tz)
        history = self.tracker.track(task.id, start_date, due_date)
        return {
            "id": task.id,
            "name": task.name,
            "url": task.url,
            "priority": task.priority,
            "initials": self._initials(task),
            "list_name": list_name,
            "start_date": start_date,
            "due_date": due_date,
            "start_date_history": history.start_date_history,
            "due_date_history": history.due_date_history,
            "status_change": status_change,
            "note": await self._fetch_note(task),
        }

    # ============================================================================
    # Full report
    # ============================================================================

    async def build(
        self, all_lists: List[ListTasks], details: Dict[str, TaskList]
    ) -> DigestReport:
        """Build every category in dependency order.

        Args:
            all_lists: Tasks fetched once for this run, grouped by list
            details: Detailed list records keyed by list id

        Returns:
            The complete digest report
        """
        completed = await self.build_completed(all_lists)
        completed_ids = {entry.id for entry in completed}
        blocked = await self.build_blocked(all_lists)
        task_updates = await self.build_task_updates(all_lists, completed_ids)
        recently_created = await self.build_recently_created(all_lists)
        features = self.build_features(all_lists, details)

        return DigestReport(
            generated_at=self.policy.now(),
            report_date=self.policy.report_date(),
            window_label=self.policy.label(self.settings.activity_window_hours),
            completed=completed,
            blocked=blocked,
            task_updates=task_updates,
            recently_created=recently_created,
            features=features,
        )
