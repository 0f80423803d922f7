"""Digest run manager - orchestrates one incremental run."""

from datetime import datetime
from typing import Callable, Optional

import structlog

from taskdigest.incremental.delta import ChangeCache, DateHistoryTracker, StatusChangeDetector
from taskdigest.incremental.state import SnapshotPair
from taskdigest.incremental.window import TimeWindowPolicy
from taskdigest.models.config import Settings
from taskdigest.models.report import DigestReport
from taskdigest.report.aggregator import ChangeAggregator
from taskdigest.source.base import BaseTaskSource

logger = structlog.get_logger(__name__)


class DigestRunManager:
    """Runs the fetch, detect, aggregate and persist sequence.

    Snapshots are written only after every category has been built, so a
    run that fails partway leaves the previous snapshots untouched.
    """

    def __init__(
        self,
        source: BaseTaskSource,
        settings: Settings,
        snapshots: Optional[SnapshotPair] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the run manager.

        Args:
            source: Task source to read from
            settings: Application settings
            snapshots: Snapshot pair (defaults to one in ``settings.state_dir``)
            clock: Callable returning the current aware datetime
        """
        self.source = source
        self.settings = settings
        self.snapshots = snapshots or SnapshotPair(settings.state_dir)
        self.policy = TimeWindowPolicy(settings.timezone, clock)
        self.cache = ChangeCache()

    async def run(self, save: bool = True) -> DigestReport:
        """Produce one digest.

        Args:
            save: Whether to persist the updated snapshots

        Returns:
            The digest report

        Raises:
            SourceError: If discovery, list or task fetching fails
        """
        self.cache.clear()
        status_map, date_map = self.snapshots.load()
        logger.info(
            "snapshots_loaded",
            status_entries=len(status_map),
            date_entries=len(date_map),
        )

        folder_id = await self.source.discover_folder()
        lists = await self.source.fetch_lists(folder_id)
        details = await self.source.fetch_list_details(lists)
        all_lists = await self.source.fetch_all_tasks(lists)

        detector = StatusChangeDetector(status_map, self.cache, self.policy.tz, self.policy.clock)
        tracker = DateHistoryTracker(date_map)
        aggregator = ChangeAggregator(self.source, self.settings, detector, tracker, self.policy)
        report = await aggregator.build(all_lists, details)

        if save:
            self.snapshots.commit(status_map, date_map)

        logger.info("digest_built", changes=len(self.cache), **report.counts())
        return report
