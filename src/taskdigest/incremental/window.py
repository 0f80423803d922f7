"""Lookback window policy with weekend rollover."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from taskdigest.report.text import format_long_date

ROLLOVER_HOURS = 72
MONDAY = 0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeWindowPolicy:
    """Computes activity cutoffs in a fixed reference timezone.

    On the first weekday after the weekend the window widens to 72 hours so
    Friday-to-Sunday activity lands in Monday's digest.
    """

    def __init__(
        self,
        timezone_name: str = "America/Los_Angeles",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the policy.

        Args:
            timezone_name: IANA name of the reference timezone
            clock: Callable returning the current aware datetime
        """
        self.tz = ZoneInfo(timezone_name)
        self.clock = clock or utc_now

    def now(self) -> datetime:
        return self.clock()

    def is_rollover_day(self) -> bool:
        """Whether today, in the reference zone, is Monday."""
        return self.now().astimezone(self.tz).weekday() == MONDAY

    def hours_back(self, default_hours: int = 24) -> int:
        if self.is_rollover_day():
            return max(ROLLOVER_HOURS, default_hours)
        return default_hours

    def cutoff(self, default_hours: int = 24) -> datetime:
        """Earliest timestamp still considered recent.

        Args:
            default_hours: Window length on days other than Monday

        Returns:
            Aware datetime of the cutoff
        """
        return self.now() - timedelta(hours=self.hours_back(default_hours))

    def label(self, default_hours: int = 24) -> str:
        """Human label for a window, consistent with :meth:`cutoff`."""
        hours = self.hours_back(default_hours)
        if self.is_rollover_day() and hours == ROLLOVER_HOURS:
            return "since Friday"
        return f"in the last {hours} hours"

    def report_date(self) -> str:
        return format_long_date(self.now(), self.tz)
