"""Shared fixtures for taskdigest tests."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from taskdigest.models import ListTasks, Settings, Task, TaskList

LA = ZoneInfo("America/Los_Angeles")

# Noon in Los Angeles; October 2026 is PDT (UTC-7)
WEDNESDAY_NOON = datetime(2026, 10, 21, 19, 0, tzinfo=timezone.utc)
MONDAY_NOON = datetime(2026, 10, 19, 19, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at Wednesday noon in the reference timezone."""
    return FixedClock(WEDNESDAY_NOON)


@pytest.fixture
def monday_clock():
    """Clock fixed at Monday noon in the reference timezone."""
    return FixedClock(MONDAY_NOON)


@pytest.fixture
def temp_state_dir():
    """Create temporary snapshot directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_state_dir):
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        clickup_api_token="test-token",
        space_name="Engineering",
        folder_name="Product",
        state_dir=temp_state_dir,
        team_members=["Ada Lovelace", "Alan Turing"],
    )


@pytest.fixture
def make_task(clock):
    """Factory for tasks with timestamps relative to the fixed clock."""

    def _make(task_id: str, status: str = "in progress", hours_ago: dict = None, **kwargs) -> Task:
        for field, hours in (hours_ago or {}).items():
            kwargs[field] = clock() - timedelta(hours=hours)
        kwargs.setdefault("name", f"Task {task_id}")
        return Task(id=task_id, status=status, **kwargs)

    return _make


@pytest.fixture
def make_list():
    """Factory for a list with its fetched tasks."""

    def _make(list_id: str, name: str, tasks, content: str = "") -> ListTasks:
        return ListTasks(task_list=TaskList(id=list_id, name=name, content=content), tasks=list(tasks))

    return _make


@pytest.fixture
def mock_source():
    """Mock task source with no comments and no durations."""
    source = MagicMock()
    source.discover_folder = AsyncMock(return_value="folder-1")
    source.fetch_lists = AsyncMock(return_value=[])
    source.fetch_list_details = AsyncMock(return_value={})
    source.fetch_all_tasks = AsyncMock(return_value=[])
    source.fetch_comments = AsyncMock(return_value=[])
    source.fetch_time_in_status = AsyncMock(return_value={})
    return source
