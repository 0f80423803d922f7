"""Data models for tasks and lists read from the task source."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# custom_item_id used by the source for milestone-kind tasks
MILESTONE_ITEM_ID = 1


def parse_epoch_ms(value: Any) -> Optional[datetime]:
    """Parse an epoch-milliseconds value into an aware UTC datetime.

    Args:
        value: Epoch milliseconds as a string or number

    Returns:
        Datetime in UTC, or None if the value is missing or malformed
    """
    if value is None or value == "":
        return None
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class Assignee(BaseModel):
    """A user assigned to a task."""

    id: Optional[str] = Field(None, description="User identifier")
    username: Optional[str] = Field(None, description="Display username")

    @property
    def display_name(self) -> str:
        return self.username or f"User {self.id}"


class Task(BaseModel):
    """A single task as observed in one run. Never written back."""

    id: str = Field(..., description="Opaque task identifier, stable across runs")
    name: str = Field("", description="Task name")
    parent: Optional[str] = Field(None, description="Parent task identifier")
    status: str = Field("", description="Current status label")
    url: Optional[str] = Field(None, description="Link to the task")
    priority: Optional[str] = Field(None, description="Priority label")
    start_date: Optional[datetime] = Field(None, description="Scheduled start")
    due_date: Optional[datetime] = Field(None, description="Scheduled due date")
    date_closed: Optional[datetime] = Field(None, description="Closing timestamp")
    date_done: Optional[datetime] = Field(None, description="Done timestamp")
    date_updated: Optional[datetime] = Field(None, description="Last update timestamp")
    date_created: Optional[datetime] = Field(None, description="Creation timestamp")
    assignees: List[Assignee] = Field(default_factory=list, description="Assigned users")
    list_id: Optional[str] = Field(None, description="Containing list identifier")
    custom_item_id: Optional[int] = Field(None, description="Item-kind discriminator")
    archived: bool = Field(False, description="Whether the task is archived")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Task":
        """Build a task from a raw source payload.

        Args:
            data: Task dictionary as returned by the task API

        Returns:
            Task instance with timestamps normalised to datetimes
        """
        status = data.get("status") or {}
        if isinstance(status, dict):
            status_label = status.get("status") or ""
        else:
            status_label = str(status)

        priority = data.get("priority")
        if isinstance(priority, dict):
            priority = priority.get("priority")

        task_list = data.get("list") or {}
        custom_item_id = data.get("custom_item_id")
        try:
            custom_item_id = int(custom_item_id) if custom_item_id is not None else None
        except (TypeError, ValueError):
            custom_item_id = None

        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            parent=data.get("parent") or None,
            status=status_label,
            url=data.get("url") or None,
            priority=priority,
            start_date=parse_epoch_ms(data.get("start_date")),
            due_date=parse_epoch_ms(data.get("due_date")),
            date_closed=parse_epoch_ms(data.get("date_closed")),
            date_done=parse_epoch_ms(data.get("date_done")),
            date_updated=parse_epoch_ms(data.get("date_updated")),
            date_created=parse_epoch_ms(data.get("date_created")),
            assignees=[
                Assignee(
                    id=str(a["id"]) if a.get("id") is not None else None,
                    username=a.get("username"),
                )
                for a in data.get("assignees") or []
            ],
            list_id=str(task_list["id"]) if task_list.get("id") is not None else None,
            custom_item_id=custom_item_id,
            archived=bool(data.get("archived", False)),
        )

    @property
    def status_key(self) -> str:
        """Lower-cased status used for comparisons."""
        return self.status.lower()

    @property
    def is_milestone(self) -> bool:
        return self.custom_item_id == MILESTONE_ITEM_ID

    @property
    def is_subtask(self) -> bool:
        return self.parent is not None

    @property
    def closed_at(self) -> Optional[datetime]:
        """Closing timestamp, falling back to the done timestamp."""
        return self.date_closed or self.date_done


class TaskList(BaseModel):
    """A list of tasks. Feature lists carry labelled metadata in ``content``."""

    id: str = Field(..., description="List identifier")
    name: str = Field("", description="List name")
    content: str = Field("", description="Free-text list description")
    start_date: Optional[datetime] = Field(None, description="List start date")
    due_date: Optional[datetime] = Field(None, description="List due date")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TaskList":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            content=data.get("content") or "",
            start_date=parse_epoch_ms(data.get("start_date")),
            due_date=parse_epoch_ms(data.get("due_date")),
        )


class ListTasks(BaseModel):
    """All non-archived tasks fetched for one list in one run."""

    task_list: TaskList
    tasks: List[Task] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.task_list.name

    def task_map(self) -> Dict[str, Task]:
        """Index tasks in this list by identifier."""
        return {task.id: task for task in self.tasks}
