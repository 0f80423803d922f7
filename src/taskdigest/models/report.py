"""Report models produced by one digest run and consumed by a renderer."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ChangeDescriptor(BaseModel):
    """One detected status transition.

    ``old_status`` is None when the current status is known but the prior
    value is not (a task that recently settled in a previous run).
    """

    old_status: Optional[str] = Field(None, description="Status before the change")
    new_status: str = Field(..., description="Status after the change")
    change_time: Optional[str] = Field(None, description="Human-readable change time")


class DateHistory(BaseModel):
    """Superseded date values for one entity, oldest first."""

    start_date_history: List[str] = Field(default_factory=list)
    due_date_history: List[str] = Field(default_factory=list)


class CompletedEntry(BaseModel):
    """A task closed inside the activity window."""

    id: str
    name: str
    url: Optional[str] = None
    priority: Optional[str] = None
    initials: List[str] = Field(default_factory=list)
    list_name: str
    start_date: str
    completed_date: str
    start_date_history: List[str] = Field(default_factory=list)
    status_change: Optional[ChangeDescriptor] = None
    note: Optional[str] = None


class BlockedEntry(BaseModel):
    """A task currently blocked."""

    id: str
    name: str
    url: Optional[str] = None
    priority: Optional[str] = None
    initials: List[str] = Field(default_factory=list)
    list_name: str
    start_date: str
    due_date: str
    start_date_history: List[str] = Field(default_factory=list)
    due_date_history: List[str] = Field(default_factory=list)
    status_change: Optional[ChangeDescriptor] = None
    note: Optional[str] = None


class TaskUpdateEntry(BlockedEntry):
    """An active top-level task from an update list."""

    status: str = "Unknown"
    time_in_status_ms: Optional[int] = Field(
        None, description="Time spent in the current status, when available"
    )


class CreatedEntry(BaseModel):
    """A top-level task created inside the activity window."""

    id: str
    name: str
    url: Optional[str] = None
    priority: Optional[str] = None
    initials: List[str] = Field(default_factory=list)
    list_name: str
    note: Optional[str] = None


class ChangeEntry(BaseModel):
    """Status-change evidence for a task inside a feature."""

    id: str
    name: str
    url: Optional[str] = None
    status_change: ChangeDescriptor


class MilestoneNode(BaseModel):
    """A milestone task and the recent changes of its descendants."""

    id: Optional[str] = None
    name: str
    url: Optional[str] = None
    priority: Optional[str] = None
    initials: List[str] = Field(default_factory=list)
    status: str = ""
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    start_date_history: List[str] = Field(default_factory=list)
    due_date_history: List[str] = Field(default_factory=list)
    status_change: Optional[ChangeDescriptor] = None
    recent_changes: List[ChangeEntry] = Field(default_factory=list)

    @classmethod
    def other(cls, entries: List[ChangeEntry]) -> "MilestoneNode":
        """Bucket for changes whose parent is not a tracked milestone."""
        return cls(id=None, name="Other", recent_changes=list(entries))

    @property
    def is_other(self) -> bool:
        return self.id is None


class FeatureNode(BaseModel):
    """A tracked feature list with its metadata and milestone tree."""

    id: str
    name: str
    initials: List[str] = Field(default_factory=list)
    status: str = "TBD"
    original_sizing: str = "TBD"
    sizing_after_planning: str = "TBD"
    daily_report_note: str = ""
    start_date: str = "TBD"
    due_date: str = "TBD"
    start_date_history: List[str] = Field(default_factory=list)
    due_date_history: List[str] = Field(default_factory=list)
    milestones: List[MilestoneNode] = Field(default_factory=list)


class DigestReport(BaseModel):
    """All category buckets for one run."""

    generated_at: datetime
    report_date: str
    window_label: str
    completed: List[CompletedEntry] = Field(default_factory=list)
    blocked: List[BlockedEntry] = Field(default_factory=list)
    task_updates: List[TaskUpdateEntry] = Field(default_factory=list)
    recently_created: List[CreatedEntry] = Field(default_factory=list)
    features: List[FeatureNode] = Field(default_factory=list)

    def counts(self) -> dict:
        """Number of entries per category."""
        return {
            "completed": len(self.completed),
            "blocked": len(self.blocked),
            "task_updates": len(self.task_updates),
            "recently_created": len(self.recently_created),
            "features": len(self.features),
        }
