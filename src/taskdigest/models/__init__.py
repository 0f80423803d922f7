"""Data models for tasks, report output and configuration."""

from taskdigest.models.config import Settings
from taskdigest.models.report import (
    BlockedEntry,
    ChangeDescriptor,
    ChangeEntry,
    CompletedEntry,
    CreatedEntry,
    DateHistory,
    DigestReport,
    FeatureNode,
    MilestoneNode,
    TaskUpdateEntry,
)
from taskdigest.models.task import Assignee, ListTasks, Task, TaskList

__all__ = [
    "Assignee",
    "Task",
    "TaskList",
    "ListTasks",
    "ChangeDescriptor",
    "DateHistory",
    "CompletedEntry",
    "BlockedEntry",
    "TaskUpdateEntry",
    "CreatedEntry",
    "ChangeEntry",
    "MilestoneNode",
    "FeatureNode",
    "DigestReport",
    "Settings",
]
