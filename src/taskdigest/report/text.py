"""Formatting and free-text parsing helpers for digest entries."""

import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from taskdigest.models.task import Task, TaskList

# Sentinel for a date that is not set or could not be parsed
UNSCHEDULED = "TBD"

BOILERPLATE_PATTERNS = [
    re.compile(r"^NOTE:\s*\n*\s*If you get blocked", re.IGNORECASE),
    re.compile(r"^Template:", re.IGNORECASE),
]


def format_date(value: Optional[datetime], tz: tzinfo) -> str:
    """Format a timestamp as ``"Jan 5, 2025"`` in the reference zone.

    Args:
        value: Timestamp, or None if unset
        tz: Reference timezone

    Returns:
        Formatted date, or the unscheduled sentinel
    """
    if value is None:
        return UNSCHEDULED
    local = value.astimezone(tz)
    return f"{local:%b} {local.day}, {local.year}"


def format_change_time(value: Optional[datetime], tz: tzinfo) -> Optional[str]:
    """Format a timestamp as ``"Jan 5, 3:07 PM"`` in the reference zone."""
    if value is None:
        return None
    local = value.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {hour}:{local:%M} {local:%p}"


def format_long_date(value: datetime, tz: tzinfo) -> str:
    """Format a timestamp as ``"October 19, 2026"`` in the reference zone."""
    local = value.astimezone(tz)
    return f"{local:%B} {local.day}, {local.year}"


def extract_content_line(content: Optional[str], label: str) -> str:
    """Extract the value of a ``Label: value`` line from free text.

    Matching is case-insensitive and anchored at the start of a line. The
    first matching line wins.

    Args:
        content: Free text, possibly empty
        label: Label to look for, without the colon

    Returns:
        Trimmed value, or an empty string if the label is absent
    """
    if not content:
        return ""
    pattern = re.compile(rf"^{re.escape(label)}:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
    match = pattern.search(content)
    return match.group(1).strip() if match else ""


@dataclass
class FeatureMetadata:
    """Labelled fields read from a feature list's description."""

    status: str
    original_sizing: str
    sizing_after_planning: str
    daily_report_note: str


def parse_feature_metadata(content: Optional[str]) -> FeatureMetadata:
    """Read feature metadata from labelled lines. Missing labels get defaults."""
    original_sizing = extract_content_line(content, "Original Sizing") or extract_content_line(
        content, "Initial Sizing"
    )
    return FeatureMetadata(
        status=extract_content_line(content, "Status") or UNSCHEDULED,
        original_sizing=original_sizing or UNSCHEDULED,
        sizing_after_planning=extract_content_line(content, "Sizing After Technical Planning")
        or UNSCHEDULED,
        daily_report_note=extract_content_line(content, "Daily Report Note"),
    )


def comment_text(comment: Dict[str, Any]) -> Optional[str]:
    """Plain text of a comment, from ``comment_text`` or the rich-text parts."""
    text = comment.get("comment_text")
    if isinstance(text, str) and text:
        return text
    parts = comment.get("comment")
    if not isinstance(parts, list):
        return None
    joined = "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
    return joined.strip() or None


def most_recent_meaningful_comment(comments: Iterable[Dict[str, Any]]) -> Optional[str]:
    """Pick the newest comment that is not template boilerplate.

    Args:
        comments: Comments ordered newest first, as the source returns them

    Returns:
        Comment text collapsed to a single line, or None
    """
    for comment in comments:
        if not isinstance(comment, dict):
            continue
        text = comment_text(comment)
        if not text:
            continue
        stripped = text.strip()
        if any(pattern.search(stripped) for pattern in BOILERPLATE_PATTERNS):
            continue
        return re.sub(r"\s+", " ", stripped)
    return None


def matched_members(task: Task, team_members: Iterable[str]) -> List[str]:
    """Team members assigned to a task, matched loosely by username."""
    assignee_names = [a.display_name.lower() for a in task.assignees]
    matches = []
    for member in team_members:
        member_lower = member.lower()
        if any(
            name == member_lower or member_lower in name or name in member_lower
            for name in assignee_names
        ):
            matches.append(member)
    return matches


def initials(full_name: str) -> str:
    return "".join(word[0].upper() for word in full_name.split())


def member_initials(task: Task, team_members: Iterable[str]) -> List[str]:
    return [initials(member) for member in matched_members(task, team_members)]


def is_feature_list(task_list: TaskList, prefix: str) -> bool:
    return bool(prefix) and task_list.name.lower().startswith(prefix.lower())


def strip_feature_prefix(name: str, prefix: str) -> str:
    """Remove the feature prefix from a list name for display."""
    if not prefix:
        return name.strip()
    return re.sub(rf"^{re.escape(prefix)}\s*", "", name, flags=re.IGNORECASE).strip()
