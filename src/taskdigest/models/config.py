"""Configuration models."""

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    List-valued settings are read from the environment as JSON arrays,
    e.g. ``TEAM_MEMBERS='["Ada Lovelace", "Alan Turing"]'``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Task source
    clickup_api_token: Optional[str] = None
    clickup_base_url: str = "https://api.clickup.com/api/v2"
    space_name: str = ""
    folder_name: str = ""
    min_request_interval_ms: int = 650
    request_timeout: float = 30.0

    # Reporting
    timezone: str = "America/Los_Angeles"
    team_members: List[str] = Field(default_factory=list)
    excluded_lists: List[str] = Field(default_factory=lambda: ["graveyard"])
    feature_list_prefix: str = "v1.5"
    task_update_lists: List[str] = Field(
        default_factory=lambda: ["Priority", "QA/Usability", "Fast-follow"]
    )
    update_excluded_statuses: List[str] = Field(
        default_factory=lambda: ["to do", "paused", "complete", "closed"]
    )
    feature_excluded_statuses: List[str] = Field(
        default_factory=lambda: [
            "to do",
            "selected for development",
            "in planning",
            "paused",
            "blocked",
            "abandoned",
        ]
    )
    activity_window_hours: int = 24
    feature_window_hours: int = 48

    # Snapshot state
    state_dir: Path = Path("./.taskdigest")

    # Logging
    log_level: str = "INFO"
