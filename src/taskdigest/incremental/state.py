"""Snapshot persistence for incremental change detection.

Two independent JSON documents keep the last observed state per entity:
one for task statuses and one for task and feature dates. Each is loaded
with "missing or unparsable means empty" semantics and written atomically.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generic, List, Optional, Tuple, Type, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)

STATUS_SNAPSHOT_FILE = "status-timestamps.json"
DATE_SNAPSHOT_FILE = "feature-dates.json"


class StatusRecord(BaseModel):
    """Last observed status for one task."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(..., description="Status at the last detected change or first sighting")
    since: datetime = Field(..., description="When that status was first observed")
    previous_status: Optional[str] = Field(
        None, alias="previousStatus", description="Status before the last detected change"
    )

    @field_validator("since")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DateRecord(BaseModel):
    """Current formatted dates and superseded values for one entity."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[str] = Field(None, alias="startDate")
    due_date: Optional[str] = Field(None, alias="dueDate")
    start_date_history: List[str] = Field(default_factory=list, alias="startDateHistory")
    due_date_history: List[str] = Field(default_factory=list, alias="dueDateHistory")


RecordT = TypeVar("RecordT", bound=BaseModel)


class SnapshotStore(Generic[RecordT]):
    """Loads and atomically saves one entity-keyed snapshot file."""

    def __init__(self, path: Path, record_type: Type[RecordT]):
        """Initialize the store.

        Args:
            path: Canonical path of the snapshot file
            record_type: Pydantic model used for each entry
        """
        self.path = Path(path)
        self.record_type = record_type

    def load(self) -> Dict[str, RecordT]:
        """Load the persisted mapping.

        Returns:
            Mapping of entity id to record. Empty if the file is missing or
            cannot be parsed; corrupt entries are dropped individually.
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("snapshot_unreadable", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("snapshot_not_a_mapping", path=str(self.path))
            return {}

        records: Dict[str, RecordT] = {}
        for entity_id, raw in data.items():
            try:
                records[entity_id] = self.record_type.model_validate(raw)
            except ValidationError as e:
                logger.warning(
                    "snapshot_entry_dropped",
                    path=str(self.path),
                    entity_id=entity_id,
                    error=str(e),
                )
        return records

    def serialize(self, mapping: Dict[str, RecordT]) -> dict:
        return {
            entity_id: record.model_dump(mode="json", by_alias=True, exclude_none=True)
            for entity_id, record in mapping.items()
        }

    def stage(self, mapping: Dict[str, RecordT]) -> str:
        """Write the mapping to a temporary file next to the canonical path.

        Returns:
            Path of the temporary file, ready to be moved into place
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.stem}_", suffix=".json.tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.serialize(mapping), f, indent=2)
        except Exception:
            _discard(temp_path)
            raise
        return temp_path

    def save(self, mapping: Dict[str, RecordT]) -> None:
        """Save the mapping using a temporary file and atomic rename."""
        temp_path = self.stage(mapping)
        try:
            os.replace(temp_path, self.path)
        except Exception:
            _discard(temp_path)
            raise

    def entry_count(self) -> int:
        return len(self.load())


def _discard(temp_path: str) -> None:
    try:
        os.unlink(temp_path)
    except OSError:
        pass


class SnapshotPair:
    """The status and date snapshots that persist between runs.

    Both files are written only after a fully successful run. Each is an
    independent failure domain on load.
    """

    def __init__(self, state_dir: Path):
        """Initialize the snapshot pair.

        Args:
            state_dir: Directory holding both snapshot files
        """
        self.state_dir = Path(state_dir)
        self.status = SnapshotStore(self.state_dir / STATUS_SNAPSHOT_FILE, StatusRecord)
        self.dates = SnapshotStore(self.state_dir / DATE_SNAPSHOT_FILE, DateRecord)

    def load(self) -> Tuple[Dict[str, StatusRecord], Dict[str, DateRecord]]:
        """Load both snapshots.

        Returns:
            Tuple of (status_map, date_map)
        """
        return self.status.load(), self.dates.load()

    def commit(
        self,
        status_map: Dict[str, StatusRecord],
        date_map: Dict[str, DateRecord],
    ) -> None:
        """Persist both snapshots.

        Both temporary files are written before either canonical file is
        replaced, so a serialization or disk error leaves both untouched.
        """
        status_tmp = self.status.stage(status_map)
        try:
            dates_tmp = self.dates.stage(date_map)
        except Exception:
            _discard(status_tmp)
            raise

        try:
            os.replace(status_tmp, self.status.path)
        except Exception:
            _discard(status_tmp)
            _discard(dates_tmp)
            raise
        try:
            os.replace(dates_tmp, self.dates.path)
        except Exception:
            _discard(dates_tmp)
            raise

        logger.info(
            "snapshots_saved",
            status_entries=len(status_map),
            date_entries=len(date_map),
            state_dir=str(self.state_dir),
        )

    def stats(self) -> dict:
        """Entry counts and locations of both snapshot files."""
        return {
            "state_dir": str(self.state_dir),
            "status_file": str(self.status.path),
            "status_exists": self.status.path.exists(),
            "status_entries": self.status.entry_count(),
            "date_file": str(self.dates.path),
            "date_exists": self.dates.path.exists(),
            "date_entries": self.dates.entry_count(),
        }
