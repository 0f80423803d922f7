"""Tests for snapshot state persistence."""

import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from taskdigest.incremental.state import (
    DATE_SNAPSHOT_FILE,
    STATUS_SNAPSHOT_FILE,
    DateRecord,
    SnapshotPair,
    SnapshotStore,
    StatusRecord,
)


class TestSnapshotRecords:
    """Test Pydantic snapshot record models."""

    def test_status_record_creation(self):
        """Test creating a StatusRecord."""
        record = StatusRecord(status="in progress", since=datetime.now(timezone.utc))
        assert record.status == "in progress"
        assert record.previous_status is None

    def test_status_record_reads_camel_case(self):
        """Test that the on-disk previousStatus key is accepted."""
        record = StatusRecord.model_validate(
            {"status": "in review", "since": "2026-10-20T08:00:00.000Z", "previousStatus": "in progress"}
        )
        assert record.previous_status == "in progress"
        assert record.since.tzinfo is not None

    def test_naive_since_is_utc(self):
        """Test that a naive since timestamp is treated as UTC."""
        record = StatusRecord.model_validate({"status": "to do", "since": "2026-10-20T08:00:00"})
        assert record.since == datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)

    def test_date_record_defaults(self):
        """Test creating an empty DateRecord."""
        record = DateRecord()
        assert record.start_date is None
        assert record.due_date is None
        assert record.start_date_history == []
        assert record.due_date_history == []

    def test_date_record_serialization_uses_aliases(self):
        """Test that records serialize with the persisted key names."""
        record = DateRecord(start_date="Oct 1, 2026", due_date="Oct 9, 2026", due_date_history=["Oct 2, 2026"])
        data = record.model_dump(by_alias=True)
        assert data == {
            "startDate": "Oct 1, 2026",
            "dueDate": "Oct 9, 2026",
            "startDateHistory": [],
            "dueDateHistory": ["Oct 2, 2026"],
        }


class TestSnapshotStore:
    """Test SnapshotStore functionality."""

    def test_load_missing_file(self):
        """Test that a missing file loads as an empty mapping."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SnapshotStore(Path(tmpdir) / "status.json", StatusRecord)
            assert store.load() == {}

    def test_save_and_load(self):
        """Test saving and loading records."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SnapshotStore(Path(tmpdir) / "status.json", StatusRecord)
            since = datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
            store.save({
                "t1": StatusRecord(status="blocked", since=since, previous_status="in progress"),
                "t2": StatusRecord(status="to do", since=since),
            })

            loaded = SnapshotStore(Path(tmpdir) / "status.json", StatusRecord).load()
            assert set(loaded) == {"t1", "t2"}
            assert loaded["t1"].previous_status == "in progress"
            assert loaded["t2"].since == since

    def test_saved_file_shape(self):
        """Test the persisted JSON keys and that unset fields are omitted."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "status.json"
            store = SnapshotStore(path, StatusRecord)
            store.save({"t1": StatusRecord(status="to do", since=datetime.now(timezone.utc))})

            with open(path) as f:
                data = json.load(f)
            assert set(data["t1"]) == {"status", "since"}

    def test_save_creates_parent_dir(self):
        """Test that saving creates the state directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "dates.json"
            SnapshotStore(path, DateRecord).save({"t1": DateRecord(start_date="TBD", due_date="TBD")})
            assert path.exists()

    def test_atomic_save(self):
        """Test that save is atomic using temporary file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SnapshotStore(Path(tmpdir) / "status.json", StatusRecord)
            store.save({})

            # Verify no temporary files left behind
            temp_files = list(Path(tmpdir).glob(".*.json.tmp"))
            assert len(temp_files) == 0

    def test_failed_save_keeps_previous_file(self):
        """Test that a failed replace leaves the canonical file and no temp file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "status.json"
            store = SnapshotStore(path, StatusRecord)
            store.save({"t1": StatusRecord(status="to do", since=datetime.now(timezone.utc))})
            before = path.read_text()

            with patch("taskdigest.incremental.state.os.replace", side_effect=OSError("disk full")):
                with pytest.raises(OSError):
                    store.save({})

            assert path.read_text() == before
            assert list(Path(tmpdir).glob(".*.json.tmp")) == []

    def test_corrupted_file(self):
        """Test handling of corrupted snapshot file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "status.json"
            path.write_text("invalid json {{{")

            # Should load as empty instead of crashing
            assert SnapshotStore(path, StatusRecord).load() == {}

    def test_non_mapping_file(self):
        """Test that a JSON document that is not an object loads as empty."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "status.json"
            path.write_text("[1, 2, 3]")
            assert SnapshotStore(path, StatusRecord).load() == {}

    def test_invalid_entry_dropped(self):
        """Test that one malformed entry does not discard the others."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "status.json"
            path.write_text(json.dumps({
                "good": {"status": "to do", "since": "2026-10-20T08:00:00Z"},
                "bad": {"since": "not a date"},
            }))

            loaded = SnapshotStore(path, StatusRecord).load()
            assert list(loaded) == ["good"]


class TestSnapshotPair:
    """Test SnapshotPair functionality."""

    def test_file_locations(self):
        """Test that both snapshot files live in the state directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pair = SnapshotPair(Path(tmpdir))
            assert pair.status.path == Path(tmpdir) / STATUS_SNAPSHOT_FILE
            assert pair.dates.path == Path(tmpdir) / DATE_SNAPSHOT_FILE

    def test_commit_and_load(self):
        """Test committing and reloading both snapshots."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pair = SnapshotPair(Path(tmpdir))
            pair.commit(
                {"t1": StatusRecord(status="to do", since=datetime.now(timezone.utc))},
                {"feature_9": DateRecord(start_date="Oct 1, 2026", due_date="TBD")},
            )

            status_map, date_map = SnapshotPair(Path(tmpdir)).load()
            assert "t1" in status_map
            assert date_map["feature_9"].start_date == "Oct 1, 2026"

    def test_independent_failure_domains(self):
        """Test that a corrupt status file does not empty the date snapshot."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pair = SnapshotPair(Path(tmpdir))
            pair.commit({}, {"t1": DateRecord(start_date="TBD", due_date="Oct 9, 2026")})
            pair.status.path.write_text("{{{")

            status_map, date_map = pair.load()
            assert status_map == {}
            assert date_map["t1"].due_date == "Oct 9, 2026"

    def test_failed_staging_leaves_both_files(self):
        """Test that a failure staging the date snapshot writes neither file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pair = SnapshotPair(Path(tmpdir))
            since = datetime.now(timezone.utc)
            pair.commit({"t1": StatusRecord(status="to do", since=since)}, {})
            status_before = pair.status.path.read_text()
            dates_before = pair.dates.path.read_text()

            with patch.object(pair.dates, "stage", side_effect=OSError("disk full")):
                with pytest.raises(OSError):
                    pair.commit({"t1": StatusRecord(status="blocked", since=since)}, {})

            assert pair.status.path.read_text() == status_before
            assert pair.dates.path.read_text() == dates_before
            assert list(Path(tmpdir).glob(".*.json.tmp")) == []

    def test_stats(self):
        """Test snapshot statistics."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pair = SnapshotPair(Path(tmpdir))
            stats = pair.stats()
            assert stats["status_exists"] is False
            assert stats["status_entries"] == 0

            pair.commit(
                {"t1": StatusRecord(status="to do", since=datetime.now(timezone.utc))},
                {},
            )
            stats = pair.stats()
            assert stats["status_exists"] is True
            assert stats["status_entries"] == 1
            assert stats["date_entries"] == 0
