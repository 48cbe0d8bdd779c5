"""Unit tests for collection-status parsing and the last-backup check."""

import pytest
from datetime import datetime

from backup2surfsara.duplicity.exceptions import StatusParseError
from backup2surfsara.duplicity.status import (
    SetType,
    check_last_backup,
    parse_collection_status,
    parse_duplicity_time,
)


class TestParseDuplicityTime:
    """Tests for parse_duplicity_time."""

    def test_asctime_format(self):
        assert parse_duplicity_time("Mon Oct 12 03:00:05 2026") == datetime(2026, 10, 12, 3, 0, 5)

    def test_padded_day(self):
        """Test asctime's double space before single-digit days."""
        assert parse_duplicity_time("Fri Oct  2 03:00:05 2026") == datetime(2026, 10, 2, 3, 0, 5)

    def test_none(self):
        assert parse_duplicity_time("none") is None

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_duplicity_time("yesterday-ish")


class TestParseCollectionStatus:
    """Tests for parse_collection_status."""

    def test_chains(self, collection_status_output):
        """Test both chains and their sets are found."""
        status = parse_collection_status(collection_status_output)

        assert len(status.chains) == 2
        secondary, primary = status.chains
        assert secondary.primary is False
        assert primary.primary is True
        assert status.primary_chain is primary

        assert secondary.start_time == datetime(2026, 9, 11, 3, 0, 2)
        assert secondary.end_time == datetime(2026, 9, 12, 3, 0, 3)
        assert secondary.volumes == 5

        assert [s.set_type for s in primary.sets] == [
            SetType.FULL, SetType.INCREMENTAL, SetType.INCREMENTAL,
        ]
        assert primary.sets[0].volumes == 3
        assert status.backup_count == 5

    def test_last_dates(self, collection_status_output):
        """Test last full and last backup."""
        status = parse_collection_status(collection_status_output)
        assert status.last_full_backup == datetime(2026, 10, 12, 3, 0, 5)
        assert status.last_backup == datetime(2026, 10, 18, 3, 0, 4)
        assert status.clean is True

    def test_empty_collection(self, empty_collection_status_output):
        """Test a target without any backups."""
        status = parse_collection_status(empty_collection_status_output)
        assert status.chains == []
        assert status.last_full_backup is None
        assert status.last_backup is None
        assert status.primary_chain is None
        assert status.clean is True

    def test_incomplete_sets_flagged(self, collection_status_output):
        """Test that leftovers from an interrupted backup are reported."""
        output = collection_status_output.replace(
            "No orphaned or incomplete backup sets found.",
            "Also found 0 backup sets not part of any chain,\nand 1 incomplete backup set.",
        )
        assert parse_collection_status(output).clean is False

    def test_bad_time_raises(self):
        """Test that an unparseable time is reported with its line."""
        with pytest.raises(StatusParseError, match="Chain start time"):
            parse_collection_status("Chain start time: sometime\n")


class TestCheckLastBackup:
    """Tests for check_last_backup."""

    def test_recent_backup_ok(self, collection_status_output):
        status = parse_collection_status(collection_status_output)
        result = check_last_backup(status, datetime(2026, 10, 17, 12, 0, 0))

        assert result.ok is True
        assert result.last_backup == datetime(2026, 10, 18, 3, 0, 4)
        assert "newer than" in result.message

    def test_backup_exactly_at_reference_ok(self, collection_status_output):
        status = parse_collection_status(collection_status_output)
        assert check_last_backup(status, datetime(2026, 10, 18, 3, 0, 4)).ok is True

    def test_stale_backup_fails(self, collection_status_output):
        status = parse_collection_status(collection_status_output)
        result = check_last_backup(status, datetime(2026, 10, 19, 0, 0, 0))

        assert result.ok is False
        assert "older than" in result.message

    def test_no_backups_fails(self, empty_collection_status_output):
        status = parse_collection_status(empty_collection_status_output)
        result = check_last_backup(status, datetime(2026, 10, 19))

        assert result.ok is False
        assert result.last_backup is None
        assert result.message == "No backups found"
