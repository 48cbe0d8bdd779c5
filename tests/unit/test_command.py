"""Unit tests for DuplicityCommand argument construction."""

import pytest

from backup2surfsara.duplicity.command import DuplicityCommand


EXPECTED_EXCLUDES = [
    "--exclude", "/proc",
    "--exclude", "/sys",
    "--exclude", "/tmp",
    "--exclude", "/var/tmp",
    "--exclude", "/var/log",
    "--exclude", "/var/www/cobbler/repo_mirror",
    "--exclude", "/var/cache",
    "--exclude", "/root/.cache/",
    "--exclude", "/home/*/.cache",
    "--exclude", "/home/*/nobackup",
    "--exclude", "/home/*/Downloads",
]


class TestDuplicityCommand:
    """Tests for DuplicityCommand."""

    @pytest.fixture
    def command(self, settings):
        return DuplicityCommand(settings)

    def test_incremental_backup(self, command):
        """Test the default backup command line."""
        assert command.backup() == [
            "duplicity",
            "--full-if-older-than", "1M",
            *EXPECTED_EXCLUDES,
            "/", "swift://testhost",
        ]

    def test_full_backup(self, command):
        """Test forcing a full backup drops --full-if-older-than."""
        args = command.backup(full=True)
        assert args[:2] == ["duplicity", "full"]
        assert "--full-if-older-than" not in args
        assert args[-2:] == ["/", "swift://testhost"]

    def test_dry_run(self, command):
        """Test the dry-run flag."""
        assert "--dry-run" in command.backup(dry_run=True)

    def test_options_come_before_excludes(self, settings):
        """Test DUPLICITY_OPTIONS and --archive-dir placement."""
        settings.duplicity_options = "--volsize 250 --asynchronous-upload"
        settings.archive_dir = "/var/cache/duplicity"
        settings.exclude = ["/proc"]
        args = DuplicityCommand(settings).backup()
        assert args == [
            "duplicity",
            "--full-if-older-than", "1M",
            "--volsize", "250", "--asynchronous-upload",
            "--archive-dir", "/var/cache/duplicity",
            "--exclude", "/proc",
            "/", "swift://testhost",
        ]

    def test_custom_executable(self, settings):
        """Test a non-default duplicity path."""
        command = DuplicityCommand(settings, executable="/opt/duplicity/bin/duplicity")
        assert command.collection_status()[0] == "/opt/duplicity/bin/duplicity"

    def test_collection_status(self, command):
        assert command.collection_status() == ["duplicity", "collection-status", "swift://testhost"]

    def test_list_current_files(self, command):
        assert command.list_current_files() == ["duplicity", "list-current-files", "swift://testhost"]
        assert command.list_current_files("3D") == [
            "duplicity", "list-current-files", "--time", "3D", "swift://testhost",
        ]

    def test_restore_single_path(self, command):
        """Test restoring one path, relative to SOURCE."""
        assert command.restore("/etc/hosts", "/tmp/hosts") == [
            "duplicity", "restore", "--file-to-restore", "etc/hosts",
            "swift://testhost", "/tmp/hosts",
        ]

    def test_restore_absolute_path_under_source(self, settings):
        """Test an absolute path is made relative to a non-root SOURCE."""
        settings.source = "/home"
        command = DuplicityCommand(settings)

        assert command.restore("/home/alice/x", "/tmp/x") == [
            "duplicity", "restore", "--file-to-restore", "alice/x",
            "swift://testhost", "/tmp/x",
        ]
        assert command.restore("alice/x", "/tmp/x")[3] == "alice/x"
        assert command.restore("/homework/a", "/tmp/a")[3] == "homework/a"

    def test_restore_source_itself(self, settings):
        """Test restoring SOURCE itself restores everything."""
        settings.source = "/home/"
        command = DuplicityCommand(settings)

        assert command.restore("/home", "/mnt/restore") == [
            "duplicity", "restore", "swift://testhost", "/mnt/restore",
        ]

    def test_restore_everything_at_time(self, command):
        """Test a full restore of an older state."""
        assert command.restore("", "/mnt/restore", time="2026-10-01") == [
            "duplicity", "restore", "--time", "2026-10-01",
            "swift://testhost", "/mnt/restore",
        ]

    def test_verify(self, command):
        """Test verify compares target against SOURCE with the excludes."""
        args = command.verify()
        assert args[:2] == ["duplicity", "verify"]
        assert "--exclude" in args
        assert args[-2:] == ["swift://testhost", "/"]

    def test_cleanup(self, command):
        assert command.cleanup() == ["duplicity", "cleanup", "--force", "swift://testhost"]

    def test_remove_all_but_n_full(self, command):
        assert command.remove_all_but_n_full(2) == [
            "duplicity", "remove-all-but-n-full", "2", "--force", "swift://testhost",
        ]

    def test_remove_all_but_zero_rejected(self, command):
        """Test that keeping no chains at all is refused."""
        with pytest.raises(ValueError):
            command.remove_all_but_n_full(0)
