"""Fake duplicity executable for integration testing.

Writes a small shell script standing in for duplicity. It records its
arguments and environment and answers collection-status with canned
output.
"""

import stat
import sys
from pathlib import Path
from typing import Dict, List

import pytest


SCRIPT = """\
#!/bin/sh
printf '%s\\n' "$@" > "{record}.args"
env > "{record}.env"
case "$1" in
    collection-status)
        cat "{status}"
        ;;
    list-current-files)
        echo "Last full backup date: Mon Oct 12 03:00:05 2026"
        echo "Mon Oct 12 03:00:05 2026 ."
        echo "Mon Oct 12 03:00:05 2026 etc"
        echo "Sun Oct 18 03:00:04 2026 etc/hosts"
        ;;
    *)
        echo "--------------[ Backup Statistics ]--------------"
        echo "Errors 0"
        ;;
esac
if [ -f "{exit_file}" ]; then
    echo "BackendException: $(cat "{exit_file}.msg")"
    exit "$(cat "{exit_file}")"
fi
exit 0
"""


class FakeDuplicity:
    """
    Executable script standing in for duplicity.

    Usage:
        fake = FakeDuplicity(tmp_path)
        # run with executable=str(fake.path)
        fake.last_args, fake.last_env
    """

    def __init__(self, directory: Path):
        """
        Create the script.

        Args:
            directory: Where to put the script and its records
        """
        self.directory = directory
        directory.mkdir(parents=True, exist_ok=True)
        self.path = directory / "duplicity"
        self._record = directory / "record"
        self._status = directory / "collection-status.txt"
        self._exit_file = directory / "exit-code"

        self.path.write_text(SCRIPT.format(
            record=self._record,
            status=self._status,
            exit_file=self._exit_file,
        ))
        self.path.chmod(self.path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.set_collection_status("")

    def set_collection_status(self, output: str) -> None:
        self._status.write_text(output)

    def fail_with(self, returncode: int, message: str) -> None:
        """Make the next runs exit with an error."""
        self._exit_file.write_text(str(returncode))
        Path(f"{self._exit_file}.msg").write_text(message)

    @property
    def was_run(self) -> bool:
        return Path(f"{self._record}.args").exists()

    @property
    def last_args(self) -> List[str]:
        """Arguments of the last run, without the program name."""
        return Path(f"{self._record}.args").read_text().splitlines()

    @property
    def last_env(self) -> Dict[str, str]:
        env = {}
        for line in Path(f"{self._record}.env").read_text().splitlines():
            name, sep, value = line.partition("=")
            if sep:
                env[name] = value
        return env


@pytest.fixture
def fake_duplicity(tmp_path):
    """Provide a fake duplicity executable."""
    if sys.platform == "win32":
        pytest.skip("fake duplicity is a POSIX shell script")
    return FakeDuplicity(tmp_path / "bin")
