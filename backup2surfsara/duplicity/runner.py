"""Duplicity process runner for backup2surfsara.

Runs duplicity with the configured environment and maps failures
onto the backup exception hierarchy.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional

from backup2surfsara.config.settings import BackupSettings
from backup2surfsara.duplicity.command import DEFAULT_EXECUTABLE, DuplicityCommand
from backup2surfsara.duplicity.exceptions import (
    DuplicityError,
    DuplicityNotFoundError,
    InvalidSettingsError,
)
from backup2surfsara.duplicity.status import (
    CheckResult,
    CollectionStatus,
    check_last_backup,
    parse_collection_status,
)
from backup2surfsara.utils.timeparse import DEFAULT_REF_DATE, parse_reference_date

logger = logging.getLogger("backup2surfsara.runner")


@dataclass
class RunResult:
    """Result of one duplicity invocation."""
    action: str
    args: List[str]
    returncode: int
    output: str
    started_at: datetime
    finished_at: datetime

    @property
    def duration(self) -> float:
        """Run time in seconds."""
        return (self.finished_at - self.started_at).total_seconds()


class DuplicityRunner:
    """Runs duplicity actions for one backup configuration."""

    def __init__(
        self,
        settings: BackupSettings,
        passphrase: Optional[str] = None,
        executable: str = DEFAULT_EXECUTABLE,
        base_environ: Optional[Mapping[str, str]] = None,
        on_output: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Backup settings
            passphrase: Resolved encryption passphrase, overrides PASSPHRASE
            executable: Name or path of the duplicity binary
            base_environ: Environment to extend (defaults to os.environ)
            on_output: Optional callback receiving each output line
        """
        self._settings = settings
        self._passphrase = passphrase
        self._command = DuplicityCommand(settings, executable)
        self._base_environ = dict(os.environ if base_environ is None else base_environ)
        self._on_output = on_output

    @property
    def command(self) -> DuplicityCommand:
        return self._command

    def build_environment(self) -> Dict[str, str]:
        """Base environment overlaid with the exported configuration variables."""
        env = dict(self._base_environ)
        env.update(self._settings.to_environment(passphrase=self._passphrase))
        return env

    def ensure_valid(self) -> None:
        """
        Raises:
            InvalidSettingsError: If the settings have problems
        """
        problems = self._settings.validate()
        if problems:
            raise InvalidSettingsError(problems)

    def run(self, action: str, args: List[str], check: bool = True) -> RunResult:
        """
        Run one duplicity command.

        Args:
            action: Short name of the action, for logs and errors
            args: Full argv
            check: Raise on non-zero exit status

        Returns:
            RunResult with combined stdout/stderr

        Raises:
            DuplicityNotFoundError: If the executable cannot be started
            DuplicityError: If check is set and duplicity fails
        """
        logger.info(f"Running duplicity {action}: {' '.join(args)}")
        started_at = datetime.now()
        lines = []

        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self.build_environment(),
                text=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise DuplicityNotFoundError(args[0], e)

        with process:
            for line in process.stdout:
                line = line.rstrip("\n")
                lines.append(line)
                logger.debug(line)
                if self._on_output:
                    self._on_output(line)
            returncode = process.wait()

        result = RunResult(
            action=action,
            args=args,
            returncode=returncode,
            output="\n".join(lines),
            started_at=started_at,
            finished_at=datetime.now(),
        )
        logger.info(f"duplicity {action} finished with exit code {returncode} in {result.duration:.1f}s")

        if check and returncode != 0:
            raise DuplicityError(action, returncode, result.output)
        return result

    # Actions

    def backup(self, full: bool = False, dry_run: bool = False) -> RunResult:
        """
        Back up SOURCE to the target.

        Starts a new chain when forced or when the current one is older
        than BACKUPCHAINLENGTH.
        """
        self.ensure_valid()
        kind = "full backup" if full else "backup"
        logger.info(f"Starting {kind} of {self._settings.source} to {self._settings.target_url}")
        return self.run("backup", self._command.backup(full=full, dry_run=dry_run))

    def status(self) -> CollectionStatus:
        """Fetch and parse collection-status."""
        self.ensure_valid()
        result = self.run("collection-status", self._command.collection_status())
        return parse_collection_status(result.output)

    def list_files(self, time: Optional[str] = None) -> List[str]:
        """
        List the files in the latest (or given) backup.

        Returns:
            Paths relative to SOURCE
        """
        self.ensure_valid()
        result = self.run("list-current-files", self._command.list_current_files(time))
        files = []
        for line in result.output.splitlines():
            # "Mon Oct 12 03:00:05 2026 etc/hosts"
            parts = line.split(None, 5)
            if len(parts) == 6 and parts[4].isdigit():
                files.append(parts[5])
        return files

    def restore(self, path: str, destination: str, time: Optional[str] = None) -> RunResult:
        self.ensure_valid()
        logger.info(f"Restoring '{path or '/'}' from {self._settings.target_url} to {destination}")
        return self.run("restore", self._command.restore(path, destination, time))

    def verify(self) -> RunResult:
        self.ensure_valid()
        return self.run("verify", self._command.verify())

    def cleanup(self) -> RunResult:
        self.ensure_valid()
        return self.run("cleanup", self._command.cleanup())

    def prune(self) -> Optional[RunResult]:
        """
        Delete all but the newest KEEP_FULL_CHAINS chains.

        Returns:
            RunResult, or None when pruning is disabled
        """
        self.ensure_valid()
        keep = self._settings.keep_full_chains
        if keep < 1:
            logger.info("KEEP_FULL_CHAINS is 0, not removing any backup chains")
            return None
        logger.info(f"Removing all but the {keep} newest full chains")
        return self.run("remove-all-but-n-full", self._command.remove_all_but_n_full(keep))

    def check(self, ref_date: Optional[str] = None, now: Optional[datetime] = None) -> CheckResult:
        """
        Check that the last backup is newer than the reference date.

        Args:
            ref_date: Overrides REF_DATE from the settings
            now: Current time (for tests)

        Raises:
            ValueError: If the reference date cannot be parsed
        """
        text = ref_date or self._settings.ref_date or DEFAULT_REF_DATE
        reference = parse_reference_date(text, now)
        result = check_last_backup(self.status(), reference)
        if result.ok:
            logger.info(result.message)
        else:
            logger.warning(result.message)
        return result
