"""Duplicity command line construction for backup2surfsara.

Turns BackupSettings into argument lists for the duplicity actions
the backup script uses.
"""

from typing import List, Optional

from backup2surfsara.config.settings import BackupSettings


DEFAULT_EXECUTABLE = "duplicity"


class DuplicityCommand:
    """Builds duplicity argv lists from settings."""

    def __init__(self, settings: BackupSettings, executable: str = DEFAULT_EXECUTABLE):
        """
        Initialize the builder.

        Args:
            settings: Backup settings
            executable: Name or path of the duplicity binary
        """
        self._settings = settings
        self._executable = executable

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def target(self) -> str:
        return self._settings.target_url

    def common_options(self) -> List[str]:
        """DUPLICITY_OPTIONS followed by options derived from settings."""
        options = list(self._settings.options)
        if self._settings.archive_dir:
            options += ["--archive-dir", self._settings.archive_dir]
        return options

    def exclude_options(self) -> List[str]:
        options = []
        for path in self._settings.exclude:
            options += ["--exclude", path]
        return options

    def backup(self, full: bool = False, dry_run: bool = False) -> List[str]:
        """
        Arguments for a backup run.

        Args:
            full: Force a new full backup (new chain)
            dry_run: Let duplicity calculate without uploading

        Returns:
            argv; incremental unless the chain is older than BACKUPCHAINLENGTH
        """
        args = [self._executable]
        if full:
            args.append("full")
        else:
            args += ["--full-if-older-than", self._settings.chain_length]
        args += self.common_options()
        if dry_run:
            args.append("--dry-run")
        args += self.exclude_options()
        args += [self._settings.source, self.target]
        return args

    def collection_status(self) -> List[str]:
        return [self._executable, "collection-status", *self.common_options(), self.target]

    def list_current_files(self, time: Optional[str] = None) -> List[str]:
        args = [self._executable, "list-current-files", *self.common_options()]
        if time:
            args += ["--time", time]
        args.append(self.target)
        return args

    def restore(self, path: str, destination: str, time: Optional[str] = None) -> List[str]:
        """
        Arguments for restoring a file or directory.

        Args:
            path: Path to restore, relative to SOURCE or absolute under it;
                empty restores everything
            destination: Local directory or file to restore into
            time: Restore the state at this time instead of the latest
        """
        args = [self._executable, "restore", *self.common_options()]
        relative = self._relative_to_source(path or "")
        if relative:
            args += ["--file-to-restore", relative]
        if time:
            args += ["--time", time]
        args += [self.target, destination]
        return args

    def _relative_to_source(self, path: str) -> str:
        source = self._settings.source.rstrip("/")
        if source and (path == source or path.startswith(source + "/")):
            path = path[len(source):]
        return path.lstrip("/")

    def verify(self) -> List[str]:
        return [
            self._executable, "verify", *self.common_options(),
            *self.exclude_options(), self.target, self._settings.source,
        ]

    def cleanup(self) -> List[str]:
        return [self._executable, "cleanup", "--force", *self.common_options(), self.target]

    def remove_all_but_n_full(self, count: int) -> List[str]:
        if count < 1:
            raise ValueError(f"Must keep at least one full chain, got {count}")
        return [
            self._executable, "remove-all-but-n-full", str(count), "--force",
            *self.common_options(), self.target,
        ]
