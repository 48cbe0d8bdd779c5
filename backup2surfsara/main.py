"""Main command line entry point for backup2surfsara.

Loads the configuration, wires up components and runs the requested
backup command.
"""

import argparse
import getpass
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional, TextIO

from backup2surfsara import __version__
from backup2surfsara.config.credentials import CredentialManager, SwiftCredentials
from backup2surfsara.config.paths import get_log_file_path
from backup2surfsara.config.settings import BackupSettings, SettingsManager, is_secret_variable
from backup2surfsara.config.shellconf import ConfigError
from backup2surfsara.duplicity.exceptions import BackupError
from backup2surfsara.duplicity.runner import DuplicityRunner
from backup2surfsara.swift.auth import SwiftAuthClient, SwiftError
from backup2surfsara.utils.logging import get_logger, setup_logging
from backup2surfsara.utils.timeparse import parse_interval


# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHECK_FAILED = 2

HIDDEN_SECRET = "********"


class Application:
    """
    Command controller.

    Holds the loaded settings and runs one command against them.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        executable: str = "duplicity",
        out: TextIO = None,
        credential_manager: Optional[CredentialManager] = None,
    ):
        """
        Initialize the application.

        Args:
            config_path: Configuration file, defaults to the discovered one
            environ: Environment for expansion and for duplicity
            executable: duplicity binary
            out: Stream for command output (defaults to stdout)
            credential_manager: Keyring access
        """
        self._logger = get_logger("backup2surfsara.main")
        self._environ = dict(os.environ if environ is None else environ)
        self._settings_manager = SettingsManager(config_path)
        self._settings: Optional[BackupSettings] = None
        self._executable = executable
        self._out = out or sys.stdout
        self._credential_manager = credential_manager or CredentialManager()

    @property
    def settings(self) -> BackupSettings:
        """Settings, loaded on first use."""
        if self._settings is None:
            self._logger.debug(f"Loading configuration from {self._settings_manager.config_path}")
            self._settings = self._settings_manager.load(self._environ)
        return self._settings

    def _print(self, text: str = "") -> None:
        print(text, file=self._out)

    def _make_runner(self) -> DuplicityRunner:
        passphrase = self._credential_manager.resolve_passphrase(
            self.settings.target_url,
            self.settings.passphrase,
        )
        return DuplicityRunner(
            self.settings,
            passphrase=passphrase,
            executable=self._executable,
            base_environ=self._environ,
        )

    # Commands

    def backup(self, full: bool = False, dry_run: bool = False) -> int:
        result = self._make_runner().backup(full=full, dry_run=dry_run)
        self._print(f"Backup to {self.settings.target_url} finished in {result.duration:.1f}s")
        return EXIT_OK

    def check(self, ref_date: Optional[str] = None) -> int:
        """Exit code 2 when the last backup is older than the reference date."""
        result = self._make_runner().check(ref_date=ref_date)
        self._print(("OK: " if result.ok else "CRITICAL: ") + result.message)
        return EXIT_OK if result.ok else EXIT_CHECK_FAILED

    def status(self) -> int:
        status = self._make_runner().status()
        settings = self.settings

        self._print(f"Target:            {settings.target_url}")
        self._print(f"Backup chains:     {len(status.chains)}")
        self._print(f"Backup sets:       {status.backup_count}")
        last_full = status.last_full_backup
        self._print(f"Last full backup:  {last_full:%Y-%m-%d %H:%M:%S}" if last_full else "Last full backup:  none")
        last = status.last_backup
        self._print(f"Last backup:       {last:%Y-%m-%d %H:%M:%S}" if last else "Last backup:       none")
        if last_full:
            next_full = last_full + parse_interval(settings.chain_length)
            self._print(f"Next full backup:  {next_full:%Y-%m-%d %H:%M:%S}")
        if not status.clean:
            self._print("Warning: orphaned or incomplete backup sets found, run 'cleanup'")
        return EXIT_OK

    def list_files(self, time: Optional[str] = None) -> int:
        for path in self._make_runner().list_files(time=time):
            self._print(path)
        return EXIT_OK

    def restore(self, path: str, destination: str, time: Optional[str] = None) -> int:
        self._make_runner().restore(path, destination, time=time)
        self._print(f"Restored '{path or '/'}' to {destination}")
        return EXIT_OK

    def verify(self) -> int:
        self._make_runner().verify()
        self._print("Verify finished without differences")
        return EXIT_OK

    def cleanup(self) -> int:
        self._make_runner().cleanup()
        return EXIT_OK

    def prune(self) -> int:
        if self._make_runner().prune() is None:
            self._print("KEEP_FULL_CHAINS is 0, nothing removed")
        return EXIT_OK

    def environment(self, show_secrets: bool = False) -> Dict[str, str]:
        """Variables exported to duplicity, secrets masked unless asked for."""
        env = self.settings.to_environment()
        if not show_secrets:
            env = {k: HIDDEN_SECRET if is_secret_variable(k) else v for k, v in env.items()}
        return env

    def print_environment(self, show_secrets: bool = False) -> int:
        for name, value in self.environment(show_secrets).items():
            self._print(f"export {name}={shlex.quote(value)}")
        return EXIT_OK

    def verify_auth(self) -> int:
        """Authenticate to Swift and look for the backup container."""
        settings = self.settings
        if not settings.uses_swift:
            self._print(f"{settings.backup_proto} is not a Swift target, nothing to verify")
            return EXIT_OK

        credentials = settings.credentials
        from_env = SwiftCredentials.from_environment(self._environ)
        credentials.user_domain_name = from_env.user_domain_name
        credentials.project_domain_name = from_env.project_domain_name

        with SwiftAuthClient(credentials) as client:
            session = client.authenticate()
            self._print(f"Authenticated as {credentials.username}")
            if client.container_exists(session, settings.container):
                self._print(f"Container '{settings.container}' exists")
            else:
                self._print(f"Container '{settings.container}' does not exist yet, "
                            f"duplicity will create it on the first backup")
        return EXIT_OK

    def set_passphrase(self, prompt=getpass.getpass) -> int:
        """Ask for the passphrase twice and store it in the keyring."""
        target = self.settings.target_url
        first = prompt(f"Passphrase for {target}: ")
        if not first:
            self._print("Empty passphrase, nothing stored")
            return EXIT_ERROR
        if prompt("Repeat passphrase: ") != first:
            self._print("Passphrases do not match")
            return EXIT_ERROR
        if not self._credential_manager.save_passphrase(target, first):
            self._print("Could not store the passphrase in the system keyring")
            return EXIT_ERROR
        self._print(f"Passphrase for {target} stored in the system keyring")
        return EXIT_OK

    def init_config(self, force: bool = False) -> int:
        """Write a configuration file with defaults referencing OS_* variables."""
        path = self._settings_manager.config_path
        if path.exists() and not force:
            self._print(f"{path} already exists, use --force to overwrite")
            return EXIT_ERROR
        self._settings_manager.save(BackupSettings(), use_environment=True)
        self._print(f"Wrote {path}")
        return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Command line definition."""
    parser = argparse.ArgumentParser(
        prog="backup2surfsara",
        description="Encrypted duplicity backups to a Swift object store.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", type=Path, help="Configuration file to use")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Log file (default: backup.log in the app data directory)")
    parser.add_argument("--duplicity", default="duplicity", help="duplicity executable")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    backup = commands.add_parser("backup", help="Back up SOURCE (incremental or full)")
    backup.add_argument("--full", action="store_true", help="Force a new full backup")
    backup.add_argument("--dry-run", action="store_true", help="Calculate only, upload nothing")

    check = commands.add_parser("check", help="Fail if the last backup is older than REF_DATE")
    check.add_argument("--ref-date", help="Reference date, e.g. '30 hours ago'")

    commands.add_parser("status", help="Show backup chains")

    list_files = commands.add_parser("list", help="List files in the latest backup")
    list_files.add_argument("--time", help="List the backup at this time instead")

    restore = commands.add_parser("restore", help="Restore a file or directory")
    restore.add_argument("path", help="Path relative to SOURCE, empty for everything")
    restore.add_argument("destination", help="Where to restore to")
    restore.add_argument("--time", help="Restore the state at this time")

    commands.add_parser("verify", help="Compare the latest backup with SOURCE")
    commands.add_parser("cleanup", help="Delete orphaned and incomplete backup files")
    commands.add_parser("prune", help="Keep only the newest KEEP_FULL_CHAINS chains")

    env = commands.add_parser("env", help="Print the variables exported to duplicity")
    env.add_argument("--show-secrets", action="store_true", help="Do not mask secrets")

    commands.add_parser("verify-auth", help="Test the Swift credentials")
    commands.add_parser("set-passphrase", help="Store the passphrase in the system keyring")

    init = commands.add_parser("init-config", help="Write a default configuration file")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def run_command(app: Application, args: argparse.Namespace) -> int:
    """Dispatch parsed arguments to the application."""
    command = args.command
    if command == "backup":
        return app.backup(full=args.full, dry_run=args.dry_run)
    if command == "check":
        return app.check(ref_date=args.ref_date)
    if command == "status":
        return app.status()
    if command == "list":
        return app.list_files(time=args.time)
    if command == "restore":
        return app.restore(args.path, args.destination, time=args.time)
    if command == "verify":
        return app.verify()
    if command == "cleanup":
        return app.cleanup()
    if command == "prune":
        return app.prune()
    if command == "env":
        return app.print_environment(show_secrets=args.show_secrets)
    if command == "verify-auth":
        return app.verify_auth()
    if command == "set-passphrase":
        return app.set_passphrase()
    if command == "init-config":
        return app.init_config(force=args.force)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point.

    Returns:
        Exit code (0 for success, 2 for a failed check)
    """
    args = build_parser().parse_args(argv)
    logger = setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file or get_log_file_path(),
    )

    try:
        app = Application(config_path=args.config, executable=args.duplicity)
        return run_command(app, args)
    except (ConfigError, BackupError, SwiftError) as e:
        logger.error(str(e))
        return EXIT_ERROR
    except ValueError as e:
        logger.error(f"Invalid value: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
