"""Backup settings management for backup2surfsara.

Provides the BackupSettings dataclass and SettingsManager, which reads
and writes the shell-format configuration file.
"""

import os
import shlex
import socket
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from backup2surfsara.config.credentials import SwiftCredentials
from backup2surfsara.config.paths import DEFAULT_EXCLUDES, get_config_path
from backup2surfsara.config.shellconf import ConfigError, ShellValue, parse_shell_config
from backup2surfsara.utils.validators import (
    validate_auth_url,
    validate_auth_version,
    validate_backup_proto,
    validate_chain_length,
    validate_container_name,
    validate_exclude_path,
    validate_keep_full_chains,
    validate_ref_date,
    validate_source_path,
)


# Shell variable name for each settings field
SHELL_VARIABLES = {
    "duplicity_options": "DUPLICITY_OPTIONS",
    "source": "SOURCE",
    "exclude": "EXCLUDE",
    "backup_proto": "BACKUPPROTO",
    "backup_container": "BACKUPCONTAINER",
    "archive_dir": "ARCHIVE_DIR",
    "swift_username": "SWIFT_USERNAME",
    "swift_password": "SWIFT_PASSWORD",
    "swift_authurl": "SWIFT_AUTHURL",
    "swift_authversion": "SWIFT_AUTHVERSION",
    "passphrase": "PASSPHRASE",
    "chain_length": "BACKUPCHAINLENGTH",
    "ref_date": "REF_DATE",
    "keep_full_chains": "KEEP_FULL_CHAINS",
}

# Variables handed to duplicity through the environment
EXPORTED_VARIABLES = (
    "SWIFT_USERNAME",
    "SWIFT_PASSWORD",
    "SWIFT_AUTHURL",
    "SWIFT_AUTHVERSION",
    "PASSPHRASE",
    "BACKUPCHAINLENGTH",
    "REF_DATE",
)

# Exported variables that carry secrets
SECRET_VARIABLES = ("SWIFT_PASSWORD", "PASSPHRASE")

# Name parts marking other exported variables as secret
SECRET_MARKERS = ("PASSWORD", "PASSPHRASE", "SECRET", "TOKEN")


def is_secret_variable(name: str) -> bool:
    """True for variables whose value must not be shown."""
    return name in SECRET_VARIABLES or any(marker in name.upper() for marker in SECRET_MARKERS)


def default_container() -> str:
    """Short host name, used as container name when none is configured."""
    return socket.gethostname().split(".")[0]


@dataclass
class BackupSettings:
    """Settings for one backup configuration."""

    # What to back up
    duplicity_options: str = ""
    source: str = "/"
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))

    # Where to
    backup_proto: str = "swift://"
    backup_container: str = ""
    archive_dir: str = ""

    # Swift credentials
    swift_username: str = ""
    swift_password: str = ""
    swift_authurl: str = ""
    swift_authversion: str = ""

    # Password to encrypt backups
    passphrase: str = ""

    # Chain policy
    chain_length: str = "1M"
    ref_date: str = ""
    keep_full_chains: int = 0

    # Other exported variables, e.g. credentials of a non-Swift backend
    extra_environment: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BackupSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    @classmethod
    def from_shell_vars(
        cls,
        values: Mapping[str, ShellValue],
        exported: Iterable[str] = (),
    ) -> "BackupSettings":
        """
        Create settings from parsed configuration variables.

        Args:
            values: Variable name to string or list, as parsed from the file
            exported: Names marked with export; those without a settings
                field are kept in extra_environment

        Raises:
            ConfigError: If KEEP_FULL_CHAINS is not a number
        """
        data = {}
        for field_name, variable in SHELL_VARIABLES.items():
            if variable not in values:
                continue
            value = values[variable]
            if field_name == "exclude":
                value = [value] if isinstance(value, str) else list(value)
                value = [v for v in value if v]
            elif field_name == "duplicity_options" and isinstance(value, list):
                value = " ".join(shlex.quote(v) for v in value)
            elif field_name == "keep_full_chains":
                try:
                    value = int(value or 0)
                except (ValueError, TypeError) as e:
                    raise ConfigError("KEEP_FULL_CHAINS must be a number", e)
            elif isinstance(value, list):
                value = value[0] if value else ""
            data[field_name] = value

        known = set(SHELL_VARIABLES.values())
        data["extra_environment"] = {
            name: values[name]
            for name in sorted(exported)
            if name not in known and isinstance(values.get(name), str)
        }
        return cls.from_dict(data)

    def to_shell_vars(self) -> Dict[str, ShellValue]:
        """Map settings onto configuration variable names."""
        data = self.to_dict()
        return {variable: data[name] for name, variable in SHELL_VARIABLES.items()}

    @property
    def credentials(self) -> SwiftCredentials:
        """Swift credentials as configured."""
        return SwiftCredentials(
            username=self.swift_username,
            password=self.swift_password,
            auth_url=self.swift_authurl,
            auth_version=self.swift_authversion,
        )

    def apply_credentials(self, credentials: SwiftCredentials) -> None:
        """Fill the Swift fields from a credentials object."""
        self.swift_username = credentials.username
        self.swift_password = credentials.password
        self.swift_authurl = credentials.auth_url
        self.swift_authversion = credentials.auth_version

    @property
    def container(self) -> str:
        """Configured container or the short host name."""
        return self.backup_container or default_container()

    @property
    def target_url(self) -> str:
        """Duplicity target URL, e.g. swift://myhost."""
        return f"{self.backup_proto}{self.container}"

    @property
    def uses_swift(self) -> bool:
        return self.backup_proto.lower().startswith("swift")

    @property
    def options(self) -> List[str]:
        """DUPLICITY_OPTIONS split like the shell would."""
        return shlex.split(self.duplicity_options)

    def to_environment(self, passphrase: Optional[str] = None) -> Dict[str, str]:
        """
        Build the variables exported to duplicity.

        Args:
            passphrase: Overrides the configured PASSPHRASE (e.g. from keyring)

        Returns:
            Dict of exported variables, including extra_environment; empty
            credentials and an unset REF_DATE are left out
        """
        shell_vars = self.to_shell_vars()
        known = {name: shell_vars[name] for name in EXPORTED_VARIABLES}
        if passphrase is not None:
            known["PASSPHRASE"] = passphrase
        if self.swift_username.strip(":") == "":
            known["SWIFT_USERNAME"] = ""

        env = dict(self.extra_environment)
        env.update((k, v) for k, v in known.items() if v)
        return env

    def validate(self) -> List[str]:
        """
        Check all settings.

        Returns:
            List of problems, empty if the settings are usable
        """
        checks = [
            validate_source_path(self.source),
            validate_backup_proto(self.backup_proto),
            validate_container_name(self.container),
            validate_chain_length(self.chain_length),
            validate_keep_full_chains(self.keep_full_chains),
        ]
        checks.extend(validate_exclude_path(p) for p in self.exclude)
        if self.ref_date:
            checks.append(validate_ref_date(self.ref_date))
        if self.uses_swift:
            missing = self.credentials.missing_fields()
            if missing:
                checks.append((False, f"Missing Swift credentials: {', '.join(missing)}"))
            if self.swift_authurl:
                checks.append(validate_auth_url(self.swift_authurl))
            checks.append(validate_auth_version(self.swift_authversion))
        try:
            self.options
        except ValueError as e:
            checks.append((False, f"Invalid DUPLICITY_OPTIONS: {e}"))
        return [error for ok, error in checks if not ok]


CONFIG_TEMPLATE = """\
#!/bin/bash
# Configuration for backup script

DUPLICITY_OPTIONS={duplicity_options}
SOURCE={source}
EXCLUDE=( {exclude} )

BACKUPPROTO={backup_proto}
# Container to back up to. Empty means the short host name.
BACKUPCONTAINER={backup_container}
# Duplicity cache directory. Empty means duplicity's default.
ARCHIVE_DIR={archive_dir}

# Swift credentials. Use the settings from the environment, or enter your own values.
export SWIFT_USERNAME={swift_username}
export SWIFT_PASSWORD={swift_password}
export SWIFT_AUTHURL={swift_authurl}
export SWIFT_AUTHVERSION={swift_authversion}


# Password to encrypt backups. Empty means: use the system keyring.
export PASSPHRASE={passphrase}

# Make a new chain after how much time?
export BACKUPCHAINLENGTH={chain_length}

# How many full chains to keep with 'prune'. 0 keeps everything.
KEEP_FULL_CHAINS={keep_full_chains}
{extra_exports}
# With --check, what is the reference date? See 'man date' for syntax. Default: '30 hours ago'.
{ref_date_line}
"""

# Credential lines written when the settings carry no credentials of their own
ENVIRONMENT_CREDENTIALS = {
    "swift_username": '"$OS_PROJECT_NAME:$OS_USERNAME"',
    "swift_password": '"$OS_PASSWORD"',
    "swift_authurl": '"$OS_AUTH_URL"',
    "swift_authversion": '"$OS_AUTH_VERSION"',
}


def render_config(settings: BackupSettings, use_environment: bool = False) -> str:
    """
    Render settings as a configuration file.

    Args:
        settings: Settings to write
        use_environment: Write the OS_* references instead of literal
            credentials

    Returns:
        File contents
    """
    def quote(value) -> str:
        value = str(value)
        return shlex.quote(value) if value else "''"

    values = {
        "duplicity_options": quote(settings.duplicity_options),
        "source": quote(settings.source),
        "exclude": " \\\n          ".join(quote(p) for p in settings.exclude),
        "backup_proto": quote(settings.backup_proto),
        "backup_container": quote(settings.backup_container),
        "archive_dir": quote(settings.archive_dir),
        "swift_username": quote(settings.swift_username),
        "swift_password": quote(settings.swift_password),
        "swift_authurl": quote(settings.swift_authurl),
        "swift_authversion": quote(settings.swift_authversion),
        "passphrase": quote(settings.passphrase),
        "chain_length": quote(settings.chain_length),
        "keep_full_chains": settings.keep_full_chains,
    }
    if settings.extra_environment:
        values["extra_exports"] = "\n# Other variables exported to duplicity\n" + "".join(
            f"export {name}={quote(value)}\n" for name, value in settings.extra_environment.items()
        )
    else:
        values["extra_exports"] = ""
    if use_environment:
        values.update(ENVIRONMENT_CREDENTIALS)
    if settings.ref_date:
        values["ref_date_line"] = f"export REF_DATE={quote(settings.ref_date)}"
    else:
        values["ref_date_line"] = "#export REF_DATE='30 hours ago'"
    return CONFIG_TEMPLATE.format(**values)


class SettingsManager:
    """Loads and saves the backup configuration file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            config_path: Optional custom path, defaults to the discovered one
        """
        self._config_path = Path(config_path) if config_path else get_config_path()
        self._settings: Optional[BackupSettings] = None

    @property
    def config_path(self) -> Path:
        """Path to configuration file."""
        return self._config_path

    @property
    def settings(self) -> Optional[BackupSettings]:
        """Settings from the last load or save."""
        return self._settings

    def load(self, environ: Optional[Mapping[str, str]] = None) -> BackupSettings:
        """
        Load settings from disk.

        Args:
            environ: Environment for $VAR expansion (defaults to os.environ)

        Returns:
            BackupSettings instance. If the file does not exist, defaults
            with credentials taken from the OS_* environment.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        environ = dict(os.environ if environ is None else environ)

        if not self._config_path.exists():
            settings = BackupSettings()
            settings.apply_credentials(SwiftCredentials.from_environment(environ))
            self._settings = settings
            return settings

        try:
            text = self._config_path.read_text(encoding="utf-8")
        except (IOError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {self._config_path}", e)

        parsed = parse_shell_config(text, environ)
        self._settings = BackupSettings.from_shell_vars(parsed.values, parsed.exported)
        return self._settings

    def save(self, settings: BackupSettings, use_environment: bool = False) -> None:
        """
        Write settings to disk as a configuration file.

        Args:
            settings: Settings to save
            use_environment: Reference OS_* variables instead of literal
                credentials
        """
        self._settings = settings

        # Ensure parent directory exists
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        # The file holds secrets: create it private
        fd = os.open(self._config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(render_config(settings, use_environment=use_environment))
