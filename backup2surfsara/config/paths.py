"""Path constants and discovery for backup2surfsara.

Defines the configuration file locations, the default exclude list and
application data directories.
"""

import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional


# Application name for config directories
APP_NAME = "backup2surfsara"

# Configuration file name (the suffix names the storage backend)
CONFIG_FILE_NAME = "backup2surfsara.swift"

# System-wide configuration file
SYSTEM_CONFIG_PATH = Path("/etc") / CONFIG_FILE_NAME

# Environment variable overriding configuration discovery
CONFIG_ENV_VAR = "BACKUP2SURFSARA_CONFIG"


# Paths never worth backing up: pseudo filesystems, temp and cache
# directories, logs and per-user opt-out folders
DEFAULT_EXCLUDES: List[str] = [
    "/proc",
    "/sys",
    "/tmp",
    "/var/tmp",
    "/var/log",
    "/var/www/cobbler/repo_mirror",
    "/var/cache",
    "/root/.cache/",
    "/home/*/.cache",
    "/home/*/nobackup",
    "/home/*/Downloads",
]


def get_app_data_dir() -> Path:
    """
    Get the application data directory.

    Returns:
        Path to app data directory (created if not exists)

    Platform-specific locations:
        - Windows: %APPDATA%/backup2surfsara
        - Linux: ~/.config/backup2surfsara
        - macOS: ~/Library/Application Support/backup2surfsara
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    app_dir = base / APP_NAME
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_user_config_path() -> Path:
    """Per-user configuration file."""
    return get_app_data_dir() / CONFIG_FILE_NAME


def get_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Find the configuration file to use.

    Args:
        environ: Environment to consult (defaults to os.environ)

    Returns:
        $BACKUP2SURFSARA_CONFIG if set, else the system-wide file if it
        exists, else the per-user file (which may not exist yet)
    """
    environ = os.environ if environ is None else environ
    override = environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    if SYSTEM_CONFIG_PATH.exists():
        return SYSTEM_CONFIG_PATH
    return get_user_config_path()


def get_log_dir() -> Path:
    """
    Get the directory for log files.

    Returns:
        Path to logs directory (created if not exists)
    """
    log_dir = get_app_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file_path() -> Path:
    """
    Get the path to the main log file.

    Returns:
        Path to application log file
    """
    return get_log_dir() / "backup.log"
