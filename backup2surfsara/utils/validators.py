"""Input validators for backup2surfsara.

Provides validation functions for configuration values like backup
URLs, Swift settings, intervals and paths.
"""

import re
from typing import Optional, Tuple

from backup2surfsara.utils.timeparse import is_interval, parse_reference_date


# Backend URL prefix as duplicity expects it, e.g. swift:// or file://
BACKEND_PATTERN = re.compile(r"^[a-z][a-z0-9+]*://", re.IGNORECASE)

# Auth URL must be http(s)
AUTH_URL_PATTERN = re.compile(r"^https?://[^\s/]+", re.IGNORECASE)

SUPPORTED_AUTH_VERSIONS = ("1", "1.0", "2", "2.0", "3", "3.0")

# Swift limits container names to 256 bytes
MAX_CONTAINER_LENGTH = 256


def validate_backup_proto(proto: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a duplicity backend prefix such as 'swift://'.

    Args:
        proto: Backend prefix

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not proto or not proto.strip():
        return False, "BACKUPPROTO is required"

    if BACKEND_PATTERN.match(proto.strip()):
        return True, None

    return False, f"Invalid BACKUPPROTO: {proto}. Expected a prefix like 'swift://'"


def validate_container_name(name: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a Swift container name.

    Args:
        name: Container name

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not name or not name.strip():
        return False, "Container name is required"

    if "/" in name:
        return False, f"Container name cannot contain '/': {name}"

    if len(name.encode("utf-8")) > MAX_CONTAINER_LENGTH:
        return False, f"Container name is longer than {MAX_CONTAINER_LENGTH} bytes"

    return True, None


def validate_source_path(path: str) -> Tuple[bool, Optional[str]]:
    """
    Validate the backup source directory.

    Args:
        path: Source path

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path or not path.strip():
        return False, "SOURCE is required"

    if not path.startswith("/"):
        return False, f"SOURCE must be absolute (start with /): {path}"

    return True, None


def validate_exclude_path(path: str) -> Tuple[bool, Optional[str]]:
    """
    Validate one EXCLUDE entry.

    Entries are absolute paths, optionally with shell globs.
    """
    if not path or not path.strip():
        return False, "EXCLUDE entries cannot be empty"

    if not path.startswith("/") and not path.startswith("**"):
        return False, f"EXCLUDE entry must be absolute: {path}"

    return True, None


def validate_chain_length(value: str) -> Tuple[bool, Optional[str]]:
    """
    Validate BACKUPCHAINLENGTH.

    Args:
        value: Duplicity interval such as '1M', '2W' or '30D'

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not value or not value.strip():
        return False, "BACKUPCHAINLENGTH is required"

    if is_interval(value):
        return True, None

    return False, f"Invalid BACKUPCHAINLENGTH: {value}. Use an interval like '1M', '2W' or '30D'"


def validate_ref_date(value: str) -> Tuple[bool, Optional[str]]:
    """
    Validate REF_DATE.

    Args:
        value: Date like '30 hours ago' or '2024-01-31'

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        parse_reference_date(value)
    except ValueError:
        return False, f"Invalid REF_DATE: {value}"
    return True, None


def validate_auth_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate SWIFT_AUTHURL.

    Args:
        url: Keystone or Swift auth endpoint

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url or not url.strip():
        return False, "SWIFT_AUTHURL is required"

    if AUTH_URL_PATTERN.match(url.strip()):
        return True, None

    return False, f"Invalid SWIFT_AUTHURL: {url}. Must start with http:// or https://"


def validate_auth_version(version: str) -> Tuple[bool, Optional[str]]:
    """
    Validate SWIFT_AUTHVERSION.

    An empty value is accepted; the auth version is then guessed from the URL.
    """
    if not version:
        return True, None

    if version.strip() in SUPPORTED_AUTH_VERSIONS:
        return True, None

    return False, f"SWIFT_AUTHVERSION must be one of {', '.join(SUPPORTED_AUTH_VERSIONS)}, got {version}"


def validate_keep_full_chains(count: int) -> Tuple[bool, Optional[str]]:
    """
    Validate KEEP_FULL_CHAINS.

    Args:
        count: Number of full chains to keep, 0 disables pruning

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(count, int):
        try:
            count = int(count)
        except (ValueError, TypeError):
            return False, "KEEP_FULL_CHAINS must be a number"

    if count < 0:
        return False, f"KEEP_FULL_CHAINS cannot be negative, got {count}"

    return True, None
