"""Logging configuration for backup2surfsara.

Provides centralized logging with secret redaction to ensure passwords,
passphrases and tokens are never written to log files.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional


# Secret patterns to redact from logs
SECRET_PATTERNS = [
    # Password and passphrase in various formats (also SWIFT_PASSWORD=...)
    (re.compile(r'(password["\'\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(passphrase["\'\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    # Swift auth headers and tokens
    (re.compile(r'(X-Auth-Key["\'\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(X-(?:Auth|Subject)-Token["\'\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    # Backend URLs with credentials
    (re.compile(r'([a-z][a-z0-9+]*://)[^:/@\s]+:[^@\s]+@', re.IGNORECASE), r'\1[REDACTED]@'),
]


def redact(message: str) -> str:
    """Apply all secret patterns to a message."""
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SecretRedactingFormatter(logging.Formatter):
    """Custom formatter that redacts secrets from log messages."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, redacting any secrets."""
        return redact(super().format(record))


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure application logging with secret redaction.

    Args:
        level: Logging level (default INFO)
        log_file: Optional file path for log output
        console: Whether to output to console (default True)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("backup2surfsara")
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    formatter = SecretRedactingFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Console handler; stdout is reserved for command output
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "backup2surfsara") -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default is app logger)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
