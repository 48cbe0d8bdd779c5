"""Backup exceptions for backup2surfsara.

Custom exception hierarchy for duplicity operations to provide
clear error handling and user-friendly messages.
"""


class BackupError(Exception):
    """Base exception for all backup-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DuplicityNotFoundError(BackupError):
    """The duplicity executable could not be started."""

    def __init__(self, executable: str, original_error: Exception = None):
        self.executable = executable
        message = f"Cannot run '{executable}'. Is duplicity installed?"
        super().__init__(message, original_error)


class DuplicityError(BackupError):
    """Duplicity exited with a non-zero status."""

    def __init__(self, action: str, returncode: int, output: str = ""):
        self.action = action
        self.returncode = returncode
        self.output = output
        message = f"duplicity {action} failed with exit code {returncode}"
        super().__init__(message)

    @property
    def last_line(self) -> str:
        """Last non-empty output line, usually duplicity's error message."""
        for line in reversed(self.output.splitlines()):
            if line.strip():
                return line.strip()
        return ""

    def __str__(self) -> str:
        if self.last_line:
            return f"{self.message}: {self.last_line}"
        return self.message


class InvalidSettingsError(BackupError):
    """Settings are incomplete or invalid for the requested operation."""

    def __init__(self, problems):
        self.problems = list(problems)
        message = "Invalid configuration: " + "; ".join(self.problems)
        super().__init__(message)


class StatusParseError(BackupError):
    """Output of collection-status could not be understood."""

    def __init__(self, line: str, original_error: Exception = None):
        self.line = line
        message = f"Cannot parse collection-status line '{line}'"
        super().__init__(message, original_error)
