"""Credential handling for backup2surfsara.

Swift credentials default to the OpenStack ``OS_*`` environment. The
encryption passphrase may be stored in the system keyring (Windows
Credential Manager, macOS Keychain, Linux Secret Service) instead of
the configuration file.
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

import keyring
from keyring.errors import KeyringError

from backup2surfsara.config.shellconf import ConfigError


class PassphraseMissingError(ConfigError):
    """No encryption passphrase in the configuration or the keyring."""

    def __init__(self, target_url: str):
        self.target_url = target_url
        message = (
            f"No passphrase for {target_url}: set PASSPHRASE in the "
            f"configuration or run 'backup2surfsara set-passphrase'"
        )
        super().__init__(message)


@dataclass
class SwiftCredentials:
    """Credentials for a Swift object store."""
    username: str = ""
    password: str = ""
    auth_url: str = ""
    auth_version: str = ""
    user_domain_name: str = "Default"
    project_domain_name: str = "Default"

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "SwiftCredentials":
        """
        Build credentials from OpenStack environment variables.

        SWIFT_USERNAME is "$OS_PROJECT_NAME:$OS_USERNAME", the other fields
        map one to one onto OS_PASSWORD, OS_AUTH_URL and OS_AUTH_VERSION.
        """
        environ = os.environ if environ is None else environ
        project = environ.get("OS_PROJECT_NAME", "")
        user = environ.get("OS_USERNAME", "")
        return cls(
            username=f"{project}:{user}",
            password=environ.get("OS_PASSWORD", ""),
            auth_url=environ.get("OS_AUTH_URL", ""),
            auth_version=environ.get("OS_AUTH_VERSION", ""),
            user_domain_name=environ.get("OS_USER_DOMAIN_NAME") or "Default",
            project_domain_name=environ.get("OS_PROJECT_DOMAIN_NAME") or "Default",
        )

    @property
    def project_name(self) -> str:
        """Project (tenant) part of 'project:user', empty if there is none."""
        if ":" in self.username:
            return self.username.split(":", 1)[0]
        return ""

    @property
    def user_name(self) -> str:
        """User part of 'project:user'."""
        if ":" in self.username:
            return self.username.split(":", 1)[1]
        return self.username

    def missing_fields(self) -> List[str]:
        """Names of the variables that are required but empty."""
        missing = []
        if not self.user_name:
            missing.append("SWIFT_USERNAME")
        if not self.password:
            missing.append("SWIFT_PASSWORD")
        if not self.auth_url:
            missing.append("SWIFT_AUTHURL")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class CredentialManager:
    """Secure passphrase storage using system keyring."""

    SERVICE_NAME = "backup2surfsara"

    def save_passphrase(self, target_url: str, passphrase: str) -> bool:
        """
        Save the encryption passphrase for a backup target.

        Args:
            target_url: Backup target URL, e.g. swift://myhost
            passphrase: Passphrase to save

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            keyring.set_password(self.SERVICE_NAME, target_url, passphrase)
            return True
        except KeyringError:
            return False

    def get_passphrase(self, target_url: str) -> Optional[str]:
        """
        Retrieve a saved passphrase.

        Returns:
            Passphrase string or None if not found
        """
        try:
            return keyring.get_password(self.SERVICE_NAME, target_url)
        except KeyringError:
            return None

    def delete_passphrase(self, target_url: str) -> bool:
        """
        Remove a saved passphrase.

        Returns:
            True if deleted successfully, False otherwise
        """
        try:
            keyring.delete_password(self.SERVICE_NAME, target_url)
            return True
        except KeyringError:
            return False

    def has_passphrase(self, target_url: str) -> bool:
        """Check if a passphrase is saved for the target."""
        return self.get_passphrase(target_url) is not None

    def resolve_passphrase(self, target_url: str, configured: str = "") -> str:
        """
        Pick the passphrase to hand to duplicity.

        Args:
            target_url: Backup target URL
            configured: PASSPHRASE from the configuration file

        Returns:
            The configured passphrase if non-empty, else the keyring one

        Raises:
            PassphraseMissingError: If neither is available
        """
        if configured:
            return configured
        stored = self.get_passphrase(target_url)
        if stored:
            return stored
        raise PassphraseMissingError(target_url)
