"""Configuration module for backup2surfsara.

This module handles backup settings and credentials:
- ShellConfigParser: Reads the bash-style configuration file
- SettingsManager: Loads and writes the configuration file
- CredentialManager: Passphrase storage via keyring
- Paths: Path constants and discovery
- BackupSettings: Settings dataclass
"""
