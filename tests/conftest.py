"""Pytest configuration and shared fixtures for backup2surfsara tests."""

import pytest
from pathlib import Path
from typing import Dict

from backup2surfsara.config.settings import BackupSettings


# Test constants
TEST_PROJECT = "backup-project"
TEST_USER = "alice"
TEST_PASSWORD = "s3cret"
TEST_AUTH_URL = "https://proxy.swift.example.org:5000/v3"
TEST_CONTAINER = "testhost"
TEST_PASSPHRASE = "correct horse battery staple"

# Root of the repository
REPO_ROOT = Path(__file__).parent.parent


# Output of `duplicity collection-status` for a two-chain collection
SAMPLE_COLLECTION_STATUS = """\
Local and Remote metadata are synchronized, no sync needed.
Last full backup date: Mon Oct 12 03:00:05 2026
Collection Status
-----------------
Connecting with backend: BackendWrapper
Archive dir: /root/.cache/duplicity/0123456789abcdef

Found 1 secondary backup chain.
Secondary chain 1 of 1:
-------------------------
Chain start time: Fri Sep 11 03:00:02 2026
Chain end time: Sat Sep 12 03:00:03 2026
Number of contained backup sets: 2
Total number of contained volumes: 5
 Type of backup set:                            Time:      Num volumes:
                Full         Fri Sep 11 03:00:02 2026                 4
         Incremental         Sat Sep 12 03:00:03 2026                 1
-------------------------


Found primary backup chain with matching signature chain:
-------------------------
Chain start time: Mon Oct 12 03:00:05 2026
Chain end time: Sun Oct 18 03:00:04 2026
Number of contained backup sets: 3
Total number of contained volumes: 5
 Type of backup set:                            Time:      Num volumes:
                Full         Mon Oct 12 03:00:05 2026                 3
         Incremental         Sat Oct 17 03:00:02 2026                 1
         Incremental         Sun Oct 18 03:00:04 2026                 1
-------------------------
No orphaned or incomplete backup sets found.
"""

EMPTY_COLLECTION_STATUS = """\
Last full backup date: none
Collection Status
-----------------
Connecting with backend: BackendWrapper
Archive dir: /root/.cache/duplicity/0123456789abcdef

Found 0 secondary backup chains.
No backup chains with active signatures found
No orphaned or incomplete backup sets found.
"""


@pytest.fixture
def os_environ() -> Dict[str, str]:
    """OpenStack environment as sourced from an openrc file."""
    return {
        "OS_PROJECT_NAME": TEST_PROJECT,
        "OS_USERNAME": TEST_USER,
        "OS_PASSWORD": TEST_PASSWORD,
        "OS_AUTH_URL": TEST_AUTH_URL,
        "OS_AUTH_VERSION": "3",
        "PATH": "/usr/bin:/bin",
    }


@pytest.fixture
def settings() -> BackupSettings:
    """Complete, valid settings for a Swift target."""
    return BackupSettings(
        backup_container=TEST_CONTAINER,
        swift_username=f"{TEST_PROJECT}:{TEST_USER}",
        swift_password=TEST_PASSWORD,
        swift_authurl=TEST_AUTH_URL,
        swift_authversion="3",
        passphrase=TEST_PASSPHRASE,
    )


@pytest.fixture
def sample_config_path() -> Path:
    """The configuration file shipped with the project."""
    return REPO_ROOT / "etc" / "backup2surfsara.swift"


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Provide a temporary configuration file path for testing."""
    return tmp_path / "backup2surfsara.swift"


@pytest.fixture
def collection_status_output() -> str:
    """collection-status output for a target with two chains."""
    return SAMPLE_COLLECTION_STATUS


@pytest.fixture
def empty_collection_status_output() -> str:
    """collection-status output for a target without backups."""
    return EMPTY_COLLECTION_STATUS
