"""Collection status parsing for backup2surfsara.

Reads the output of ``duplicity collection-status`` and decides whether
the most recent backup is newer than a reference date.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from backup2surfsara.duplicity.exceptions import StatusParseError


# Format duplicity uses for times in collection-status
DUPLICITY_TIME_FORMAT = "%a %b %d %H:%M:%S %Y"

LAST_FULL_PATTERN = re.compile(r"^Last full backup date:\s*(.+)$")
CHAIN_START_PATTERN = re.compile(r"^Chain start time:\s*(.+)$")
CHAIN_END_PATTERN = re.compile(r"^Chain end time:\s*(.+)$")
BACKUP_SET_PATTERN = re.compile(
    r"^(Full|Incremental)\s+(\w{3} \w{3}\s+\d{1,2} \d{2}:\d{2}:\d{2} \d{4})\s+(\d+)(?:\s+\*)?$"
)
PRIMARY_CHAIN_MARKER = "Found primary backup chain"
SECONDARY_CHAIN_MARKER = "secondary backup chain"
CLEAN_MARKER = "No orphaned or incomplete backup sets found"


class SetType(Enum):
    """Kind of backup set."""
    FULL = "Full"
    INCREMENTAL = "Incremental"


@dataclass
class BackupSet:
    """One full or incremental backup."""
    set_type: SetType
    time: datetime
    volumes: int


@dataclass
class BackupChain:
    """A full backup followed by its incrementals."""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    sets: List[BackupSet] = field(default_factory=list)
    primary: bool = False

    @property
    def volumes(self) -> int:
        return sum(s.volumes for s in self.sets)


@dataclass
class CollectionStatus:
    """Parsed collection-status output."""
    last_full_backup: Optional[datetime] = None
    chains: List[BackupChain] = field(default_factory=list)
    clean: bool = True

    @property
    def last_backup(self) -> Optional[datetime]:
        """Time of the newest backup set in any chain."""
        times = [c.end_time for c in self.chains if c.end_time]
        times += [s.time for c in self.chains for s in c.sets]
        return max(times) if times else None

    @property
    def primary_chain(self) -> Optional[BackupChain]:
        for chain in self.chains:
            if chain.primary:
                return chain
        return None

    @property
    def backup_count(self) -> int:
        return sum(len(c.sets) for c in self.chains)


@dataclass
class CheckResult:
    """Outcome of comparing the last backup against a reference date."""
    ok: bool
    last_backup: Optional[datetime]
    reference: datetime
    message: str


def parse_duplicity_time(text: str) -> Optional[datetime]:
    """
    Parse a time as printed by duplicity.

    Returns:
        datetime, or None for 'none'

    Raises:
        ValueError: If the text is not a duplicity time
    """
    text = " ".join(text.split())
    if text.lower() == "none":
        return None
    return datetime.strptime(text, DUPLICITY_TIME_FORMAT)


def parse_collection_status(output: str) -> CollectionStatus:
    """
    Parse the output of duplicity collection-status.

    Args:
        output: Combined stdout/stderr of the command

    Returns:
        CollectionStatus with all chains found

    Raises:
        StatusParseError: If a time in the output cannot be parsed
    """
    status = CollectionStatus()
    chain: Optional[BackupChain] = None
    next_is_primary = False

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        try:
            match = LAST_FULL_PATTERN.match(line)
            if match:
                status.last_full_backup = parse_duplicity_time(match.group(1))
                continue

            if PRIMARY_CHAIN_MARKER in line:
                next_is_primary = True
                continue
            if SECONDARY_CHAIN_MARKER in line:
                next_is_primary = False
                continue

            match = CHAIN_START_PATTERN.match(line)
            if match:
                chain = BackupChain(
                    start_time=parse_duplicity_time(match.group(1)),
                    primary=next_is_primary,
                )
                status.chains.append(chain)
                next_is_primary = False
                continue

            match = CHAIN_END_PATTERN.match(line)
            if match and chain is not None:
                chain.end_time = parse_duplicity_time(match.group(1))
                continue

            match = BACKUP_SET_PATTERN.match(line)
            if match and chain is not None:
                set_type, when, volumes = match.groups()
                chain.sets.append(BackupSet(
                    set_type=SetType(set_type),
                    time=parse_duplicity_time(when),
                    volumes=int(volumes),
                ))
                continue
        except ValueError as e:
            raise StatusParseError(line, e)

        if CLEAN_MARKER in line:
            continue
        if "orphaned" in line.lower() or "incomplete" in line.lower():
            status.clean = False

    return status


def check_last_backup(status: CollectionStatus, reference: datetime) -> CheckResult:
    """
    Decide whether the newest backup is recent enough.

    Args:
        status: Parsed collection status
        reference: Oldest acceptable backup time

    Returns:
        CheckResult; ok only if a backup exists at or after reference
    """
    last = status.last_backup
    if last is None:
        return CheckResult(
            ok=False,
            last_backup=None,
            reference=reference,
            message="No backups found",
        )
    if last >= reference:
        return CheckResult(
            ok=True,
            last_backup=last,
            reference=reference,
            message=f"Last backup {last:%Y-%m-%d %H:%M:%S} is newer than {reference:%Y-%m-%d %H:%M:%S}",
        )
    return CheckResult(
        ok=False,
        last_backup=last,
        reference=reference,
        message=f"Last backup {last:%Y-%m-%d %H:%M:%S} is older than {reference:%Y-%m-%d %H:%M:%S}",
    )
