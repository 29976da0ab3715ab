"""
Core data models for timestamp reconciliation.

This module defines the data structures shared by the scanner, matcher and
reconciler:
- File records and bucket keys
- The per-tree bucket index
- Match results and run statistics
- The error taxonomy

All models are UI-agnostic and carry no I/O of their own. The only mutable
state on a FileRecord is its write-once fingerprint cache.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Optional


NS_PER_SECOND = 1_000_000_000


# =============================================================================
# Enumerations
# =============================================================================

class ReconcilePhase(Enum):
    """Phase of a reconciliation run. Phases never overlap."""
    INDEX = auto()   # Building the source index
    SCAN = auto()    # Streaming the destination tree through the matcher
    REPORT = auto()  # Writing the end-of-run summary
    DONE = auto()


# =============================================================================
# Errors
# =============================================================================

class ReconcileError(Exception):
    """Base class for every error that aborts (or fails) a reconciliation."""


class UsageError(ReconcileError):
    """Wrong command line; no work is performed."""


class WalkError(ReconcileError):
    """A directory tree could not be enumerated."""

    def __init__(self, path: Path | str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class FileReadError(ReconcileError):
    """A file could not be opened or read while fingerprinting."""

    def __init__(self, path: Path | str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class ComparisonError(ReconcileError):
    """
    A content comparison could not be completed.

    Wraps the FileReadError raised for either side; the original error is
    available as ``__cause__``.
    """

    def __init__(self, source: Path, target: Path, cause: FileReadError):
        super().__init__(f"comparing {source} with {target}: {cause}")
        self.source = source
        self.target = target
        self.path = cause.path


class RepairError(ReconcileError):
    """Setting a destination file's timestamps failed."""

    def __init__(self, path: Path | str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


# =============================================================================
# File Models
# =============================================================================

@dataclass(frozen=True)
class BucketKey:
    """
    Grouping key: case-normalised base name plus exact byte size.

    Only used to narrow the candidate search before content comparison.
    """
    name: str
    size: int

    @classmethod
    def for_file(cls, name: str, size: int) -> 'BucketKey':
        return cls(name=name.upper(), size=size)


@dataclass(eq=False)
class FileRecord:
    """
    One file found while walking a tree.

    ``_fingerprint`` is write-once: it starts as None and, once set by
    get_fingerprint(), is never replaced.
    """
    path: Path
    size: int
    mtime_ns: int
    _fingerprint: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_stat(cls, path: Path, stat_result: os.stat_result) -> 'FileRecord':
        return cls(
            path=path,
            size=stat_result.st_size,
            mtime_ns=stat_result.st_mtime_ns,
        )

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def bucket_key(self) -> BucketKey:
        return BucketKey.for_file(self.name, self.size)

    @property
    def mtime(self) -> float:
        """Modification time in seconds since the epoch."""
        return self.mtime_ns / NS_PER_SECOND

    @property
    def mtime_seconds(self) -> int:
        """Modification time truncated to whole seconds."""
        return self.mtime_ns // NS_PER_SECOND

    @property
    def modified_time(self) -> datetime:
        """Truncated modification time as a local datetime."""
        return datetime.fromtimestamp(self.mtime_seconds)

    @property
    def fingerprint(self) -> Optional[bytes]:
        """Cached content digest, or None if not computed yet."""
        return self._fingerprint

    def get_fingerprint(self, compute: Callable[[Path], bytes]) -> bytes:
        """Return the cached digest, computing it with ``compute`` on first use."""
        if self._fingerprint is None:
            self._fingerprint = compute(self.path)
        return self._fingerprint

    def same_time(self, other: 'FileRecord') -> bool:
        """True if both records agree at whole-second resolution."""
        return self.mtime_seconds == other.mtime_seconds


class TreeIndex:
    """
    Bucketed index of one directory tree.

    Maps BucketKey to the records sharing it, in walk order. Built once by
    the scanner and read-only afterwards.
    """

    def __init__(self, root: Path):
        self.root = root
        self._buckets: dict[BucketKey, list[FileRecord]] = {}
        self._file_count = 0

    def add(self, record: FileRecord) -> None:
        self._buckets.setdefault(record.bucket_key, []).append(record)
        self._file_count += 1

    def candidates(self, key: BucketKey) -> list[FileRecord]:
        """Records sharing ``key``, in walk order (empty when none)."""
        return self._buckets.get(key, [])

    @property
    def file_count(self) -> int:
        return self._file_count

    def __len__(self) -> int:
        return len(self._buckets)


# =============================================================================
# Result Models
# =============================================================================

@dataclass
class MatchResult:
    """Outcome of looking up one destination file against the source index."""
    target: FileRecord
    source: Optional[FileRecord] = None
    error: Optional[ReconcileError] = None

    @property
    def matched(self) -> bool:
        return self.source is not None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class ReconcileStats:
    """Counters reported at the end of a run."""
    source_root: Path
    dest_root: Path
    files_read: int = 0       # Indexed from the source tree
    files_compared: int = 0   # Visited in the destination tree
    files_matched: int = 0
    files_touched: int = 0
    files_opened: int = 0     # Hash operations performed
    failures: list[tuple[str, str]] = field(default_factory=list)  # (path, message)

    @property
    def has_failures(self) -> bool:
        return len(self.failures) > 0
