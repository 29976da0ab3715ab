"""
Output formatting for reconciliation runs.

Two match formats go to the primary stream:
- batch: one shell command per match that copies the timestamp
- report: two human-readable lines per match plus a blank separator

The run summary goes to the diagnostics stream.
"""

from __future__ import annotations

import re
from pathlib import Path

from stampsync.core.models import FileRecord, ReconcileStats


TIME_FORMAT = '%Y/%m/%d %H:%M:%S'

UPDATE_MARKER = '->'
REPORT_MARKER = '!='

# Characters that keep a special meaning inside POSIX double quotes
_DQUOTE_SPECIAL = re.compile(r'([\\"$`])')


def quote_path(path: Path | str) -> str:
    """Double-quote a path for a POSIX shell."""
    return '"' + _DQUOTE_SPECIAL.sub(r'\\\1', str(path)) + '"'


def format_batch_command(source: FileRecord, target: FileRecord) -> str:
    return f"touch -r {quote_path(source.path)} {quote_path(target.path)}"


def format_timestamp(record: FileRecord) -> str:
    return record.modified_time.strftime(TIME_FORMAT)


def format_match_report(source: FileRecord, target: FileRecord, updated: bool) -> list[str]:
    """
    Two-line report of one match, followed by a blank line.

    ``->`` marks a destination that is (being) repaired, ``!=`` one that is
    only reported.
    """
    marker = UPDATE_MARKER if updated else REPORT_MARKER
    return [
        f"   {format_timestamp(source)} {source.path}",
        f"{marker} {format_timestamp(target)} {target.path}",
        "",
    ]


def format_summary(stats: ReconcileStats) -> list[str]:
    lines = [
        f"    Read {stats.files_read:4d} files on {stats.source_root}.",
        f"Compared {stats.files_compared:4d} files on {stats.dest_root}.",
    ]
    if stats.files_touched > 0:
        lines.append(f" Touched {stats.files_touched:4d} files on {stats.dest_root}.")
    lines.append(f"    Open {stats.files_opened:4d} files.")

    for path, message in stats.failures:
        lines.append(f"  FAILED {path}: {message}")
    return lines
