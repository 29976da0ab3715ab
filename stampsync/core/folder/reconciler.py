"""
Timestamp reconciliation engine.

Finds destination files that are byte-identical to a source file but carry a
different modification time, then reports or repairs them.

A run has three strictly sequential phases:
- INDEX: bucket every file of the source tree
- SCAN: stream the destination tree through the matcher, emitting one
  batch command or report per match (and repairing it if asked)
- REPORT: write the summary counters to the diagnostics stream
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO

from stampsync.core.folder.matcher import find_match
from stampsync.core.folder.report import (
    format_batch_command,
    format_match_report,
    format_summary,
)
from stampsync.core.folder.scanner import ScanOptions, TreeScanner
from stampsync.core.folder.sync import SyncOptions, TimestampSync
from stampsync.core.models import (
    FileRecord,
    MatchResult,
    ReconcileError,
    ReconcilePhase,
    ReconcileStats,
    RepairError,
    TreeIndex,
)
from stampsync.services.hashing import (
    Fingerprinter,
    HashAlgorithm,
    HashingService,
    OpenCounter,
)


@dataclass
class ReconcileOptions:
    """Options for a reconciliation run."""
    # Output mode
    batch: bool = False       # Emit touch commands instead of the report
    update: bool = False      # Repair timestamps (report mode only)

    # Error handling
    keep_going: bool = False  # Record destination failures and continue

    # Hashing
    algorithm: HashAlgorithm = HashAlgorithm.MD5
    chunk_size: int = 65536

    # Scanning
    include_hidden: bool = False


class Reconciler:
    """
    Reconciles modification times between a source and a destination tree.

    Every error aborts the run unless ``keep_going`` is set, in which case
    destination-side failures are collected in the returned stats. Source
    indexing is fatal in every mode: a partial index would turn unreadable
    files into silent "no match" results.
    """

    def __init__(
        self,
        options: Optional[ReconcileOptions] = None,
        output: Optional[TextIO] = None,
        diagnostics: Optional[TextIO] = None
    ):
        self.options = options or ReconcileOptions()
        self.output = output if output is not None else sys.stdout
        self.diagnostics = diagnostics if diagnostics is not None else sys.stderr

        self.scanner = TreeScanner(ScanOptions(include_hidden=self.options.include_hidden))
        self.hashing = HashingService(self.options.algorithm, self.options.chunk_size)
        self.sync = TimestampSync(SyncOptions(preview_only=not self.options.update))
        self.phase: Optional[ReconcilePhase] = None

    def run(self, source_root: Path | str, dest_root: Path | str) -> ReconcileStats:
        """
        Reconcile two trees.

        Args:
            source_root: Tree whose timestamps are authoritative
            dest_root: Tree whose timestamps are reported or repaired

        Returns:
            ReconcileStats for the run

        Raises:
            ReconcileError: the first failure, unless keep_going is set
        """
        stats = ReconcileStats(source_root=Path(source_root), dest_root=Path(dest_root))
        counter = OpenCounter()
        fingerprinter = Fingerprinter(self.hashing, counter)

        self.phase = ReconcilePhase.INDEX
        logging.info(f"Reconciler - Indexing source tree {source_root}")
        source_index, stats.files_read = self.scanner.index(source_root)

        self.phase = ReconcilePhase.SCAN
        logging.info(f"Reconciler - Scanning destination tree {dest_root}")
        try:
            self._scan(source_index, dest_root, fingerprinter, stats)
        finally:
            self.phase = ReconcilePhase.REPORT
            stats.files_opened = counter.opened
            self._write_summary(stats)
            self.phase = ReconcilePhase.DONE

        return stats

    def lookup(
        self,
        source_index: TreeIndex,
        target: FileRecord,
        fingerprinter: Fingerprinter
    ) -> MatchResult:
        """Look up one destination record in the source index."""
        candidates = source_index.candidates(target.bucket_key)
        if not candidates:
            return MatchResult(target=target)

        try:
            source = find_match(candidates, target, fingerprinter)
        except ReconcileError as e:
            return MatchResult(target=target, error=e)
        return MatchResult(target=target, source=source)

    def _scan(
        self,
        source_index: TreeIndex,
        dest_root: Path | str,
        fingerprinter: Fingerprinter,
        stats: ReconcileStats
    ) -> None:
        on_error = None
        if self.options.keep_going:
            on_error = lambda error: self._record_failure(error, stats)

        for target in self.scanner.iter_records(dest_root, on_error=on_error):
            stats.files_compared += 1

            result = self.lookup(source_index, target, fingerprinter)
            if result.failed:
                if not self.options.keep_going:
                    logging.debug(f"Reconciler - Aborting scan at {target.path}")
                    raise result.error
                self._record_failure(result.error, stats)
                continue

            if result.matched:
                self._handle_match(result, stats)

    def _handle_match(self, result: MatchResult, stats: ReconcileStats) -> None:
        source, target = result.source, result.target
        stats.files_matched += 1

        if self.options.batch:
            self._emit(format_batch_command(source, target))
            return

        for line in format_match_report(source, target, self.options.update):
            self._emit(line)

        try:
            if self.sync.apply(source, target):
                stats.files_touched += 1
        except RepairError as e:
            if not self.options.keep_going:
                raise
            self._record_failure(e, stats)

    def _record_failure(self, error: ReconcileError, stats: ReconcileStats) -> None:
        path = getattr(error, 'path', '')
        logging.warning(f"Reconciler - Skipping {path}: {error}")
        stats.failures.append((str(path), str(error)))

    def _emit(self, line: str) -> None:
        print(line, file=self.output)

    def _write_summary(self, stats: ReconcileStats) -> None:
        for line in format_summary(stats):
            print(line, file=self.diagnostics)
