"""
Directory scanner for timestamp reconciliation.

Walks a tree depth-first and produces a FileRecord for every non-directory
entry:
- Root symlinks are resolved before walking
- Hidden directories are pruned
- Each directory's entries are visited in one lexical pass, descending into
  a subdirectory as soon as its name comes up
- Symlinks to regular files are indexed with their own lstat metadata;
  FIFOs, sockets, devices and links to anything else are skipped
- Any I/O error aborts the walk with WalkError
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from stampsync.core.models import (
    FileRecord,
    TreeIndex,
    WalkError,
)


@dataclass
class ScanOptions:
    """Options for directory scanning."""
    include_hidden: bool = False

    def should_descend(self, dirname: str) -> bool:
        """Check if a subdirectory should be walked."""
        if not self.include_hidden and dirname.startswith('.'):
            return False
        return True


class TreeScanner:
    """
    Scans a directory tree and yields its files.

    The walk is all-or-nothing by default: the first listing or stat failure
    raises WalkError. A caller that wants to continue past unreadable
    entries passes ``on_error``, which receives the WalkError instead.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()

    @staticmethod
    def resolve_root(root_path: Path | str) -> Path:
        """
        Resolve symlinks on the root and check that it is a directory.

        Raises:
            WalkError: root is missing or not a directory
        """
        root_path = Path(root_path)
        try:
            root_path = root_path.resolve()
        except (OSError, RuntimeError) as e:
            logging.debug(f"TreeScanner - Could not resolve {root_path}: {e}")

        if not root_path.exists():
            logging.debug(f"TreeScanner - Root path not found: {root_path}")
            raise WalkError(root_path, "directory not found")
        if not root_path.is_dir():
            logging.debug(f"TreeScanner - Root path is not a directory: {root_path}")
            raise WalkError(root_path, "not a directory")
        return root_path

    def iter_records(
        self,
        root_path: Path | str,
        on_error: Optional[Callable[[WalkError], None]] = None
    ) -> Iterator[FileRecord]:
        """
        Lazily walk a tree, yielding one FileRecord per file.

        Args:
            root_path: Root directory to walk
            on_error: Receives walk errors instead of raising them

        Raises:
            WalkError: enumeration failed and no ``on_error`` was given
        """
        root_path = self.resolve_root(root_path)

        def report(error: WalkError) -> None:
            if on_error is None:
                raise error
            on_error(error)

        yield from self._walk(root_path, report)

    def _walk(
        self,
        directory: Path,
        report: Callable[[WalkError], None]
    ) -> Iterator[FileRecord]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logging.debug(f"TreeScanner - Could not list {directory}: {e}")
            report(WalkError(e.filename or directory, e.strerror or str(e)))
            return

        for entry in entries:
            path = directory / entry.name

            if entry.is_dir(follow_symlinks=False):
                if self.options.should_descend(entry.name):
                    yield from self._walk(path, report)
                continue

            try:
                stat_result = entry.stat(follow_symlinks=False)
            except OSError as e:
                logging.debug(f"TreeScanner - Could not stat {path}: {e}")
                report(WalkError(path, e.strerror or str(e)))
                continue

            if self._is_indexable(path, stat_result):
                yield FileRecord.from_stat(path, stat_result)

    @staticmethod
    def _is_indexable(path: Path, stat_result: os.stat_result) -> bool:
        """Regular files, and symlinks whose target is a regular file."""
        if stat.S_ISREG(stat_result.st_mode):
            return True

        if stat.S_ISLNK(stat_result.st_mode):
            try:
                target_mode = os.stat(path).st_mode
            except OSError as e:
                logging.debug(f"TreeScanner - Skipping broken symlink {path}: {e}")
                return False
            if stat.S_ISREG(target_mode):
                return True

        logging.debug(f"TreeScanner - Skipping special file {path}")
        return False

    def index(self, root_path: Path | str) -> tuple[TreeIndex, int]:
        """
        Build the bucket index of a tree.

        Returns:
            The index and the number of files indexed

        Raises:
            WalkError: enumeration failed; no partial index is returned
        """
        root_path = self.resolve_root(root_path)
        tree_index = TreeIndex(root_path)

        for record in self.iter_records(root_path):
            tree_index.add(record)

        logging.info(
            f"TreeScanner - Indexed {tree_index.file_count} files "
            f"in {len(tree_index)} buckets under {root_path}"
        )
        return tree_index, tree_index.file_count


def index_tree(
    root_path: Path | str,
    options: Optional[ScanOptions] = None
) -> tuple[TreeIndex, int]:
    """Index a tree with a fresh TreeScanner."""
    return TreeScanner(options).index(root_path)
