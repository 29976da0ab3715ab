"""
Timestamp synchronization.

Copies a source file's modification time onto a content-equal destination
file. Contents are never touched.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from stampsync.core.models import FileRecord, RepairError


@dataclass
class SyncOptions:
    """Options for timestamp repair."""
    preview_only: bool = False     # Don't actually make changes


class TimestampSync:
    """Applies source timestamps to destination files."""

    def __init__(self, options: SyncOptions | None = None):
        self.options = options or SyncOptions()

    def apply(self, source: FileRecord, target: FileRecord) -> bool:
        """
        Set the target's access and modification time to the source's mtime.

        Returns:
            True if the file on disk was changed

        Raises:
            RepairError: the timestamps could not be set
        """
        if self.options.preview_only:
            return False

        try:
            os.utime(target.path, ns=(source.mtime_ns, source.mtime_ns))
        except OSError as e:
            logging.debug(f"TimestampSync - Failed to set times on {target.path}: {e}")
            raise RepairError(target.path, e.strerror or str(e)) from e

        logging.debug(f"TimestampSync - {target.path} set to {source.modified_time}")
        return True
