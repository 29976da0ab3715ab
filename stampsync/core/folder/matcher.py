"""
Candidate matching for a single destination file.

First-match policy: candidates are checked in walk order and the first
content-equal one wins. Content-equal files are interchangeable for
timestamp repair, so no attempt is made to pick a "best" candidate.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from stampsync.core.models import (
    ComparisonError,
    FileReadError,
    FileRecord,
)
from stampsync.services.hashing import Fingerprinter


def find_match(
    candidates: Sequence[FileRecord],
    target: FileRecord,
    fingerprinter: Fingerprinter
) -> Optional[FileRecord]:
    """
    Find the first candidate with the same content but a different timestamp.

    Candidates whose truncated timestamp equals the target's are already in
    sync and are never compared.

    Args:
        candidates: Source records sharing the target's bucket, in walk order
        target: Destination record
        fingerprinter: Computes (and caches) content digests

    Returns:
        The matching source record, or None

    Raises:
        ComparisonError: either side could not be read
    """
    for candidate in candidates:
        if candidate.same_time(target):
            logging.debug(f"Matcher - {candidate.path} already in sync with {target.path}")
            continue

        try:
            source_digest = fingerprinter.fingerprint(candidate)
            target_digest = fingerprinter.fingerprint(target)
        except FileReadError as e:
            raise ComparisonError(candidate.path, target.path, e) from e

        if source_digest == target_digest:
            return candidate

    return None
