"""
Folder reconciliation module.

Provides functionality for:
- Indexing directory trees by (name, size) bucket
- Matching destination files against source candidates by content
- Reporting and repairing timestamp mismatches
"""

from stampsync.core.folder.scanner import (
    TreeScanner,
    ScanOptions,
    index_tree,
)
from stampsync.core.folder.matcher import (
    find_match,
)
from stampsync.core.folder.sync import (
    TimestampSync,
    SyncOptions,
)
from stampsync.core.folder.reconciler import (
    Reconciler,
    ReconcileOptions,
)

__all__ = [
    # Scanner
    'TreeScanner',
    'ScanOptions',
    'index_tree',
    # Matcher
    'find_match',
    # Sync
    'TimestampSync',
    'SyncOptions',
    # Reconciler
    'Reconciler',
    'ReconcileOptions',
]
