"""
Storage Module - Snapshot persistence for finished pipeline runs.

Components:
-----------
- SnapshotStore: Interface (save_result / load_result / list_steps / list_results)
- SQLiteSnapshotStore: SQLite backend with thread-local connections
- InMemorySnapshotStore: Process-local backend for tests and one-off runs
- create_snapshot_store: Factory keyed by StorageConfig.storage_type
"""

from .snapshot_store import (
    InMemorySnapshotStore,
    SnapshotStore,
    SQLiteSnapshotStore,
    StorageConfig,
    create_snapshot_store,
)

__all__ = [
    'SnapshotStore',
    'SQLiteSnapshotStore',
    'InMemorySnapshotStore',
    'StorageConfig',
    'create_snapshot_store',
]
