"""
Snapshot Store - Persists finished PipelineResults for polling.
Supports two backends: SQLite (default) and in-memory.
"""

import json
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from ..errors import ConfigError, PersistenceError, ResultNotFoundError
from ..pipeline.pipeline_data import PipelineConfig, PipelineResult, PipelineStep


@dataclass
class StorageConfig:
    """Configuration for the snapshot store."""
    storage_type: str = "sqlite"  # 'sqlite' or 'memory'

    # SQLite settings
    database_path: str = "data/pipeline.db"


class SnapshotStore(ABC):
    """Interface for pipeline result persistence."""

    @abstractmethod
    def save_result(self, result: PipelineResult) -> str:
        """Insert or replace a result with all its steps; returns its id."""
        pass

    @abstractmethod
    def load_result(self, execution_id: str) -> PipelineResult:
        """
        Load a result by id.

        Raises:
            ResultNotFoundError: If no snapshot exists for the id
            PersistenceError: On read failure
        """
        pass

    @abstractmethod
    def list_steps(self, pipeline_id: str) -> List[PipelineStep]:
        """Steps of a stored run in discovery order (empty if unknown)."""
        pass

    @abstractmethod
    def list_results(self, offset: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        """Summaries of stored runs, newest first."""
        pass

    def close(self):
        pass


class InMemorySnapshotStore(SnapshotStore):
    """Keeps serialized snapshots in a dict; results never share state with callers."""

    def __init__(self):
        self.snapshots: Dict[str, Dict[str, Any]] = {}
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def save_result(self, result: PipelineResult) -> str:
        snapshot = json.loads(json.dumps(result.to_dict(), default=str))
        with self.lock:
            self.snapshots[result.id] = snapshot
        self.logger.debug(f"Saved snapshot {result.id} ({result.total_steps} steps)")
        return result.id

    def load_result(self, execution_id: str) -> PipelineResult:
        with self.lock:
            snapshot = self.snapshots.get(execution_id)
        if snapshot is None:
            raise ResultNotFoundError(execution_id)
        return PipelineResult.from_dict(snapshot)

    def list_steps(self, pipeline_id: str) -> List[PipelineStep]:
        with self.lock:
            snapshot = self.snapshots.get(pipeline_id)
        if snapshot is None:
            return []
        return PipelineResult.from_dict(snapshot).steps

    def list_results(self, offset: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        with self.lock:
            snapshots = list(self.snapshots.values())
        summaries = [PipelineResult.from_dict(s).summary() for s in snapshots]
        summaries.sort(key=lambda s: s['created_at'], reverse=True)
        return summaries[offset:offset + limit]


class SQLiteSnapshotStore(SnapshotStore):
    """SQLite snapshot storage backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        # Thread-local connections
        self.local = threading.local()
        self.connections: List[sqlite3.Connection] = []
        self.connections_lock = threading.Lock()

        self._init_database()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self.local, 'conn'):
            conn = sqlite3.connect(self.config.database_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self.local.conn = conn
            with self.connections_lock:
                self.connections.append(conn)
        return self.local.conn

    def _init_database(self):
        """Initialize database schema."""
        directory = os.path.dirname(self.config.database_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            conn = sqlite3.connect(self.config.database_path)
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS pipeline_results (
                    id TEXT PRIMARY KEY,
                    query TEXT NOT NULL,
                    status TEXT NOT NULL,
                    total_steps INTEGER,
                    successful_steps INTEGER,
                    failed_steps INTEGER,
                    max_depth_reached INTEGER,
                    config TEXT NOT NULL,
                    created_at TEXT,
                    finished_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS pipeline_steps (
                    id TEXT PRIMARY KEY,
                    pipeline_id TEXT NOT NULL,
                    sequence INTEGER NOT NULL,
                    domain_type TEXT NOT NULL,
                    search_parameter TEXT NOT NULL,
                    category TEXT,
                    depth INTEGER NOT NULL,
                    parent_step_id TEXT,
                    success INTEGER NOT NULL,
                    error TEXT,
                    output TEXT,
                    keywords_per_category TEXT,
                    duration_seconds REAL,
                    FOREIGN KEY (pipeline_id) REFERENCES pipeline_results(id)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_steps_pipeline ON pipeline_steps(pipeline_id, sequence)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_results_created ON pipeline_results(created_at)")

            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize database {self.config.database_path}: {e}")

        self.logger.info(f"Database initialized at {self.config.database_path}")

    def save_result(self, result: PipelineResult) -> str:
        result.compute_statistics()
        try:
            conn = self._get_connection()
            with conn:
                conn.execute("""
                    INSERT OR REPLACE INTO pipeline_results
                    (id, query, status, total_steps, successful_steps, failed_steps,
                     max_depth_reached, config, created_at, finished_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    result.id,
                    result.config.query,
                    result.status,
                    result.total_steps,
                    result.successful_steps,
                    result.failed_steps,
                    result.max_depth_reached,
                    json.dumps(result.config.to_dict()),
                    result.created_at.isoformat(),
                    result.finished_at.isoformat() if result.finished_at else None,
                ))
                conn.execute("DELETE FROM pipeline_steps WHERE pipeline_id = ?", (result.id,))
                conn.executemany("""
                    INSERT OR REPLACE INTO pipeline_steps
                    (id, pipeline_id, sequence, domain_type, search_parameter, category, depth,
                     parent_step_id, success, error, output, keywords_per_category, duration_seconds)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, [self._step_row(step) for step in result.steps])
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save result {result.id}: {e}")

        self.logger.info(f"Saved pipeline {result.id} ({result.total_steps} steps)")
        return result.id

    @staticmethod
    def _step_row(step: PipelineStep) -> tuple:
        data = step.to_dict()
        return (
            data['id'],
            data['pipeline_id'],
            data['sequence'],
            data['domain_type'],
            data['search_parameter'],
            data['category'],
            data['depth'],
            data['parent_step_id'],
            1 if data['success'] else 0,
            data['error'],
            json.dumps(data['output'], default=str, ensure_ascii=False),
            json.dumps(data['keywords_per_category'], ensure_ascii=False),
            data['duration_seconds'],
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> PipelineStep:
        return PipelineStep.from_dict({
            'id': row['id'],
            'pipeline_id': row['pipeline_id'],
            'sequence': row['sequence'],
            'domain_type': row['domain_type'],
            'search_parameter': row['search_parameter'],
            'category': row['category'],
            'depth': row['depth'],
            'parent_step_id': row['parent_step_id'],
            'success': bool(row['success']),
            'error': row['error'],
            'output': json.loads(row['output'] or '[]'),
            'keywords_per_category': json.loads(row['keywords_per_category'] or '{}'),
            'duration_seconds': row['duration_seconds'],
        })

    def load_result(self, execution_id: str) -> PipelineResult:
        try:
            conn = self._get_connection()
            row = conn.execute(
                "SELECT * FROM pipeline_results WHERE id = ?", (execution_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load result {execution_id}: {e}")

        if row is None:
            raise ResultNotFoundError(execution_id)

        result = PipelineResult(
            id=row['id'],
            config=PipelineConfig.from_dict(json.loads(row['config'])),
            steps=self.list_steps(execution_id),
            status=row['status'],
        )
        if row['created_at']:
            result.created_at = datetime.fromisoformat(row['created_at'])
        if row['finished_at']:
            result.finished_at = datetime.fromisoformat(row['finished_at'])
        result.compute_statistics()
        return result

    def list_steps(self, pipeline_id: str) -> List[PipelineStep]:
        try:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT * FROM pipeline_steps WHERE pipeline_id = ? ORDER BY sequence",
                (pipeline_id,)
            ).fetchall()
            return [self._row_to_step(row) for row in rows]
        except (sqlite3.Error, ValueError) as e:
            raise PersistenceError(f"Failed to list steps of {pipeline_id}: {e}")

    def list_results(self, offset: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        try:
            conn = self._get_connection()
            rows = conn.execute("""
                SELECT id, query, status, total_steps, successful_steps, failed_steps,
                       max_depth_reached, created_at, finished_at
                FROM pipeline_results
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
            """, (limit, offset)).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list results: {e}")
        return [dict(row) for row in rows]

    def close(self):
        """Close all database connections."""
        with self.connections_lock:
            for conn in self.connections:
                conn.close()
            self.connections.clear()
        self.local = threading.local()
        self.logger.info("Database connections closed")


def create_snapshot_store(config: StorageConfig) -> SnapshotStore:
    """Build the store selected by config.storage_type."""
    if config.storage_type == "sqlite":
        return SQLiteSnapshotStore(config)
    if config.storage_type == "memory":
        return InMemorySnapshotStore()
    raise ConfigError(f"Unknown storage_type: {config.storage_type}")
