"""SQLite store for node health history and maintenance operations."""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from nodekeeper.constants import Limits

logger = logging.getLogger(__name__)

_STUCK_AFTER = timedelta(hours=1)
_STUCK_MESSAGE = (
    "Marked as failed during startup cleanup - "
    "operation was stuck in running/started state"
)
_SELF_TEST_NODE = "test-node"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS health_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        node_name TEXT NOT NULL,
        is_healthy BOOLEAN NOT NULL,
        error_message TEXT,
        timestamp DATETIME NOT NULL,
        block_height INTEGER,
        is_syncing INTEGER,
        is_catching_up INTEGER,
        validator_address TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_health_node_timestamp "
    "ON health_records(node_name, timestamp DESC)",
    """
    CREATE TABLE IF NOT EXISTS maintenance_operations (
        id TEXT PRIMARY KEY,
        operation_type TEXT NOT NULL,
        target_name TEXT NOT NULL,
        status TEXT NOT NULL,
        started_at DATETIME NOT NULL,
        completed_at DATETIME,
        error_message TEXT,
        details TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_maintenance_target "
    "ON maintenance_operations(target_name, started_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_maintenance_status "
    "ON maintenance_operations(status, started_at DESC)",
)


class DatabaseError(Exception):
    """Raised when the database cannot be opened, read or written."""


def _encode_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(sep=" ", timespec="microseconds")


def _decode_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class HealthRecord:
    """One health check result for a node."""

    node_name: str
    is_healthy: bool
    timestamp: datetime
    error_message: str | None = None
    block_height: int | None = None
    is_syncing: int | None = None
    is_catching_up: int | None = None
    validator_address: str | None = None

    @classmethod
    def _from_row(cls, row: sqlite3.Row) -> HealthRecord:
        return cls(
            node_name=row["node_name"],
            is_healthy=bool(row["is_healthy"]),
            timestamp=_decode_time(row["timestamp"]),
            error_message=row["error_message"],
            block_height=row["block_height"],
            is_syncing=row["is_syncing"],
            is_catching_up=row["is_catching_up"],
            validator_address=row["validator_address"],
        )


@dataclass
class MaintenanceOperation:
    """A maintenance operation and its outcome."""

    id: str
    operation_type: str
    target_name: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None
    details: str | None = None

    @classmethod
    def _from_row(cls, row: sqlite3.Row) -> MaintenanceOperation:
        return cls(
            id=row["id"],
            operation_type=row["operation_type"],
            target_name=row["target_name"],
            status=row["status"],
            started_at=_decode_time(row["started_at"]),
            completed_at=_decode_time(row["completed_at"]),
            error_message=row["error_message"],
            details=row["details"],
        )


class Database:
    """Connection to the manager's SQLite database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    @classmethod
    def open(cls, database_path: str | Path) -> Database:
        """Open or create the database, prepare its tables and clear stuck operations."""
        logger.info("Opening database: %s", database_path)
        path = Path(database_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DatabaseError(f"Failed to create parent directory {path.parent}: {exc}") from exc
        try:
            connection = sqlite3.connect(str(path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise DatabaseError(f"Failed to connect to database {path}: {exc}") from exc

        database = cls(connection)
        try:
            database._initialize_tables()
            try:
                cleaned = database.cleanup_stuck_maintenance_operations()
            except DatabaseError as exc:
                logger.error("Failed to cleanup stuck maintenance operations: %s", exc)
                logger.warning("Continuing with startup despite cleanup failure")
            else:
                if cleaned:
                    logger.warning("Cleaned up %d stuck maintenance operations on startup", cleaned)
            database._self_test()
        except Exception:
            database.close()
            raise
        logger.info("Database initialization completed successfully")
        return database

    def close(self) -> None:
        """Close the connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                with self._conn:
                    return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    def _initialize_tables(self) -> None:
        for statement in _SCHEMA:
            try:
                self._execute(statement)
            except DatabaseError as exc:
                raise DatabaseError(f"Failed to initialize tables: {exc}") from exc

    def _self_test(self) -> None:
        rows = self._execute(
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name IN ('health_records', 'maintenance_operations')"
        )
        if len(rows) != 2:
            raise DatabaseError("Database tables not properly created")

        probe = HealthRecord(
            node_name=_SELF_TEST_NODE,
            is_healthy=True,
            timestamp=datetime.now(timezone.utc),
            block_height=12345,
            is_syncing=0,
            is_catching_up=0,
            validator_address="test-validator",
        )
        self.store_health_record(probe)
        self.get_latest_health_record(_SELF_TEST_NODE)
        try:
            self._execute("DELETE FROM health_records WHERE node_name = ?", (_SELF_TEST_NODE,))
        except DatabaseError as exc:
            logger.warning("Failed to cleanup test record (non-critical): %s", exc)

    def cleanup_stuck_maintenance_operations(self) -> int:
        """Mark running or started operations older than an hour as failed; return how many."""
        cutoff = _encode_time(datetime.now(timezone.utc) - _STUCK_AFTER)
        rows = self._execute(
            """
            SELECT id, operation_type, target_name, status, started_at
            FROM maintenance_operations
            WHERE status IN ('running', 'started') AND started_at < ?
            ORDER BY started_at ASC
            """,
            (cutoff,),
        )
        if not rows:
            logger.debug("No stuck maintenance operations found")
            return 0

        cleanup_time = _encode_time(datetime.now(timezone.utc))
        cleaned = 0
        for row in rows:
            logger.warning(
                "Cleaning up stuck operation: %s (%s) on %s - started at %s (status: %s)",
                row["id"],
                row["operation_type"],
                row["target_name"],
                row["started_at"],
                row["status"],
            )
            try:
                self._execute(
                    """
                    UPDATE maintenance_operations
                    SET status = 'failed', completed_at = ?, error_message = ?
                    WHERE id = ?
                    """,
                    (cleanup_time, _STUCK_MESSAGE, row["id"]),
                )
            except DatabaseError as exc:
                logger.error("Failed to cleanup operation %s: %s", row["id"], exc)
            else:
                cleaned += 1
        return cleaned

    def store_health_record(self, record: HealthRecord) -> None:
        """Append a health record."""
        logger.debug("Storing health record for: %s", record.node_name)
        self._execute(
            """
            INSERT INTO health_records (
                node_name, is_healthy, error_message, timestamp,
                block_height, is_syncing, is_catching_up, validator_address
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.node_name,
                bool(record.is_healthy),
                record.error_message,
                _encode_time(record.timestamp),
                record.block_height,
                record.is_syncing,
                record.is_catching_up,
                record.validator_address,
            ),
        )

    def get_latest_health_record(self, node_name: str) -> HealthRecord | None:
        """Return the newest health record for node_name, or None."""
        rows = self._execute(
            """
            SELECT node_name, is_healthy, error_message, timestamp,
                   block_height, is_syncing, is_catching_up, validator_address
            FROM health_records
            WHERE node_name = ?
            ORDER BY timestamp DESC
            LIMIT 1
            """,
            (node_name,),
        )
        return HealthRecord._from_row(rows[0]) if rows else None

    def store_maintenance_operation(self, operation: MaintenanceOperation) -> None:
        """Insert an operation, replacing any stored one with the same id."""
        logger.debug("Storing maintenance operation: %s", operation.id)
        self._execute(
            """
            INSERT OR REPLACE INTO maintenance_operations (
                id, operation_type, target_name, status, started_at,
                completed_at, error_message, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                operation.id,
                operation.operation_type,
                operation.target_name,
                operation.status,
                _encode_time(operation.started_at),
                _encode_time(operation.completed_at) if operation.completed_at else None,
                operation.error_message,
                operation.details,
            ),
        )

    def get_maintenance_operations(self, limit: int | None = None) -> list[MaintenanceOperation]:
        """Return operations newest first, at most limit of them (100 by default)."""
        limit_val = Limits.MAX_MAINTENANCE_OPERATIONS if limit is None else limit
        rows = self._execute(
            """
            SELECT id, operation_type, target_name, status, started_at,
                   completed_at, error_message, details
            FROM maintenance_operations
            ORDER BY started_at DESC
            LIMIT ?
            """,
            (limit_val,),
        )
        return [MaintenanceOperation._from_row(row) for row in rows]