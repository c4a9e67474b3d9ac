"""SQLite implementation of the profile store."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import StorageUnavailable, VersionConflict
from .models import InstanceState
from .repository import ProfileStore

logger = logging.getLogger(__name__)

_COLUMNS = "subject_id, completed_steps, step_payloads, version, created_at, updated_at"


class SQLiteProfileStore(ProfileStore):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise StorageUnavailable(None, f"Cannot open SQLite store {self.db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                subject_id TEXT PRIMARY KEY,
                completed_steps TEXT NOT NULL,
                step_payloads TEXT NOT NULL,
                version INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _to_state(row: sqlite3.Row) -> InstanceState:
        return InstanceState(
            subject_id=row["subject_id"],
            completed_steps=json.loads(row["completed_steps"]),
            step_payloads=json.loads(row["step_payloads"]),
            version=row["version"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Store API
    async def load(self, subject_id: str) -> InstanceState | None:
        try:
            row = await asyncio.to_thread(
                self._fetchone,
                f"SELECT {_COLUMNS} FROM workflow_instances WHERE subject_id = ?",
                subject_id,
            )
        except sqlite3.Error as exc:
            logger.error(f"SQLite load failed for subject_id={subject_id}: {exc}")
            raise StorageUnavailable(subject_id, f"Failed to load {subject_id}: {exc}") from exc
        return self._to_state(row) if row else None

    async def save(self, state: InstanceState, expected_version: int) -> InstanceState:
        saved = state.model_copy(
            deep=True,
            update={
                "version": expected_version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        completed = json.dumps(saved.completed_steps)
        payloads = json.dumps(saved.step_payloads)
        try:
            if expected_version == 0:
                changed = await asyncio.to_thread(
                    self._execute,
                    f"INSERT INTO workflow_instances ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(subject_id) DO NOTHING",
                    saved.subject_id,
                    completed,
                    payloads,
                    saved.version,
                    saved.created_at.isoformat(),
                    saved.updated_at.isoformat(),
                )
            else:
                changed = await asyncio.to_thread(
                    self._execute,
                    """
                    UPDATE workflow_instances
                    SET completed_steps = ?, step_payloads = ?, version = ?, updated_at = ?
                    WHERE subject_id = ? AND version = ?
                    """,
                    completed,
                    payloads,
                    saved.version,
                    saved.updated_at.isoformat(),
                    saved.subject_id,
                    expected_version,
                )
        except sqlite3.Error as exc:
            logger.error(f"SQLite save failed for subject_id={state.subject_id}: {exc}")
            raise StorageUnavailable(
                state.subject_id, f"Failed to save {state.subject_id}: {exc}"
            ) from exc
        if changed != 1:
            raise VersionConflict(state.subject_id, expected_version)
        return saved

    async def list_instances(self) -> list[InstanceState]:
        try:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_COLUMNS} FROM workflow_instances ORDER BY created_at",
            )
        except sqlite3.Error as exc:
            raise StorageUnavailable(None, f"Failed to list instances: {exc}") from exc
        return [self._to_state(row) for row in rows]
