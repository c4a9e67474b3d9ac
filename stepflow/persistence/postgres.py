"""PostgreSQL implementation of the profile store."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

import asyncpg

from ..errors import StorageUnavailable, VersionConflict
from .models import InstanceState
from .repository import ProfileStore

logger = logging.getLogger(__name__)

_COLUMNS = "subject_id, completed_steps, step_payloads, version, created_at, updated_at"


class PostgresProfileStore(ProfileStore):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str, connect_timeout: float = 10.0):
        self._dsn = dsn
        self._connect_timeout = connect_timeout
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn, timeout=self._connect_timeout)
        except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as exc:
            logger.error(f"Cannot reach PostgreSQL store: {exc}")
            raise StorageUnavailable(None, f"PostgreSQL unavailable: {exc}") from exc
        if not self._initialized:
            try:
                await self._ensure_schema(conn)
            except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as exc:
                await conn.close()
                logger.error(f"Cannot create PostgreSQL schema: {exc}")
                raise StorageUnavailable(None, f"PostgreSQL schema setup failed: {exc}") from exc
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                subject_id TEXT PRIMARY KEY,
                completed_steps JSONB NOT NULL,
                step_payloads JSONB NOT NULL,
                version INTEGER NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    @staticmethod
    def _to_state(row: asyncpg.Record) -> InstanceState:
        return InstanceState(
            subject_id=row["subject_id"],
            completed_steps=json.loads(row["completed_steps"]),
            step_payloads=json.loads(row["step_payloads"]),
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def load(self, subject_id: str) -> InstanceState | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM workflow_instances WHERE subject_id = $1",
                subject_id,
            )
        except asyncpg.PostgresError as exc:
            raise StorageUnavailable(subject_id, f"Failed to load {subject_id}: {exc}") from exc
        finally:
            await conn.close()
        return self._to_state(row) if row else None

    async def save(self, state: InstanceState, expected_version: int) -> InstanceState:
        saved = state.model_copy(
            deep=True,
            update={
                "version": expected_version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        conn = await self._connect()
        try:
            if expected_version == 0:
                result = await conn.execute(
                    f"INSERT INTO workflow_instances ({_COLUMNS}) "
                    "VALUES ($1, $2, $3, $4, $5, $6) ON CONFLICT (subject_id) DO NOTHING",
                    saved.subject_id,
                    json.dumps(saved.completed_steps),
                    json.dumps(saved.step_payloads),
                    saved.version,
                    saved.created_at,
                    saved.updated_at,
                )
            else:
                result = await conn.execute(
                    """
                    UPDATE workflow_instances
                    SET completed_steps = $1, step_payloads = $2, version = $3, updated_at = $4
                    WHERE subject_id = $5 AND version = $6
                    """,
                    json.dumps(saved.completed_steps),
                    json.dumps(saved.step_payloads),
                    saved.version,
                    saved.updated_at,
                    saved.subject_id,
                    expected_version,
                )
        except asyncpg.PostgresError as exc:
            logger.error(f"PostgreSQL save failed for subject_id={state.subject_id}: {exc}")
            raise StorageUnavailable(
                state.subject_id, f"Failed to save {state.subject_id}: {exc}"
            ) from exc
        finally:
            await conn.close()
        # asyncpg status strings look like "INSERT 0 1" or "UPDATE 1"
        if not result.endswith(" 1"):
            raise VersionConflict(state.subject_id, expected_version)
        return saved

    async def list_instances(self) -> list[InstanceState]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM workflow_instances ORDER BY created_at"
            )
        except asyncpg.PostgresError as exc:
            raise StorageUnavailable(None, f"Failed to list instances: {exc}") from exc
        finally:
            await conn.close()
        return [self._to_state(r) for r in rows]
