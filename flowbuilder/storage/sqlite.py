"""SQLite-backed durable storage for automations and executions."""

import json
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, List, Optional

import aiosqlite

from ..errors import AutomationNotFoundError, DuplicateNameError, ExecutionNotFoundError
from ..workflow.compiler import graph_from_dicts
from ..workflow.models import Automation, Execution, ExecutionStatus, LogEntry
from ..workflow.schema import edge_to_dict, node_to_dict
from .base import AutomationStore, ExecutionStore, check_execution_fields

SCHEMA = """
CREATE TABLE IF NOT EXISTS automations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    nodes TEXT NOT NULL,
    edges TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS executions (
    id TEXT PRIMARY KEY,
    automation_id TEXT NOT NULL,
    subject TEXT NOT NULL,
    status TEXT NOT NULL,
    current_node_id TEXT,
    scheduled_for TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_executions_scheduled ON executions (status, scheduled_for);
CREATE TABLE IF NOT EXISTS execution_logs (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    execution_id TEXT NOT NULL REFERENCES executions (id),
    node_id TEXT NOT NULL,
    node_type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    status TEXT NOT NULL,
    message TEXT,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_execution_logs_execution ON execution_logs (execution_id, seq);
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SqliteDatabase:
    """
    One database file shared by the automation and execution stores.

    Call ``initialize()`` once before use and ``close()`` on shutdown.
    """

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteDatabase used before initialize()")
        return self._conn


class SqliteAutomationStore(AutomationStore):

    def __init__(self, database: SqliteDatabase):
        self.database = database

    def _row_to_automation(self, row) -> Automation:
        nodes, edges = graph_from_dicts(json.loads(row["nodes"]), json.loads(row["edges"]))
        return Automation(
            id=row["id"],
            name=row["name"],
            nodes=nodes,
            edges=edges,
            created_at=_from_text(row["created_at"]),
            updated_at=_from_text(row["updated_at"]),
        )

    async def _fetch_one(self, query: str, params: tuple) -> Optional[Automation]:
        async with self.database.conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return self._row_to_automation(row) if row else None

    async def create(self, automation: Automation) -> Automation:
        conn = self.database.conn
        now = _now()
        stored = replace(automation, id=automation.id or str(uuid.uuid4()), created_at=now, updated_at=now)
        try:
            await conn.execute(
                "INSERT INTO automations (id, name, nodes, edges, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    stored.id,
                    stored.name,
                    json.dumps([node_to_dict(n) for n in stored.nodes]),
                    json.dumps([edge_to_dict(e) for e in stored.edges]),
                    _to_text(now),
                    _to_text(now),
                ),
            )
            await conn.commit()
        except aiosqlite.IntegrityError:
            await conn.rollback()
            raise DuplicateNameError(stored.name)
        return stored

    async def get(self, automation_id: str) -> Optional[Automation]:
        return await self._fetch_one("SELECT * FROM automations WHERE id = ?", (automation_id,))

    async def get_by_name(self, name: str) -> Optional[Automation]:
        return await self._fetch_one("SELECT * FROM automations WHERE name = ?", (name,))

    async def list(self) -> List[Automation]:
        async with self.database.conn.execute("SELECT * FROM automations ORDER BY updated_at DESC") as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_automation(r) for r in rows]

    async def update(self, automation: Automation) -> Automation:
        conn = self.database.conn
        try:
            cursor = await conn.execute(
                "UPDATE automations SET name = ?, nodes = ?, edges = ?, updated_at = ? WHERE id = ?",
                (
                    automation.name,
                    json.dumps([node_to_dict(n) for n in automation.nodes]),
                    json.dumps([edge_to_dict(e) for e in automation.edges]),
                    _to_text(_now()),
                    automation.id,
                ),
            )
            await conn.commit()
        except aiosqlite.IntegrityError:
            await conn.rollback()
            raise DuplicateNameError(automation.name)
        if cursor.rowcount == 0:
            raise AutomationNotFoundError(automation.id)
        return await self.get(automation.id)

    async def delete(self, automation_id: str) -> bool:
        conn = self.database.conn
        cursor = await conn.execute("DELETE FROM automations WHERE id = ?", (automation_id,))
        await conn.commit()
        return cursor.rowcount > 0


class SqliteExecutionStore(ExecutionStore):
    """ Executions table plus an append-only log table ordered by insertion. """

    def __init__(self, database: SqliteDatabase):
        self.database = database

    async def _row_to_execution(self, row) -> Execution:
        async with self.database.conn.execute(
            "SELECT * FROM execution_logs WHERE execution_id = ? ORDER BY seq", (row["id"],)
        ) as cursor:
            log_rows = await cursor.fetchall()
        return Execution(
            id=row["id"],
            automation_id=row["automation_id"],
            subject=row["subject"],
            status=row["status"],
            current_node_id=row["current_node_id"],
            execution_log=[
                LogEntry(
                    node_id=r["node_id"],
                    node_type=r["node_type"],
                    timestamp=_from_text(r["timestamp"]),
                    status=r["status"],
                    message=r["message"],
                    error=r["error"],
                )
                for r in log_rows
            ],
            scheduled_for=_from_text(row["scheduled_for"]),
            completed_at=_from_text(row["completed_at"]),
            created_at=_from_text(row["created_at"]),
        )

    async def _fetch_all(self, query: str, params: tuple) -> List[Execution]:
        async with self.database.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [await self._row_to_execution(r) for r in rows]

    async def create(self, execution: Execution) -> Execution:
        conn = self.database.conn
        stored = replace(
            execution,
            id=execution.id or str(uuid.uuid4()),
            created_at=execution.created_at or _now(),
        )
        await conn.execute(
            "INSERT INTO executions (id, automation_id, subject, status, current_node_id, scheduled_for, "
            "completed_at, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                stored.id,
                stored.automation_id,
                stored.subject,
                stored.status,
                stored.current_node_id,
                _to_text(stored.scheduled_for),
                _to_text(stored.completed_at),
                _to_text(stored.created_at),
            ),
        )
        await conn.commit()
        for entry in stored.execution_log:
            await self.append_log(stored.id, entry)
        return await self.get(stored.id)

    async def get(self, execution_id: str) -> Optional[Execution]:
        found = await self._fetch_all("SELECT * FROM executions WHERE id = ?", (execution_id,))
        return found[0] if found else None

    async def update(self, execution_id: str, **fields: Any) -> Execution:
        check_execution_fields(fields)
        conn = self.database.conn
        if fields:
            columns = ", ".join(f"{key} = ?" for key in fields)
            values = [_to_text(v) if isinstance(v, datetime) else v for v in fields.values()]
            cursor = await conn.execute(f"UPDATE executions SET {columns} WHERE id = ?", (*values, execution_id))
            await conn.commit()
            if cursor.rowcount == 0:
                raise ExecutionNotFoundError(execution_id)
        execution = await self.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    async def append_log(self, execution_id: str, entry: LogEntry) -> None:
        conn = self.database.conn
        async with conn.execute("SELECT 1 FROM executions WHERE id = ?", (execution_id,)) as cursor:
            if await cursor.fetchone() is None:
                raise ExecutionNotFoundError(execution_id)
        await conn.execute(
            "INSERT INTO execution_logs (execution_id, node_id, node_type, timestamp, status, message, error) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                execution_id,
                entry.node_id,
                entry.node_type,
                _to_text(entry.timestamp),
                entry.status,
                entry.message,
                entry.error,
            ),
        )
        await conn.commit()

    async def list_recent(self, limit: int = 50) -> List[Execution]:
        return await self._fetch_all("SELECT * FROM executions ORDER BY created_at DESC LIMIT ?", (limit,))

    async def list_scheduled(self) -> List[Execution]:
        return await self._fetch_all(
            "SELECT * FROM executions WHERE status = ? AND scheduled_for IS NOT NULL",
            (ExecutionStatus.PENDING,),
        )
