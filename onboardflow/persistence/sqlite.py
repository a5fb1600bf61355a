"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional, Sequence

from ..errors import PersistenceError
from ..models import ExceptionRecord, IntegrationRecord, Step, Workflow, WorkflowDocument
from .repository import LocalWorkflowLocks, WorkflowRepository

logger = logging.getLogger(__name__)


class SQLiteWorkflowRepository(LocalWorkflowLocks, WorkflowRepository):
    """Persist onboarding state using SQLite.

    Each record is stored as a JSON document next to the columns used for
    filtering and ordering.
    """

    def __init__(self, db_path: str | Path):
        super().__init__()
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                employee_id TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_steps (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                order_index INTEGER NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        for table, status_column in (
            ("workflow_integrations", "status"),
            ("workflow_exceptions", "resolution_status"),
        ):
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                    {status_column} TEXT NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            logger.error(f"SQLite write failed: {exc}")
            raise PersistenceError(str(exc)) from exc

    def _executemany(self, query: str, rows: list[tuple]) -> None:
        try:
            with self._conn:
                self._conn.executemany(query, rows)
        except sqlite3.Error as exc:
            logger.error(f"SQLite batch write failed: {exc}")
            raise PersistenceError(str(exc)) from exc

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc

    @staticmethod
    def _filtered(base: str, filters: dict[str, Optional[str]], order_by: str) -> tuple[str, list]:
        clauses = [f"{column} = ?" for column, value in filters.items() if value is not None]
        params = [value for value in filters.values() if value is not None]
        query = base
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        return f"{query} ORDER BY {order_by}", params

    # ------------------------------------------------------------------
    # Workflows
    async def create_workflow(self, workflow: Workflow) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflows (id, employee_id, status, created_at, data) VALUES (?, ?, ?, ?, ?)",
            workflow.id,
            workflow.employee_id,
            workflow.status,
            workflow.created_at.isoformat(),
            workflow.model_dump_json(),
        )

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM workflows WHERE id = ?", workflow_id
        )
        return Workflow.model_validate_json(row["data"]) if row else None

    async def list_workflows(
        self, status: Optional[str] = None, employee_id: Optional[str] = None
    ) -> list[Workflow]:
        query, params = self._filtered(
            "SELECT data FROM workflows",
            {"status": status, "employee_id": employee_id},
            "created_at DESC",
        )
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [Workflow.model_validate_json(r["data"]) for r in rows]

    async def update_workflow(self, workflow: Workflow) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE workflows SET status = ?, data = ? WHERE id = ?",
            workflow.status,
            workflow.model_dump_json(),
            workflow.id,
        )

    async def delete_workflow(self, workflow_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )

    # ------------------------------------------------------------------
    # Steps
    async def create_steps(self, steps: Sequence[Step]) -> None:
        await asyncio.to_thread(
            self._executemany,
            "INSERT INTO workflow_steps (id, workflow_id, order_index, data) VALUES (?, ?, ?, ?)",
            [(s.id, s.workflow_id, s.order_index, s.model_dump_json()) for s in steps],
        )

    async def get_step(self, step_id: str) -> Step | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM workflow_steps WHERE id = ?", step_id
        )
        return Step.model_validate_json(row["data"]) if row else None

    async def list_steps(self, workflow_id: str) -> list[Step]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_steps WHERE workflow_id = ? ORDER BY order_index",
            workflow_id,
        )
        return [Step.model_validate_json(r["data"]) for r in rows]

    async def update_step(self, step: Step) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_steps SET data = ? WHERE id = ?",
            step.model_dump_json(),
            step.id,
        )

    # ------------------------------------------------------------------
    # Integrations
    async def create_integration(self, record: IntegrationRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_integrations (id, workflow_id, status, data) VALUES (?, ?, ?, ?)",
            record.id,
            record.workflow_id,
            record.status,
            record.model_dump_json(),
        )

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_integrations WHERE id = ?",
            integration_id,
        )
        return IntegrationRecord.model_validate_json(row["data"]) if row else None

    async def list_integrations(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[IntegrationRecord]:
        query, params = self._filtered(
            "SELECT data FROM workflow_integrations",
            {"workflow_id": workflow_id, "status": status},
            "seq",
        )
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [IntegrationRecord.model_validate_json(r["data"]) for r in rows]

    async def update_integration(self, record: IntegrationRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_integrations SET status = ?, data = ? WHERE id = ?",
            record.status,
            record.model_dump_json(),
            record.id,
        )

    # ------------------------------------------------------------------
    # Exceptions
    async def create_exception(self, record: ExceptionRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_exceptions (id, workflow_id, resolution_status, data) VALUES (?, ?, ?, ?)",
            record.id,
            record.workflow_id,
            record.resolution_status,
            record.model_dump_json(),
        )

    async def get_exception(self, exception_id: str) -> ExceptionRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_exceptions WHERE id = ?",
            exception_id,
        )
        return ExceptionRecord.model_validate_json(row["data"]) if row else None

    async def list_exceptions(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[ExceptionRecord]:
        query, params = self._filtered(
            "SELECT data FROM workflow_exceptions",
            {"workflow_id": workflow_id, "resolution_status": status},
            "seq",
        )
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [ExceptionRecord.model_validate_json(r["data"]) for r in rows]

    async def update_exception(self, record: ExceptionRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_exceptions SET resolution_status = ?, data = ? WHERE id = ?",
            record.resolution_status,
            record.model_dump_json(),
            record.id,
        )

    # ------------------------------------------------------------------
    # Documents
    async def create_document(self, document: WorkflowDocument) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_documents (id, workflow_id, data) VALUES (?, ?, ?)",
            document.id,
            document.workflow_id,
            document.model_dump_json(),
        )

    async def list_documents(self, workflow_id: str) -> list[WorkflowDocument]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_documents WHERE workflow_id = ? ORDER BY seq",
            workflow_id,
        )
        return [WorkflowDocument.model_validate_json(r["data"]) for r in rows]
