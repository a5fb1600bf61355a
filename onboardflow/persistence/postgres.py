"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import asyncpg

from ..errors import PersistenceError
from ..models import ExceptionRecord, IntegrationRecord, Step, Workflow, WorkflowDocument
from .repository import WorkflowRepository

logger = logging.getLogger(__name__)


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist onboarding state using PostgreSQL.

    Records are stored as JSONB documents. Workflow locks are transaction
    scoped advisory locks, so they hold across processes sharing a database.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
            if not self._initialized:
                await self._ensure_schema(conn)
                self._initialized = True
        except (OSError, asyncpg.PostgresError) as exc:
            raise PersistenceError(f"Could not connect to PostgreSQL: {exc}") from exc
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                employee_id TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_steps (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                order_index INTEGER NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_integrations (
                seq BIGSERIAL PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                status TEXT NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_exceptions (
                seq BIGSERIAL PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                resolution_status TEXT NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_documents (
                seq BIGSERIAL PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                data JSONB NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    @asynccontextmanager
    async def workflow_lock(self, workflow_id: str) -> AsyncIterator[None]:
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", workflow_id)
                yield
        finally:
            await conn.close()

    async def _execute(self, query: str, *args: Any) -> None:
        conn = await self._connect()
        try:
            await conn.execute(query, *args)
        except asyncpg.PostgresError as exc:
            logger.error(f"PostgreSQL write failed: {exc}")
            raise PersistenceError(str(exc)) from exc
        finally:
            await conn.close()

    async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetchrow(query, *args)
        except asyncpg.PostgresError as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            await conn.close()

    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetch(query, *args)
        except asyncpg.PostgresError as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            await conn.close()

    @staticmethod
    def _filtered(base: str, filters: dict[str, Optional[str]], order_by: str) -> tuple[str, list]:
        clauses = []
        params: list = []
        for column, value in filters.items():
            if value is None:
                continue
            params.append(value)
            clauses.append(f"{column} = ${len(params)}")
        query = base
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        return f"{query} ORDER BY {order_by}", params

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> None:
        await self._execute(
            "INSERT INTO workflows (id, employee_id, status, created_at, data) VALUES ($1, $2, $3, $4, $5::jsonb)",
            workflow.id,
            workflow.employee_id,
            workflow.status,
            workflow.created_at,
            workflow.model_dump_json(),
        )

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await self._fetchrow("SELECT data FROM workflows WHERE id = $1", workflow_id)
        return Workflow.model_validate_json(row["data"]) if row else None

    async def list_workflows(
        self, status: Optional[str] = None, employee_id: Optional[str] = None
    ) -> list[Workflow]:
        query, params = self._filtered(
            "SELECT data FROM workflows",
            {"status": status, "employee_id": employee_id},
            "created_at DESC",
        )
        rows = await self._fetch(query, *params)
        return [Workflow.model_validate_json(r["data"]) for r in rows]

    async def update_workflow(self, workflow: Workflow) -> None:
        await self._execute(
            "UPDATE workflows SET status = $1, data = $2::jsonb WHERE id = $3",
            workflow.status,
            workflow.model_dump_json(),
            workflow.id,
        )

    async def delete_workflow(self, workflow_id: str) -> None:
        await self._execute("DELETE FROM workflows WHERE id = $1", workflow_id)

    # ------------------------------------------------------------------
    async def create_steps(self, steps: Sequence[Step]) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.executemany(
                    "INSERT INTO workflow_steps (id, workflow_id, order_index, data) VALUES ($1, $2, $3, $4::jsonb)",
                    [(s.id, s.workflow_id, s.order_index, s.model_dump_json()) for s in steps],
                )
        except asyncpg.PostgresError as exc:
            logger.error(f"PostgreSQL batch write failed: {exc}")
            raise PersistenceError(str(exc)) from exc
        finally:
            await conn.close()

    async def get_step(self, step_id: str) -> Step | None:
        row = await self._fetchrow("SELECT data FROM workflow_steps WHERE id = $1", step_id)
        return Step.model_validate_json(row["data"]) if row else None

    async def list_steps(self, workflow_id: str) -> list[Step]:
        rows = await self._fetch(
            "SELECT data FROM workflow_steps WHERE workflow_id = $1 ORDER BY order_index",
            workflow_id,
        )
        return [Step.model_validate_json(r["data"]) for r in rows]

    async def update_step(self, step: Step) -> None:
        await self._execute(
            "UPDATE workflow_steps SET data = $1::jsonb WHERE id = $2",
            step.model_dump_json(),
            step.id,
        )

    # ------------------------------------------------------------------
    async def create_integration(self, record: IntegrationRecord) -> None:
        await self._execute(
            "INSERT INTO workflow_integrations (id, workflow_id, status, data) VALUES ($1, $2, $3, $4::jsonb)",
            record.id,
            record.workflow_id,
            record.status,
            record.model_dump_json(),
        )

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None:
        row = await self._fetchrow(
            "SELECT data FROM workflow_integrations WHERE id = $1", integration_id
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
        rows = await self._fetch(query, *params)
        return [IntegrationRecord.model_validate_json(r["data"]) for r in rows]

    async def update_integration(self, record: IntegrationRecord) -> None:
        await self._execute(
            "UPDATE workflow_integrations SET status = $1, data = $2::jsonb WHERE id = $3",
            record.status,
            record.model_dump_json(),
            record.id,
        )

    # ------------------------------------------------------------------
    async def create_exception(self, record: ExceptionRecord) -> None:
        await self._execute(
            "INSERT INTO workflow_exceptions (id, workflow_id, resolution_status, data) VALUES ($1, $2, $3, $4::jsonb)",
            record.id,
            record.workflow_id,
            record.resolution_status,
            record.model_dump_json(),
        )

    async def get_exception(self, exception_id: str) -> ExceptionRecord | None:
        row = await self._fetchrow(
            "SELECT data FROM workflow_exceptions WHERE id = $1", exception_id
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
        rows = await self._fetch(query, *params)
        return [ExceptionRecord.model_validate_json(r["data"]) for r in rows]

    async def update_exception(self, record: ExceptionRecord) -> None:
        await self._execute(
            "UPDATE workflow_exceptions SET resolution_status = $1, data = $2::jsonb WHERE id = $3",
            record.resolution_status,
            record.model_dump_json(),
            record.id,
        )

    # ------------------------------------------------------------------
    async def create_document(self, document: WorkflowDocument) -> None:
        await self._execute(
            "INSERT INTO workflow_documents (id, workflow_id, data) VALUES ($1, $2, $3::jsonb)",
            document.id,
            document.workflow_id,
            document.model_dump_json(),
        )

    async def list_documents(self, workflow_id: str) -> list[WorkflowDocument]:
        rows = await self._fetch(
            "SELECT data FROM workflow_documents WHERE workflow_id = $1 ORDER BY seq",
            workflow_id,
        )
        return [WorkflowDocument.model_validate_json(r["data"]) for r in rows]
