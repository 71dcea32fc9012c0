from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import pytest
from asyncpg import exceptions as pg_exc

from portal_admin.services.bulk import BulkActionCoordinator
from portal_admin.services.entities import get_spec
from portal_admin.services.queries import build_query_filter
from portal_admin.services.repository import (
    PostgresRepository,
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import EntityKind

DATABASE_URL = os.getenv("JPA_DATABASE_URL")


def test_select_sql_hides_password_hash_and_casts_ids() -> None:
    sql = PostgresRepository._select_sql(get_spec(EntityKind.USER))

    assert "password_hash" not in sql
    assert sql.startswith("id::text as id")
    assert "status, status_reason" in sql


def test_select_sql_casts_foreign_keys_to_text() -> None:
    sql = PostgresRepository._select_sql(get_spec(EntityKind.APPLICATION))

    assert "job_id::text as job_id" in sql
    assert "user_id::text as user_id" in sql


def test_select_sql_omits_status_for_content_kinds() -> None:
    assert "status" not in PostgresRepository._select_sql(get_spec(EntityKind.SKILL))


def test_escape_like_escapes_wildcards() -> None:
    assert PostgresRepository._escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_parse_id_maps_malformed_uuid_to_not_found() -> None:
    with pytest.raises(RepositoryNotFoundError, match="job not found"):
        PostgresRepository._parse_id(get_spec(EntityKind.JOB), "not-a-uuid")


def test_validate_columns_rejects_unknown_fields() -> None:
    spec = get_spec(EntityKind.COMPANY)

    with pytest.raises(RepositoryValidationError, match="unsupported company fields: status"):
        PostgresRepository._validate_columns(spec, {"status": "active"}, allowed=spec.updatable_fields)
    assert PostgresRepository._validate_columns(
        spec,
        {"name": "Acme", "status": "active"},
        allowed=spec.columns,
        allow_status=True,
    ) == {"name": "Acme", "status": "active"}


def test_missing_database_url_is_unavailable() -> None:
    repository = PostgresRepository(database_url=None, min_pool_size=1, max_pool_size=1)

    with pytest.raises(RepositoryUnavailableError, match="JPA_DATABASE_URL is required"):
        asyncio.run(repository.find_page(EntityKind.JOB, build_query_filter(EntityKind.JOB)))


@pytest.mark.skipif(not DATABASE_URL, reason="JPA_DATABASE_URL is not set")
def test_postgres_round_trip_against_live_database() -> None:
    async def scenario() -> None:
        repository = PostgresRepository(database_url=DATABASE_URL, min_pool_size=1, max_pool_size=2)
        suffix = uuid4().hex[:8]
        try:
            company = await repository.create(EntityKind.COMPANY, {"name": f"Acme {suffix}"}, actor_id="test")
            assert company["status"] == "pending_verification"

            with pytest.raises(RepositoryDuplicateError):
                await repository.create(EntityKind.COMPANY, {"name": f"ACME {suffix}"})

            updated = await repository.update_status(EntityKind.COMPANY, company["id"], "active", reason="ok")
            assert updated["status"] == "active"
            unchanged = await repository.update_status(EntityKind.COMPANY, company["id"], "active")
            assert unchanged["status_reason"] == "ok"

            query = build_query_filter(EntityKind.COMPANY, search=suffix)
            page = await repository.find_page(EntityKind.COMPANY, query)
            assert [row["id"] for row in page.rows] == [company["id"]]

            events = await repository.list_events(EntityKind.COMPANY, company["id"], limit=10, offset=0)
            assert [event["event_type"] for event in events] == ["status_changed", "created"]

            await repository.hard_delete(EntityKind.COMPANY, company["id"], actor_id="test")
            page = await repository.find_page(EntityKind.COMPANY, query)
            assert page.total == 0
            with pytest.raises(RepositoryNotFoundError):
                await repository.get(EntityKind.COMPANY, company["id"])
        finally:
            await repository.close()

    asyncio.run(scenario())


GOOD_ID = "00000000-0000-0000-0000-000000000001"
DEADLOCK_ID = "00000000-0000-0000-0000-000000000002"


class ScriptedConnection:
    def __init__(self, failures: dict[str, Exception] | None = None, fetch_error: Exception | None = None) -> None:
        self.failures = failures or {}
        self.fetch_error = fetch_error
        self.executed: list[str] = []

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        yield

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any]:
        entity_id = str(args[0]) if args else ""
        if entity_id in self.failures:
            raise self.failures[entity_id]
        if "fetchrow" in self.failures:
            raise self.failures["fetchrow"]
        if query.lstrip().startswith("update"):
            return {"id": entity_id, "status": args[1], "status_reason": args[2]}
        return {"id": entity_id, "status": "pending", "status_reason": None}

    async def fetchval(self, query: str, *args: Any) -> Any:
        if self.fetch_error is not None:
            raise self.fetch_error
        return 0

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return []

    async def execute(self, query: str, *args: Any) -> str:
        self.executed.append(query)
        return "INSERT 0 1"


class ScriptedPool:
    def __init__(self, connection: ScriptedConnection) -> None:
        self.connection = connection

    @asynccontextmanager
    async def acquire(self, timeout: float | None = None) -> AsyncIterator[ScriptedConnection]:
        yield self.connection

    async def close(self) -> None:
        return None


def _scripted_repository(connection: ScriptedConnection) -> PostgresRepository:
    repository = PostgresRepository(database_url="postgresql://scripted", min_pool_size=1, max_pool_size=1)
    repository._pool = ScriptedPool(connection)
    return repository


def test_deadlock_during_status_write_is_unavailable() -> None:
    repository = _scripted_repository(
        ScriptedConnection(failures={DEADLOCK_ID: pg_exc.DeadlockDetectedError("deadlock detected")})
    )

    with pytest.raises(RepositoryUnavailableError, match="database error"):
        asyncio.run(repository.update_status(EntityKind.BLOG_COMMENT, DEADLOCK_ID, "approved"))


def test_cancelled_query_during_listing_is_unavailable() -> None:
    repository = _scripted_repository(
        ScriptedConnection(fetch_error=pg_exc.QueryCanceledError("canceling statement due to statement timeout"))
    )

    with pytest.raises(RepositoryUnavailableError):
        asyncio.run(repository.find_page(EntityKind.JOB, build_query_filter(EntityKind.JOB)))


def test_unique_violation_on_create_is_duplicate() -> None:
    repository = _scripted_repository(
        ScriptedConnection(failures={"fetchrow": pg_exc.UniqueViolationError("duplicate key value")})
    )

    with pytest.raises(RepositoryDuplicateError, match="skill already exists"):
        asyncio.run(repository.create(EntityKind.SKILL, {"name": "Python"}))


def test_check_violation_on_create_is_validation_error() -> None:
    repository = _scripted_repository(
        ScriptedConnection(failures={"fetchrow": pg_exc.CheckViolationError("violates check constraint")})
    )

    with pytest.raises(RepositoryValidationError, match="invalid skill payload"):
        asyncio.run(repository.create(EntityKind.SKILL, {"name": "Python"}))


def test_bulk_write_keeps_going_past_a_deadlocked_row() -> None:
    connection = ScriptedConnection(failures={DEADLOCK_ID: pg_exc.DeadlockDetectedError("deadlock detected")})
    coordinator = BulkActionCoordinator(_scripted_repository(connection))

    result = asyncio.run(coordinator.apply(EntityKind.BLOG_COMMENT, [GOOD_ID, DEADLOCK_ID], "approved"))

    assert result.succeeded == [GOOD_ID]
    assert result.failed == {DEADLOCK_ID: "store unavailable"}
    assert len(connection.executed) == 1
