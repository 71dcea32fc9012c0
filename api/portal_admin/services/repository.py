from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from portal_admin.services.entities import EntitySpec, get_spec
from portal_admin.services.queries import QueryFilter
from portal_admin.services.statuses import INITIAL_STATUS, EntityKind

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable, timed out, or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryDuplicateError(RepositoryError):
    """Raised when a write collides with an existing unique value."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


@dataclass(slots=True)
class PageSlice:
    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


_UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.InterfaceError,
    pg_exc.PostgresConnectionError,
    pg_exc.CannotConnectNowError,
    pg_exc.TooManyConnectionsError,
)


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = max(0.1, command_timeout_seconds)
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def find_page(self, kind: EntityKind, query: QueryFilter) -> PageSlice:
        spec = get_spec(kind)
        conditions: list[str] = ["deleted_at is null"]
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if query.status and spec.has_status:
            conditions.append(f"status = {bind(query.status)}")

        if query.search and spec.search_fields:
            token = bind(f"%{self._escape_like(query.search)}%")
            matches = " or ".join(f"coalesce({column}, '') ilike {token}" for column in spec.search_fields)
            conditions.append(f"({matches})")

        for name, value in query.entity_filters().items():
            column = spec.filter_fields.get(name)
            if column is None:
                raise RepositoryValidationError(f"filter '{name}' is not supported for {spec.label}")
            conditions.append(f"{column}::text = {bind(value)}")

        if query.created_from is not None:
            conditions.append(f"created_at >= {bind(query.created_from)}")
        if query.created_to is not None:
            conditions.append(f"created_at <= {bind(query.created_to)}")

        where_sql = " and ".join(conditions)
        filter_params = list(params)
        limit_token = bind(query.limit)
        offset_token = bind(query.offset)

        async with self._connection(spec.label) as conn:
            total = await conn.fetchval(
                f"select count(*) from {spec.table} where {where_sql}",
                *filter_params,
            )
            rows = await conn.fetch(
                f"""
                select {self._select_sql(spec)}
                from {spec.table}
                where {where_sql}
                order by created_at desc, id asc
                limit {limit_token}
                offset {offset_token}
                """,
                *params,
            )
        return PageSlice(rows=[dict(row) for row in rows], total=int(total or 0))

    async def get(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        spec = get_spec(kind)
        entity_uuid = self._parse_id(spec, entity_id)
        async with self._connection(spec.label) as conn:
            row = await conn.fetchrow(
                f"""
                select {self._select_sql(spec)}
                from {spec.table}
                where id = $1 and deleted_at is null
                """,
                entity_uuid,
            )
        if not row:
            raise RepositoryNotFoundError(f"{spec.label} not found")
        return dict(row)

    async def update_status(
        self,
        kind: EntityKind,
        entity_id: str,
        status: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        spec = get_spec(kind)
        if not spec.has_status:
            raise RepositoryValidationError(f"{spec.label} has no status field")
        entity_uuid = self._parse_id(spec, entity_id)

        async with self._connection(spec.label) as conn:
            async with conn.transaction():
                existing = await conn.fetchrow(
                    f"""
                    select {self._select_sql(spec)}
                    from {spec.table}
                    where id = $1 and deleted_at is null
                    for update
                    """,
                    entity_uuid,
                )
                if not existing:
                    raise RepositoryNotFoundError(f"{spec.label} not found")

                from_status = str(existing["status"])
                if from_status == status:
                    return dict(existing)

                row = await conn.fetchrow(
                    f"""
                    update {spec.table}
                    set
                      status = $2,
                      status_reason = $3,
                      updated_at = now()
                    where id = $1
                    returning {self._select_sql(spec)}
                    """,
                    entity_uuid,
                    status,
                    reason,
                )
                await self._record_event(
                    conn=conn,
                    kind=spec.kind,
                    entity_id=entity_uuid,
                    event_type="status_changed",
                    actor_id=actor_id,
                    payload={"from_status": from_status, "to_status": status, "reason": reason},
                )
        if not row:
            raise RepositoryNotFoundError(f"{spec.label} not found")
        return dict(row)

    async def soft_delete(self, kind: EntityKind, entity_id: str, actor_id: str | None = None) -> None:
        spec = get_spec(kind)
        entity_uuid = self._parse_id(spec, entity_id)
        async with self._connection(spec.label) as conn:
            async with conn.transaction():
                deleted = await conn.fetchval(
                    f"""
                    update {spec.table}
                    set deleted_at = now(), updated_at = now()
                    where id = $1 and deleted_at is null
                    returning id
                    """,
                    entity_uuid,
                )
                if deleted is None:
                    raise RepositoryNotFoundError(f"{spec.label} not found")
                await self._record_event(
                    conn=conn,
                    kind=spec.kind,
                    entity_id=entity_uuid,
                    event_type="deleted",
                    actor_id=actor_id,
                    payload={"mode": "soft"},
                )

    async def hard_delete(self, kind: EntityKind, entity_id: str, actor_id: str | None = None) -> None:
        spec = get_spec(kind)
        entity_uuid = self._parse_id(spec, entity_id)
        async with self._connection(spec.label) as conn:
            async with conn.transaction():
                deleted = await conn.fetchval(
                    f"delete from {spec.table} where id = $1 returning id",
                    entity_uuid,
                )
                if deleted is None:
                    raise RepositoryNotFoundError(f"{spec.label} not found")
                await self._record_event(
                    conn=conn,
                    kind=spec.kind,
                    entity_id=entity_uuid,
                    event_type="deleted",
                    actor_id=actor_id,
                    payload={"mode": "hard"},
                )

    async def create(
        self,
        kind: EntityKind,
        fields: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        spec = get_spec(kind)
        values = self._validate_columns(spec, fields, allowed=spec.columns, allow_status=True)
        if spec.has_status:
            values["status"] = values.get("status") or INITIAL_STATUS[spec.kind]

        columns = list(values)
        placeholders = ", ".join(f"${index}" for index in range(1, len(columns) + 1))
        async with self._connection(spec.label) as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    insert into {spec.table} ({", ".join(columns)})
                    values ({placeholders})
                    returning {self._select_sql(spec)}
                    """,
                    *[values[column] for column in columns],
                )
                if not row:
                    raise RepositoryValidationError(f"failed to create {spec.label}")
                await self._record_event(
                    conn=conn,
                    kind=spec.kind,
                    entity_id=UUID(row["id"]),
                    event_type="created",
                    actor_id=actor_id,
                    payload=self._event_fields(spec, values),
                )
        return dict(row)

    async def update_fields(
        self,
        kind: EntityKind,
        entity_id: str,
        fields: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        spec = get_spec(kind)
        values = self._validate_columns(spec, fields, allowed=spec.updatable_fields)
        entity_uuid = self._parse_id(spec, entity_id)
        if not values:
            return await self.get(kind, entity_id)

        params: list[Any] = [entity_uuid]

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        assignments = ", ".join(f"{column} = {bind(value)}" for column, value in values.items())
        async with self._connection(spec.label) as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    update {spec.table}
                    set {assignments}, updated_at = now()
                    where id = $1 and deleted_at is null
                    returning {self._select_sql(spec)}
                    """,
                    *params,
                )
                if not row:
                    raise RepositoryNotFoundError(f"{spec.label} not found")
                await self._record_event(
                    conn=conn,
                    kind=spec.kind,
                    entity_id=entity_uuid,
                    event_type="updated",
                    actor_id=actor_id,
                    payload=self._event_fields(spec, values),
                )
        return dict(row)

    async def count_by_day(
        self,
        kind: EntityKind,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> dict[date, int]:
        spec = get_spec(kind)
        where_sql, params = self._window_sql(created_from, created_to)
        async with self._connection(spec.label) as conn:
            rows = await conn.fetch(
                f"""
                select (created_at at time zone 'utc')::date as day, count(*) as total
                from {spec.table}
                where {where_sql}
                group by day
                order by day
                """,
                *params,
            )
        return {row["day"]: int(row["total"]) for row in rows}

    async def count_by_reference(
        self,
        kind: EntityKind,
        column: str,
        target_kind: EntityKind,
        label_column: str,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[tuple[str | None, int]]:
        spec = get_spec(kind)
        target = get_spec(target_kind)
        if column not in spec.columns or label_column not in target.columns or label_column in target.hidden_fields:
            raise RepositoryValidationError(f"cannot group {spec.label} by {target.label} {label_column}")
        where_sql, params = self._window_sql(created_from, created_to, alias="c")
        limit_sql = ""
        if limit is not None:
            params.append(limit)
            limit_sql = f"limit ${len(params)}"
        async with self._connection(spec.label) as conn:
            rows = await conn.fetch(
                f"""
                select t.{label_column}::text as label, count(*) as total, c.{column}::text as ref
                from {spec.table} c
                left join {target.table} t on t.id = c.{column} and t.deleted_at is null
                where {where_sql}
                group by c.{column}, t.{label_column}
                order by 2 desc, 1 asc nulls last, 3 asc nulls last
                {limit_sql}
                """,
                *params,
            )
        return [(row["label"], int(row["total"])) for row in rows]

    async def list_events(self, kind: EntityKind, entity_id: str, limit: int, offset: int) -> list[dict[str, Any]]:
        spec = get_spec(kind)
        try:
            entity_uuid = UUID(str(entity_id))
        except ValueError:
            return []
        async with self._connection(spec.label) as conn:
            rows = await conn.fetch(
                """
                select
                  id,
                  entity_type,
                  entity_id::text as entity_id,
                  event_type,
                  actor_id,
                  payload,
                  created_at
                from moderation_events
                where entity_type = $1 and entity_id = $2
                order by created_at desc, id desc
                limit $3
                offset $4
                """,
                spec.kind.value,
                entity_uuid,
                limit,
                offset,
            )
        return [self._event_row_to_dict(row) for row in rows]

    async def _record_event(
        self,
        *,
        conn: asyncpg.Connection,
        kind: EntityKind,
        entity_id: UUID,
        event_type: str,
        actor_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        await conn.execute(
            """
            insert into moderation_events (entity_type, entity_id, event_type, actor_id, payload)
            values ($1, $2, $3, $4, $5::jsonb)
            """,
            kind.value,
            entity_id,
            event_type,
            actor_id,
            json.dumps(payload, default=str),
        )

    @asynccontextmanager
    async def _connection(self, label: str = "record") -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire(timeout=self.command_timeout_seconds) as conn:
                yield conn
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryDuplicateError(f"{label} already exists") from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryValidationError(f"{label} references a missing record") from exc
        except (pg_exc.IntegrityConstraintViolationError, asyncpg.DataError) as exc:
            raise RepositoryValidationError(f"invalid {label} payload") from exc
        except _UNAVAILABLE_ERRORS as exc:
            logger.warning("database call failed: %s", exc)
            raise RepositoryUnavailableError("database unavailable") from exc
        except asyncpg.PostgresError as exc:
            logger.warning("database error sqlstate=%s: %s", getattr(exc, "sqlstate", None), exc)
            raise RepositoryUnavailableError("database error") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JPA_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncio.wait_for(
                asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    command_timeout=self.command_timeout_seconds,
                ),
                timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _select_sql(spec: EntitySpec) -> str:
        columns = ["id::text as id"]
        for column in spec.columns:
            if column in spec.hidden_fields:
                continue
            if column.endswith("_id"):
                columns.append(f"{column}::text as {column}")
            else:
                columns.append(column)
        if spec.has_status:
            columns.extend(["status", "status_reason"])
        columns.extend(["created_at", "updated_at"])
        return ", ".join(columns)

    @staticmethod
    def _parse_id(spec: EntitySpec, entity_id: str) -> UUID:
        try:
            return UUID(str(entity_id))
        except ValueError as exc:
            raise RepositoryNotFoundError(f"{spec.label} not found") from exc

    @staticmethod
    def _validate_columns(
        spec: EntitySpec,
        fields: Mapping[str, Any],
        *,
        allowed: tuple[str, ...],
        allow_status: bool = False,
    ) -> dict[str, Any]:
        permitted = set(allowed)
        if spec.has_status and allow_status:
            permitted.add("status")
        unknown = sorted(set(fields) - permitted)
        if unknown:
            raise RepositoryValidationError(f"unsupported {spec.label} fields: {', '.join(unknown)}")
        return {key: value for key, value in fields.items() if key in permitted}

    @staticmethod
    def _event_fields(spec: EntitySpec, values: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in values.items() if key not in spec.hidden_fields}

    @staticmethod
    def _window_sql(
        created_from: datetime | None,
        created_to: datetime | None,
        alias: str | None = None,
    ) -> tuple[str, list[Any]]:
        prefix = f"{alias}." if alias else ""
        conditions = [f"{prefix}deleted_at is null"]
        params: list[Any] = []
        if created_from is not None:
            params.append(created_from)
            conditions.append(f"{prefix}created_at >= ${len(params)}")
        if created_to is not None:
            params.append(created_to)
            conditions.append(f"{prefix}created_at <= ${len(params)}")
        return " and ".join(conditions), params

    @staticmethod
    def _escape_like(value: str) -> str:
        return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

    @staticmethod
    def _event_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        payload = row["payload"]
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                payload = {}
        return {
            "id": row["id"],
            "entity_type": row["entity_type"],
            "entity_id": row["entity_id"],
            "event_type": row["event_type"],
            "actor_id": row["actor_id"],
            "payload": payload if isinstance(payload, dict) else {},
            "created_at": row["created_at"],
        }
