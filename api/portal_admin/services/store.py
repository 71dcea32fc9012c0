from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime, timezone
from itertools import count
from typing import Any
from uuid import uuid4

from portal_admin.services.entities import EntitySpec, get_spec, public_view
from portal_admin.services.queries import QueryFilter, as_utc
from portal_admin.services.repository import (
    PageSlice,
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import INITIAL_STATUS, EntityKind


class InMemoryRepository:
    """Process-local entity store for local runs and tests.

    Mutations never await between reading and writing a record, so each one
    is atomic with respect to other tasks on the same event loop.
    """

    def __init__(self) -> None:
        self.records: dict[EntityKind, dict[str, dict[str, Any]]] = {kind: {} for kind in EntityKind}
        self.events: list[dict[str, Any]] = []
        self._event_ids = count(1)

    async def close(self) -> None:
        return None

    def load(self, kind: EntityKind | str, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Insert fixture rows as-is, filling ids, timestamps and initial status."""
        spec = get_spec(kind)
        loaded: list[dict[str, Any]] = []
        for row in rows:
            record = self._new_record(spec, row)
            self.records[spec.kind][record["id"]] = record
            loaded.append(public_view(spec.kind, record))
        return loaded

    async def find_page(self, kind: EntityKind, query: QueryFilter) -> PageSlice:
        spec = get_spec(kind)
        matched = [record for record in self.records[spec.kind].values() if self._matches(spec, record, query)]
        matched.sort(key=lambda record: record["id"])
        matched.sort(key=lambda record: record["created_at"], reverse=True)
        window = matched[query.offset : query.offset + query.limit]
        return PageSlice(rows=[public_view(spec.kind, record) for record in window], total=len(matched))

    async def get(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        spec = get_spec(kind)
        return public_view(spec.kind, self._live_record(spec, entity_id))

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
        record = self._live_record(spec, entity_id)
        from_status = record["status"]
        if from_status == status:
            return public_view(spec.kind, record)

        record["status"] = status
        record["status_reason"] = reason
        record["updated_at"] = _utcnow()
        self._record_event(
            spec,
            record["id"],
            "status_changed",
            actor_id,
            {"from_status": from_status, "to_status": status, "reason": reason},
        )
        return public_view(spec.kind, record)

    async def soft_delete(self, kind: EntityKind, entity_id: str, actor_id: str | None = None) -> None:
        spec = get_spec(kind)
        record = self._live_record(spec, entity_id)
        now = _utcnow()
        record["deleted_at"] = now
        record["updated_at"] = now
        self._record_event(spec, record["id"], "deleted", actor_id, {"mode": "soft"})

    async def hard_delete(self, kind: EntityKind, entity_id: str, actor_id: str | None = None) -> None:
        spec = get_spec(kind)
        if self.records[spec.kind].pop(entity_id, None) is None:
            raise RepositoryNotFoundError(f"{spec.label} not found")
        self._record_event(spec, entity_id, "deleted", actor_id, {"mode": "hard"})

    async def create(
        self,
        kind: EntityKind,
        fields: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        spec = get_spec(kind)
        permitted = set(spec.columns) | ({"status"} if spec.has_status else set())
        unknown = sorted(set(fields) - permitted)
        if unknown:
            raise RepositoryValidationError(f"unsupported {spec.label} fields: {', '.join(unknown)}")
        self._ensure_unique(spec, fields)

        record = self._new_record(spec, fields)
        self.records[spec.kind][record["id"]] = record
        self._record_event(
            spec,
            record["id"],
            "created",
            actor_id,
            {key: value for key, value in fields.items() if key not in spec.hidden_fields},
        )
        return public_view(spec.kind, record)

    async def update_fields(
        self,
        kind: EntityKind,
        entity_id: str,
        fields: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        spec = get_spec(kind)
        unknown = sorted(set(fields) - set(spec.updatable_fields))
        if unknown:
            raise RepositoryValidationError(f"unsupported {spec.label} fields: {', '.join(unknown)}")
        record = self._live_record(spec, entity_id)
        if not fields:
            return public_view(spec.kind, record)
        self._ensure_unique(spec, fields, exclude_id=record["id"])

        record.update(fields)
        record["updated_at"] = _utcnow()
        self._record_event(
            spec,
            record["id"],
            "updated",
            actor_id,
            {key: value for key, value in fields.items() if key not in spec.hidden_fields},
        )
        return public_view(spec.kind, record)

    async def count_by_day(
        self,
        kind: EntityKind,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> dict[date, int]:
        spec = get_spec(kind)
        buckets: Counter[date] = Counter()
        for record in self._live_in_window(spec, created_from, created_to):
            buckets[record["created_at"].date()] += 1
        return dict(sorted(buckets.items()))

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
        buckets: Counter[str | None] = Counter()
        for record in self._live_in_window(spec, created_from, created_to):
            ref = record.get(column)
            buckets[None if ref is None else str(ref)] += 1

        grouped: list[tuple[str | None, int, str | None]] = []
        for ref, total in buckets.items():
            referenced = self.records[target.kind].get(ref) if ref is not None else None
            label = None
            if referenced is not None and referenced.get("deleted_at") is None:
                label = referenced.get(label_column)
            grouped.append((None if label is None else str(label), total, ref))
        grouped.sort(key=lambda item: (-item[1], item[0] is None, item[0] or "", item[2] is None, item[2] or ""))
        if limit is not None:
            grouped = grouped[:limit]
        return [(label, total) for label, total, _ in grouped]

    async def list_events(self, kind: EntityKind, entity_id: str, limit: int, offset: int) -> list[dict[str, Any]]:
        kind_value = EntityKind(kind).value
        rows = [
            event
            for event in reversed(self.events)
            if event["entity_type"] == kind_value and event["entity_id"] == entity_id
        ]
        return [dict(row) for row in rows[offset : offset + limit]]

    def _live_record(self, spec: EntitySpec, entity_id: str) -> dict[str, Any]:
        record = self.records[spec.kind].get(entity_id)
        if record is None or record.get("deleted_at") is not None:
            raise RepositoryNotFoundError(f"{spec.label} not found")
        return record

    def _live_in_window(
        self,
        spec: EntitySpec,
        created_from: datetime | None,
        created_to: datetime | None,
    ) -> Iterator[dict[str, Any]]:
        for record in self.records[spec.kind].values():
            if record.get("deleted_at") is None and _within(record["created_at"], created_from, created_to):
                yield record

    def _new_record(self, spec: EntitySpec, fields: Mapping[str, Any]) -> dict[str, Any]:
        now = _utcnow()
        record: dict[str, Any] = {column: None for column in spec.columns}
        record.update(spec.defaults)
        record.update(fields)
        record["id"] = str(fields.get("id") or uuid4())
        if spec.has_status:
            record["status"] = fields.get("status") or INITIAL_STATUS[spec.kind]
            record.setdefault("status_reason", None)
        record["created_at"] = as_utc(fields.get("created_at")) or now
        record["updated_at"] = as_utc(fields.get("updated_at")) or record["created_at"]
        record["deleted_at"] = as_utc(fields.get("deleted_at"))
        return record

    def _ensure_unique(
        self,
        spec: EntitySpec,
        fields: Mapping[str, Any],
        *,
        exclude_id: str | None = None,
    ) -> None:
        for column in spec.unique_fields:
            value = fields.get(column)
            if value is None:
                continue
            needle = str(value).casefold()
            for record in self.records[spec.kind].values():
                if record["id"] == exclude_id or record.get("deleted_at") is not None:
                    continue
                existing = record.get(column)
                if existing is not None and str(existing).casefold() == needle:
                    raise RepositoryDuplicateError(f"{spec.label} already exists")

    @staticmethod
    def _matches(spec: EntitySpec, record: Mapping[str, Any], query: QueryFilter) -> bool:
        if record.get("deleted_at") is not None:
            return False
        if query.status and record.get("status") != query.status:
            return False
        if query.search and spec.search_fields:
            needle = query.search.casefold()
            haystacks = (str(record.get(column) or "").casefold() for column in spec.search_fields)
            if not any(needle in haystack for haystack in haystacks):
                return False
        for name, value in query.entity_filters().items():
            column = spec.filter_fields.get(name)
            if column is None:
                raise RepositoryValidationError(f"filter '{name}' is not supported for {spec.label}")
            if str(record.get(column)) != value:
                return False
        return _within(record["created_at"], query.created_from, query.created_to)

    def _record_event(
        self,
        spec: EntitySpec,
        entity_id: str,
        event_type: str,
        actor_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        self.events.append(
            {
                "id": next(self._event_ids),
                "entity_type": spec.kind.value,
                "entity_id": entity_id,
                "event_type": event_type,
                "actor_id": actor_id,
                "payload": payload,
                "created_at": _utcnow(),
            }
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _within(created_at: datetime, created_from: datetime | None, created_to: datetime | None) -> bool:
    if created_from is not None and created_at < created_from:
        return False
    if created_to is not None and created_at > created_to:
        return False
    return True
