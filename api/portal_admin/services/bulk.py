"""Apply one status to many records, reporting per-item failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from portal_admin.core.telemetry import admin_span
from portal_admin.services.repository import (
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)
from portal_admin.services.statuses import EntityKind, InvalidStatusError, validate_status

logger = logging.getLogger(__name__)


class BulkRequestError(ValueError):
    """Raised when the ID list is empty or exceeds the batch cap."""


class StatusWriter(Protocol):
    async def update_status(
        self,
        kind: EntityKind,
        entity_id: str,
        status: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]: ...


@dataclass(slots=True)
class BulkActionResult:
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class BulkActionCoordinator:
    def __init__(self, repository: StatusWriter, *, max_items: int = 500, concurrency: int = 10) -> None:
        self.repository = repository
        self.max_items = max(1, max_items)
        self.concurrency = max(1, concurrency)

    async def apply(
        self,
        kind: EntityKind | str,
        ids: Sequence[str],
        status: str,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> BulkActionResult:
        resolved_kind = EntityKind(kind)
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            raise BulkRequestError("at least one id is required")
        if len(unique_ids) > self.max_items:
            raise BulkRequestError(f"at most {self.max_items} ids may be processed per request")

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(entity_id: str) -> tuple[str, str | None]:
            async with semaphore:
                return entity_id, await self._apply_one(resolved_kind, entity_id, status, reason, actor_id)

        with admin_span(
            "bulk_status",
            resolved_kind.value,
            target_status=status,
            requested=len(unique_ids),
        ) as span:
            outcomes = await asyncio.gather(
                *(run_one(entity_id) for entity_id in unique_ids),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            result = BulkActionResult()
            for entity_id, failure in outcomes:
                if failure is None:
                    result.succeeded.append(entity_id)
                else:
                    result.failed[entity_id] = failure
            span.set_attribute("portal.succeeded", len(result.succeeded))
            span.set_attribute("portal.failed", len(result.failed))

        if result.failed:
            logger.warning(
                "bulk status kind=%s status=%s succeeded=%s failed=%s",
                resolved_kind.value,
                status,
                len(result.succeeded),
                len(result.failed),
            )
        else:
            logger.info(
                "bulk status kind=%s status=%s succeeded=%s",
                resolved_kind.value,
                status,
                len(result.succeeded),
            )
        return result

    async def _apply_one(
        self,
        kind: EntityKind,
        entity_id: str,
        status: str,
        reason: str | None,
        actor_id: str | None,
    ) -> str | None:
        try:
            validated = validate_status(kind, status)
            await self.repository.update_status(kind, entity_id, validated, reason=reason, actor_id=actor_id)
        except InvalidStatusError as exc:
            return str(exc)
        except RepositoryNotFoundError:
            return "not found"
        except RepositoryUnavailableError:
            return "store unavailable"
        except RepositoryError as exc:
            return str(exc) or exc.__class__.__name__
        return None
