from __future__ import annotations

import logging
from typing import Any, Literal

from portal_admin.core.passwords import hash_password
from portal_admin.core.telemetry import admin_span
from portal_admin.services.entities import get_spec
from portal_admin.services.repository import RepositoryValidationError
from portal_admin.services.statuses import USER_ROLES, EntityKind, validate_status

logger = logging.getLogger(__name__)

DeleteMode = Literal["soft", "hard"]

MAX_EMAIL_LENGTH = 320
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 256
MAX_NAME_LENGTH = 200

# Users, applications and comments keep their rows for the audit trail.
DELETE_POLICY: dict[EntityKind, DeleteMode] = {
    EntityKind.USER: "soft",
    EntityKind.APPLICATION: "soft",
    EntityKind.BLOG_COMMENT: "soft",
    EntityKind.JOB: "hard",
    EntityKind.COMPANY: "hard",
    EntityKind.SKILL: "hard",
    EntityKind.JOB_CATEGORY: "hard",
}


class ModerationService:
    """Single-record admin writes: status changes, deletes, creates and edits."""

    def __init__(self, repository: Any) -> None:
        self.repository = repository

    async def update_status(
        self,
        kind: EntityKind | str,
        entity_id: str,
        status: str,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        resolved_kind = EntityKind(kind)
        validated = validate_status(resolved_kind, status)
        with admin_span("update_status", resolved_kind.value, target_status=validated):
            row = await self.repository.update_status(
                resolved_kind,
                entity_id,
                validated,
                reason=reason,
                actor_id=actor_id,
            )
        logger.info(
            "status update kind=%s id=%s status=%s actor=%s",
            resolved_kind.value,
            entity_id,
            validated,
            actor_id,
        )
        return row

    async def delete(self, kind: EntityKind | str, entity_id: str, *, actor_id: str | None = None) -> DeleteMode:
        resolved_kind = EntityKind(kind)
        mode = DELETE_POLICY[resolved_kind]
        with admin_span("delete", resolved_kind.value, mode=mode):
            if mode == "soft":
                await self.repository.soft_delete(resolved_kind, entity_id, actor_id=actor_id)
            else:
                await self.repository.hard_delete(resolved_kind, entity_id, actor_id=actor_id)
        logger.info("delete kind=%s id=%s mode=%s actor=%s", resolved_kind.value, entity_id, mode, actor_id)
        return mode

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        role: str,
        first_name: str | None = None,
        last_name: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        if role not in USER_ROLES:
            raise RepositoryValidationError(f"invalid role: {role!r}")
        normalized_email = email.strip().lower()
        if not normalized_email:
            raise RepositoryValidationError("email must be a non-empty string")
        if "@" not in normalized_email or len(normalized_email) > MAX_EMAIL_LENGTH:
            raise RepositoryValidationError(f"invalid email: {email!r}")
        if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
            raise RepositoryValidationError(
                f"password must be {MIN_PASSWORD_LENGTH} to {MAX_PASSWORD_LENGTH} characters"
            )
        return await self.repository.create(
            EntityKind.USER,
            {
                "email": normalized_email,
                "password_hash": hash_password(password),
                "first_name": _coerce_text(first_name),
                "last_name": _coerce_text(last_name),
                "role": role,
            },
            actor_id=actor_id,
        )

    async def create_skill(
        self,
        *,
        name: str,
        description: str | None = None,
        category: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.repository.create(
            EntityKind.SKILL,
            {
                "name": _require_name(name),
                "description": _coerce_text(description),
                "category": _coerce_text(category),
            },
            actor_id=actor_id,
        )

    async def create_job_category(
        self,
        *,
        name: str,
        description: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.repository.create(
            EntityKind.JOB_CATEGORY,
            {"name": _require_name(name), "description": _coerce_text(description)},
            actor_id=actor_id,
        )

    async def update_fields(
        self,
        kind: EntityKind | str,
        entity_id: str,
        fields: dict[str, Any],
        *,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        resolved_kind = EntityKind(kind)
        changes = {key: value for key, value in fields.items() if value is not None}
        if "name" in changes:
            changes["name"] = _require_name(changes["name"])
        unknown = sorted(set(changes) - set(get_spec(resolved_kind).updatable_fields))
        if unknown:
            raise RepositoryValidationError(f"unsupported fields: {', '.join(unknown)}")
        return await self.repository.update_fields(resolved_kind, entity_id, changes, actor_id=actor_id)

    async def update_skill(
        self,
        entity_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        category: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.update_fields(
            EntityKind.SKILL,
            entity_id,
            {"name": name, "description": description, "category": category},
            actor_id=actor_id,
        )

    async def update_job_category(
        self,
        entity_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.update_fields(
            EntityKind.JOB_CATEGORY,
            entity_id,
            {"name": name, "description": description},
            actor_id=actor_id,
        )

    async def update_user_role(self, entity_id: str, role: str, *, actor_id: str | None = None) -> dict[str, Any]:
        if role not in USER_ROLES:
            raise RepositoryValidationError(f"invalid role: {role!r}")
        return await self.repository.update_fields(EntityKind.USER, entity_id, {"role": role}, actor_id=actor_id)

    async def verify_company(
        self,
        entity_id: str,
        *,
        is_verified: bool,
        admin_notes: str | None = None,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.repository.update_fields(
            EntityKind.COMPANY,
            entity_id,
            {"is_verified": is_verified, "admin_notes": _coerce_text(admin_notes)},
            actor_id=actor_id,
        )

    async def list_events(
        self,
        kind: EntityKind | str,
        entity_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        return await self.repository.list_events(EntityKind(kind), entity_id, limit=limit, offset=offset)


def _require_name(value: Any) -> str:
    name = _coerce_text(value)
    if not name:
        raise RepositoryValidationError("name must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise RepositoryValidationError(f"name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)
