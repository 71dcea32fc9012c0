"""Entity kinds and their closed status sets."""

from __future__ import annotations

from enum import Enum


class EntityKind(str, Enum):
    USER = "user"
    JOB = "job"
    COMPANY = "company"
    APPLICATION = "application"
    BLOG_COMMENT = "blog_comment"
    SKILL = "skill"
    JOB_CATEGORY = "job_category"


class InvalidStatusError(ValueError):
    """Raised when a status is not a member of the entity kind's enum."""


STATUS_VALUES: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.USER: ("active", "inactive", "banned"),
    EntityKind.JOB: ("draft", "published", "closed", "expired"),
    EntityKind.COMPANY: ("active", "inactive", "suspended", "pending_verification"),
    EntityKind.APPLICATION: (
        "pending",
        "reviewing",
        "shortlisted",
        "interviewed",
        "offered",
        "hired",
        "rejected",
        "withdrawn",
    ),
    EntityKind.BLOG_COMMENT: ("pending", "approved", "rejected"),
}

INITIAL_STATUS: dict[EntityKind, str] = {
    EntityKind.USER: "active",
    EntityKind.JOB: "draft",
    EntityKind.COMPANY: "pending_verification",
    EntityKind.APPLICATION: "pending",
    EntityKind.BLOG_COMMENT: "pending",
}

USER_ROLES = ("job-seeker", "employer", "hr", "admin")


def has_status(kind: EntityKind) -> bool:
    return kind in STATUS_VALUES


def validate_status(kind: EntityKind | str, status: str) -> str:
    """Return ``status`` unchanged when it belongs to ``kind``'s enum.

    Only set membership is checked. Any recognized status may follow any
    other; there is no transition graph.
    """
    try:
        resolved_kind = EntityKind(kind)
    except ValueError as exc:
        raise InvalidStatusError(f"unknown entity kind: {kind}") from exc

    allowed = STATUS_VALUES.get(resolved_kind)
    if allowed is None:
        raise InvalidStatusError(f"{resolved_kind.value} has no status field")
    if not isinstance(status, str) or status not in allowed:
        raise InvalidStatusError(
            f"invalid {resolved_kind.value} status: {status!r}; expected one of: {', '.join(allowed)}"
        )
    return status
