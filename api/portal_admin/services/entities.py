from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from portal_admin.services.statuses import EntityKind, has_status


@dataclass(frozen=True, slots=True)
class EntitySpec:
    kind: EntityKind
    table: str
    label: str
    columns: tuple[str, ...]
    search_fields: tuple[str, ...] = ()
    filter_fields: Mapping[str, str] = field(default_factory=dict)
    unique_fields: tuple[str, ...] = ()
    updatable_fields: tuple[str, ...] = ()
    hidden_fields: tuple[str, ...] = ()
    defaults: Mapping[str, object] = field(default_factory=dict)

    @property
    def has_status(self) -> bool:
        return has_status(self.kind)


ENTITY_SPECS: dict[EntityKind, EntitySpec] = {
    EntityKind.USER: EntitySpec(
        kind=EntityKind.USER,
        table="users",
        label="user",
        columns=("email", "first_name", "last_name", "role", "password_hash"),
        search_fields=("email", "first_name", "last_name"),
        filter_fields={"role": "role"},
        unique_fields=("email",),
        updatable_fields=("first_name", "last_name", "role"),
        hidden_fields=("password_hash",),
        defaults={"role": "job-seeker"},
    ),
    EntityKind.JOB: EntitySpec(
        kind=EntityKind.JOB,
        table="jobs",
        label="job",
        columns=("title", "company_id", "category_id", "description", "location"),
        search_fields=("title",),
        filter_fields={"company": "company_id", "category": "category_id"},
        updatable_fields=("title", "category_id", "description", "location"),
    ),
    EntityKind.COMPANY: EntitySpec(
        kind=EntityKind.COMPANY,
        table="companies",
        label="company",
        columns=("name", "website", "is_verified", "admin_notes"),
        search_fields=("name",),
        unique_fields=("name",),
        updatable_fields=("name", "website", "is_verified", "admin_notes"),
        defaults={"is_verified": False},
    ),
    EntityKind.APPLICATION: EntitySpec(
        kind=EntityKind.APPLICATION,
        table="applications",
        label="application",
        columns=("job_id", "user_id", "cover_letter"),
        search_fields=("cover_letter",),
        filter_fields={"job_id": "job_id", "user_id": "user_id"},
    ),
    EntityKind.BLOG_COMMENT: EntitySpec(
        kind=EntityKind.BLOG_COMMENT,
        table="blog_comments",
        label="blog comment",
        columns=("blog_id", "author_id", "content"),
        search_fields=("content",),
        filter_fields={"blog_id": "blog_id"},
    ),
    EntityKind.SKILL: EntitySpec(
        kind=EntityKind.SKILL,
        table="skills",
        label="skill",
        columns=("name", "description", "category"),
        search_fields=("name", "category"),
        unique_fields=("name",),
        updatable_fields=("name", "description", "category"),
    ),
    EntityKind.JOB_CATEGORY: EntitySpec(
        kind=EntityKind.JOB_CATEGORY,
        table="job_categories",
        label="job category",
        columns=("name", "description"),
        search_fields=("name",),
        unique_fields=("name",),
        updatable_fields=("name", "description"),
    ),
}


def get_spec(kind: EntityKind | str) -> EntitySpec:
    return ENTITY_SPECS[EntityKind(kind)]


def public_view(kind: EntityKind | str, row: Mapping[str, object]) -> dict[str, object]:
    hidden = get_spec(kind).hidden_fields
    return {key: value for key, value in row.items() if key not in hidden}
