"""Admin listing: filter validation, pagination and page envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Protocol

from portal_admin.services.entities import get_spec
from portal_admin.services.statuses import USER_ROLES, EntityKind, InvalidStatusError, validate_status

ENTITY_FILTER_NAMES = ("role", "company", "category", "job_id", "user_id", "blog_id")

CHART_PERIODS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_REPORT_DAYS = 30
MAX_REPORT_DAYS = 366
UNCATEGORIZED_LABEL = "Uncategorized"
UNKNOWN_JOB_LABEL = "Unknown job"


class InvalidFilterError(ValueError):
    """Raised when list parameters cannot be turned into a QueryFilter."""


@dataclass(frozen=True, slots=True)
class QueryFilter:
    page: int = 1
    limit: int = 20
    status: str | None = None
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    role: str | None = None
    company: str | None = None
    category: str | None = None
    job_id: str | None = None
    user_id: str | None = None
    blog_id: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def entity_filters(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in ENTITY_FILTER_NAMES if getattr(self, name) is not None}


@dataclass(slots=True)
class PageEnvelope:
    data: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int


class PageSource(Protocol):
    async def find_page(self, kind: EntityKind, query: QueryFilter) -> Any: ...

    async def get(self, kind: EntityKind, entity_id: str) -> dict[str, Any]: ...

    async def count_by_day(
        self,
        kind: EntityKind,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> dict[date, int]: ...

    async def count_by_reference(
        self,
        kind: EntityKind,
        column: str,
        target_kind: EntityKind,
        label_column: str,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[tuple[str | None, int]]: ...


def count_pages(total: int, limit: int) -> int:
    if total <= 0:
        return 0
    return -(-total // limit)


def build_query_filter(
    kind: EntityKind | str,
    *,
    page: int = 1,
    limit: int | None = None,
    status: str | None = None,
    search: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    default_limit: int = 20,
    max_limit: int = 100,
    **entity_filters: str | None,
) -> QueryFilter:
    spec = get_spec(kind)

    if page < 1:
        raise InvalidFilterError("page must be >= 1")
    resolved_limit = default_limit if limit is None else limit
    resolved_limit = min(max(resolved_limit, 1), max(max_limit, 1))

    normalized_status = _coerce_text(status)
    if normalized_status is not None:
        if not spec.has_status:
            raise InvalidFilterError(f"{spec.label} has no status filter")
        try:
            validate_status(spec.kind, normalized_status)
        except InvalidStatusError as exc:
            raise InvalidFilterError(str(exc)) from exc

    normalized_filters: dict[str, str] = {}
    for name, value in entity_filters.items():
        normalized_value = _coerce_text(value)
        if normalized_value is None:
            continue
        if name not in ENTITY_FILTER_NAMES or name not in spec.filter_fields:
            raise InvalidFilterError(f"filter '{name}' is not supported for {spec.label}")
        normalized_filters[name] = normalized_value

    role = normalized_filters.get("role")
    if role is not None and role not in USER_ROLES:
        raise InvalidFilterError(f"invalid role: {role!r}; expected one of: {', '.join(USER_ROLES)}")

    normalized_from = as_utc(created_from)
    normalized_to = as_utc(created_to)
    if normalized_from and normalized_to and normalized_from > normalized_to:
        raise InvalidFilterError("created_from must not be after created_to")

    return QueryFilter(
        page=page,
        limit=resolved_limit,
        status=normalized_status,
        search=_coerce_text(search),
        created_from=normalized_from,
        created_to=normalized_to,
        **normalized_filters,
    )


def resolve_report_window(
    start_date: date | None = None,
    end_date: date | None = None,
    *,
    now: datetime | None = None,
    max_days: int = MAX_REPORT_DAYS,
) -> tuple[date, date]:
    """Default to the last 30 UTC days ending today; both ends are inclusive."""
    end = end_date or _start_of_day(now).date()
    start = start_date or end - timedelta(days=DEFAULT_REPORT_DAYS - 1)
    if start > end:
        raise InvalidFilterError("startDate must not be after endDate")
    if (end - start).days + 1 > max_days:
        raise InvalidFilterError(f"report window must not exceed {max_days} days")
    return start, end


class AdminQueryService:
    def __init__(self, repository: PageSource, *, default_limit: int = 20, max_limit: int = 100) -> None:
        self.repository = repository
        self.default_limit = default_limit
        self.max_limit = max_limit

    def build_filter(self, kind: EntityKind | str, **params: Any) -> QueryFilter:
        return build_query_filter(
            kind,
            default_limit=self.default_limit,
            max_limit=self.max_limit,
            **params,
        )

    async def list_page(self, kind: EntityKind | str, query: QueryFilter) -> PageEnvelope:
        resolved_kind = EntityKind(kind)
        page = await self.repository.find_page(resolved_kind, query)
        return PageEnvelope(
            data=list(page.rows),
            total=page.total,
            page=query.page,
            limit=query.limit,
            total_pages=count_pages(page.total, query.limit),
        )

    async def get(self, kind: EntityKind | str, entity_id: str) -> dict[str, Any]:
        return await self.repository.get(EntityKind(kind), entity_id)

    async def count(self, kind: EntityKind | str, **params: Any) -> int:
        query = build_query_filter(kind, limit=1, max_limit=1, **params)
        page = await self.repository.find_page(EntityKind(kind), query)
        return page.total

    async def overview(self, *, now: datetime | None = None) -> dict[str, dict[str, int]]:
        start_of_day = _start_of_day(now)
        sections = (
            ("users", EntityKind.USER, "active", "active"),
            ("jobs", EntityKind.JOB, "active", "published"),
            ("companies", EntityKind.COMPANY, "active", "active"),
            ("applications", EntityKind.APPLICATION, "pending", "pending"),
        )
        overview: dict[str, dict[str, int]] = {}
        for section, kind, status_key, status in sections:
            overview[section] = {
                "total": await self.count(kind),
                status_key: await self.count(kind, status=status),
                "new_today": await self.count(kind, created_from=start_of_day),
            }
        return overview

    async def content_stats(self, *, now: datetime | None = None) -> dict[str, int]:
        start_of_month = _start_of_day(now).replace(day=1)
        return {
            "total_skills": await self.count(EntityKind.SKILL),
            "total_categories": await self.count(EntityKind.JOB_CATEGORY),
            "skills_this_month": await self.count(EntityKind.SKILL, created_from=start_of_month),
            "categories_this_month": await self.count(EntityKind.JOB_CATEGORY, created_from=start_of_month),
        }

    async def daily_counts(self, kind: EntityKind | str, start: date, end: date) -> list[dict[str, Any]]:
        created_from, created_to = _day_bounds(start, end)
        buckets = await self.repository.count_by_day(EntityKind(kind), created_from, created_to)
        return [
            {"date": day.isoformat(), "count": buckets.get(day, 0)}
            for day in (start + timedelta(days=offset) for offset in range((end - start).days + 1))
        ]

    async def dashboard_charts(self, period: str = "30d", *, now: datetime | None = None) -> dict[str, Any]:
        days = CHART_PERIODS.get(period)
        if days is None:
            raise InvalidFilterError(f"invalid period: {period!r}; expected one of: {', '.join(CHART_PERIODS)}")
        end = _start_of_day(now).date()
        start = end - timedelta(days=days - 1)
        return {
            "user_registrations": await self.daily_counts(EntityKind.USER, start, end),
            "job_postings": await self.daily_counts(EntityKind.JOB, start, end),
            "applications": await self.daily_counts(EntityKind.APPLICATION, start, end),
            "period": period,
        }

    async def user_activity_report(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        start, end = resolve_report_window(start_date, end_date, now=now)
        series = await self.daily_counts(EntityKind.USER, start, end)
        return {
            "data": [{"date": point["date"], "registrations": point["count"]} for point in series],
            "start_date": start,
            "end_date": end,
        }

    async def job_market_report(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        *,
        now: datetime | None = None,
        top_jobs: int = 10,
    ) -> dict[str, Any]:
        start, end = resolve_report_window(start_date, end_date, now=now)
        created_from, created_to = _day_bounds(start, end)
        by_category = await self.repository.count_by_reference(
            EntityKind.JOB,
            "category_id",
            EntityKind.JOB_CATEGORY,
            "name",
            created_from,
            created_to,
        )
        per_job = await self.repository.count_by_reference(
            EntityKind.APPLICATION,
            "job_id",
            EntityKind.JOB,
            "title",
            created_from,
            created_to,
            limit=top_jobs,
        )
        return {
            "jobs_by_category": [
                {"category_name": label or UNCATEGORIZED_LABEL, "count": total} for label, total in by_category
            ],
            "applications_per_job": [
                {"job_title": label or UNKNOWN_JOB_LABEL, "application_count": total} for label, total in per_job
            ],
            "start_date": start,
            "end_date": end,
        }


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


def _start_of_day(now: datetime | None) -> datetime:
    current = as_utc(now) or datetime.now(timezone.utc)
    return current - timedelta(
        hours=current.hour,
        minutes=current.minute,
        seconds=current.second,
        microseconds=current.microsecond,
    )


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)
