import asyncio
from datetime import date, datetime, timezone

import pytest

from portal_admin.services.queries import QueryFilter
from portal_admin.services.repository import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import EntityKind
from portal_admin.services.store import InMemoryRepository


def test_hard_deleted_company_disappears_from_listing() -> None:
    repository = InMemoryRepository()
    kept, removed = repository.load(EntityKind.COMPANY, [{"name": "Acme"}, {"name": "Globex"}])

    asyncio.run(repository.hard_delete(EntityKind.COMPANY, removed["id"], actor_id="admin-1"))
    page = asyncio.run(repository.find_page(EntityKind.COMPANY, QueryFilter()))

    assert [row["id"] for row in page.rows] == [kept["id"]]
    assert page.total == 1
    assert removed["id"] not in repository.records[EntityKind.COMPANY]


def test_soft_deleted_user_is_kept_but_hidden() -> None:
    repository = InMemoryRepository()
    (user,) = repository.load(EntityKind.USER, [{"email": "ada@example.com", "role": "job-seeker"}])

    asyncio.run(repository.soft_delete(EntityKind.USER, user["id"]))

    assert repository.records[EntityKind.USER][user["id"]]["deleted_at"] is not None
    assert asyncio.run(repository.find_page(EntityKind.USER, QueryFilter())).total == 0
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(repository.get(EntityKind.USER, user["id"]))
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(repository.soft_delete(EntityKind.USER, user["id"]))


def test_hard_delete_of_missing_id_raises_not_found() -> None:
    with pytest.raises(RepositoryNotFoundError, match="company not found"):
        asyncio.run(InMemoryRepository().hard_delete(EntityKind.COMPANY, "nope"))


def test_update_status_is_idempotent() -> None:
    repository = InMemoryRepository()
    (job,) = repository.load(EntityKind.JOB, [{"title": "Backend"}])

    first = asyncio.run(repository.update_status(EntityKind.JOB, job["id"], "published", reason="ok"))
    second = asyncio.run(repository.update_status(EntityKind.JOB, job["id"], "published"))

    assert first["status"] == second["status"] == "published"
    assert second["status_reason"] == "ok"
    assert [event["event_type"] for event in repository.events] == ["status_changed"]
    assert repository.events[0]["payload"] == {"from_status": "draft", "to_status": "published", "reason": "ok"}


def test_update_status_rejects_kind_without_status() -> None:
    repository = InMemoryRepository()
    (skill,) = repository.load(EntityKind.SKILL, [{"name": "Python"}])

    with pytest.raises(RepositoryValidationError):
        asyncio.run(repository.update_status(EntityKind.SKILL, skill["id"], "active"))


def test_create_applies_initial_status_and_hides_password_hash() -> None:
    repository = InMemoryRepository()

    user = asyncio.run(
        repository.create(
            EntityKind.USER,
            {"email": "new@example.com", "role": "employer", "password_hash": "hash"},
            actor_id="admin-1",
        )
    )

    assert user["status"] == "active"
    assert "password_hash" not in user
    assert "password_hash" not in repository.events[-1]["payload"]
    assert repository.records[EntityKind.USER][user["id"]]["password_hash"] == "hash"


def test_create_rejects_case_insensitive_duplicate() -> None:
    repository = InMemoryRepository()
    repository.load(EntityKind.SKILL, [{"name": "Python"}])

    with pytest.raises(RepositoryDuplicateError, match="skill already exists"):
        asyncio.run(repository.create(EntityKind.SKILL, {"name": "python"}))


def test_create_rejects_unknown_fields() -> None:
    with pytest.raises(RepositoryValidationError, match="unsupported job category fields: color"):
        asyncio.run(InMemoryRepository().create(EntityKind.JOB_CATEGORY, {"name": "Ops", "color": "red"}))


def test_update_fields_checks_uniqueness_against_other_records() -> None:
    repository = InMemoryRepository()
    python, sql = repository.load(EntityKind.SKILL, [{"name": "Python"}, {"name": "SQL"}])

    renamed = asyncio.run(repository.update_fields(EntityKind.SKILL, python["id"], {"name": "PYTHON"}))
    assert renamed["name"] == "PYTHON"

    with pytest.raises(RepositoryDuplicateError):
        asyncio.run(repository.update_fields(EntityKind.SKILL, sql["id"], {"name": "python"}))


def test_list_events_is_newest_first_and_scoped_to_entity() -> None:
    repository = InMemoryRepository()
    first, other = repository.load(
        EntityKind.BLOG_COMMENT,
        [{"content": "hello"}, {"content": "spam"}],
    )
    asyncio.run(repository.update_status(EntityKind.BLOG_COMMENT, first["id"], "approved"))
    asyncio.run(repository.update_status(EntityKind.BLOG_COMMENT, other["id"], "rejected"))
    asyncio.run(repository.update_status(EntityKind.BLOG_COMMENT, first["id"], "rejected"))

    events = asyncio.run(repository.list_events(EntityKind.BLOG_COMMENT, first["id"], limit=10, offset=0))

    assert [event["payload"]["to_status"] for event in events] == ["rejected", "approved"]
    (older,) = asyncio.run(repository.list_events(EntityKind.BLOG_COMMENT, first["id"], limit=1, offset=1))
    assert older["payload"]["to_status"] == "approved"


def test_naive_fixture_timestamps_are_treated_as_utc() -> None:
    repository = InMemoryRepository()
    repository.load(
        EntityKind.JOB,
        [
            {"id": "naive", "title": "Naive", "created_at": datetime(2026, 3, 1, 9, 0)},
            {"id": "aware", "title": "Aware", "created_at": datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)},
        ],
    )

    query = QueryFilter(created_from=datetime(2026, 3, 1, tzinfo=timezone.utc))
    page = asyncio.run(repository.find_page(EntityKind.JOB, query))

    assert [row["id"] for row in page.rows] == ["aware", "naive"]
    assert page.rows[1]["created_at"].tzinfo is timezone.utc


def test_count_by_day_buckets_live_rows_in_utc_days() -> None:
    repository = InMemoryRepository()
    repository.load(
        EntityKind.USER,
        [
            {"email": "a@example.com", "created_at": datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc)},
            {"email": "b@example.com", "created_at": datetime(2026, 3, 1, 23, 0, tzinfo=timezone.utc)},
            {"email": "c@example.com", "created_at": datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)},
            {
                "email": "d@example.com",
                "created_at": datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc),
                "deleted_at": datetime(2026, 3, 4, tzinfo=timezone.utc),
            },
        ],
    )

    buckets = asyncio.run(
        repository.count_by_day(
            EntityKind.USER,
            datetime(2026, 3, 1, tzinfo=timezone.utc),
            datetime(2026, 3, 3, 23, 59, tzinfo=timezone.utc),
        )
    )

    assert buckets == {date(2026, 3, 1): 2, date(2026, 3, 3): 1}


def test_count_by_reference_resolves_labels_and_orders_by_count() -> None:
    repository = InMemoryRepository()
    repository.load(EntityKind.JOB_CATEGORY, [{"id": "eng", "name": "Engineering"}, {"id": "ops", "name": "Ops"}])
    repository.load(
        EntityKind.JOB,
        [
            {"title": "Backend", "category_id": "eng"},
            {"title": "Frontend", "category_id": "eng"},
            {"title": "SRE", "category_id": "ops"},
            {"title": "Intern"},
        ],
    )

    grouped = asyncio.run(repository.count_by_reference(EntityKind.JOB, "category_id", EntityKind.JOB_CATEGORY, "name"))

    assert grouped == [("Engineering", 2), ("Ops", 1), (None, 1)]
    assert asyncio.run(
        repository.count_by_reference(EntityKind.JOB, "category_id", EntityKind.JOB_CATEGORY, "name", limit=1)
    ) == [("Engineering", 2)]


def test_count_by_reference_rejects_hidden_label_columns() -> None:
    repository = InMemoryRepository()

    with pytest.raises(RepositoryValidationError, match="cannot group application"):
        asyncio.run(repository.count_by_reference(EntityKind.APPLICATION, "user_id", EntityKind.USER, "password_hash"))
