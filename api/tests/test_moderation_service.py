import asyncio

import pytest

from portal_admin.core.passwords import pwd_context
from portal_admin.services.moderation import DELETE_POLICY, ModerationService
from portal_admin.services.repository import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import EntityKind, InvalidStatusError
from portal_admin.services.store import InMemoryRepository


def test_delete_policy_covers_every_kind() -> None:
    assert set(DELETE_POLICY) == set(EntityKind)


def test_delete_follows_policy_per_kind() -> None:
    repository = InMemoryRepository()
    (user,) = repository.load(EntityKind.USER, [{"email": "a@example.com", "role": "hr"}])
    (company,) = repository.load(EntityKind.COMPANY, [{"name": "Acme"}])
    service = ModerationService(repository)

    assert asyncio.run(service.delete(EntityKind.USER, user["id"], actor_id="admin-1")) == "soft"
    assert asyncio.run(service.delete(EntityKind.COMPANY, company["id"], actor_id="admin-1")) == "hard"

    assert user["id"] in repository.records[EntityKind.USER]
    assert company["id"] not in repository.records[EntityKind.COMPANY]
    assert [event["payload"]["mode"] for event in repository.events] == ["soft", "hard"]


def test_delete_missing_record_raises_not_found() -> None:
    service = ModerationService(InMemoryRepository())

    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(service.delete(EntityKind.APPLICATION, "missing"))


def test_update_status_validates_before_touching_store() -> None:
    repository = InMemoryRepository()
    (application,) = repository.load(EntityKind.APPLICATION, [{"job_id": "j1", "user_id": "u1"}])
    service = ModerationService(repository)

    with pytest.raises(InvalidStatusError):
        asyncio.run(service.update_status(EntityKind.APPLICATION, application["id"], "archived"))
    assert repository.events == []

    row = asyncio.run(
        service.update_status(EntityKind.APPLICATION, application["id"], "hired", reason="great fit", actor_id="a")
    )
    assert row["status"] == "hired"
    assert row["status_reason"] == "great fit"


def test_create_user_hashes_password_and_normalizes_email() -> None:
    repository = InMemoryRepository()
    service = ModerationService(repository)

    user = asyncio.run(
        service.create_user(
            email="  Ada@Example.com ",
            password="correct horse battery",
            role="employer",
            first_name=" Ada ",
        )
    )

    stored = repository.records[EntityKind.USER][user["id"]]
    assert user["email"] == "ada@example.com"
    assert user["first_name"] == "Ada"
    assert stored["password_hash"] != "correct horse battery"
    assert pwd_context.verify("correct horse battery", stored["password_hash"])


def test_create_user_rejects_duplicate_email() -> None:
    repository = InMemoryRepository()
    repository.load(EntityKind.USER, [{"email": "ada@example.com", "role": "job-seeker"}])
    service = ModerationService(repository)

    with pytest.raises(RepositoryDuplicateError):
        asyncio.run(service.create_user(email="ADA@example.com", password="password123", role="hr"))


def test_create_user_rejects_unknown_role() -> None:
    service = ModerationService(InMemoryRepository())

    with pytest.raises(RepositoryValidationError, match="invalid role"):
        asyncio.run(service.create_user(email="x@example.com", password="password123", role="root"))


def test_create_skill_and_category_reject_blank_names() -> None:
    service = ModerationService(InMemoryRepository())

    with pytest.raises(RepositoryValidationError, match="name must be a non-empty string"):
        asyncio.run(service.create_skill(name="   "))
    with pytest.raises(RepositoryValidationError):
        asyncio.run(service.create_job_category(name=""))


def test_update_skill_ignores_omitted_fields() -> None:
    repository = InMemoryRepository()
    (skill,) = repository.load(EntityKind.SKILL, [{"name": "Python", "category": "Languages"}])
    service = ModerationService(repository)

    updated = asyncio.run(service.update_skill(skill["id"], description="General purpose"))

    assert updated["name"] == "Python"
    assert updated["category"] == "Languages"
    assert updated["description"] == "General purpose"


def test_update_job_category_rejects_duplicate_name() -> None:
    repository = InMemoryRepository()
    engineering, _ = repository.load(EntityKind.JOB_CATEGORY, [{"name": "Engineering"}, {"name": "Design"}])
    service = ModerationService(repository)

    with pytest.raises(RepositoryDuplicateError):
        asyncio.run(service.update_job_category(engineering["id"], name="design"))


def test_update_user_role() -> None:
    repository = InMemoryRepository()
    (user,) = repository.load(EntityKind.USER, [{"email": "a@example.com", "role": "job-seeker"}])
    service = ModerationService(repository)

    updated = asyncio.run(service.update_user_role(user["id"], "hr", actor_id="admin-1"))

    assert updated["role"] == "hr"
    with pytest.raises(RepositoryValidationError):
        asyncio.run(service.update_user_role(user["id"], "owner"))


def test_verify_company_records_notes() -> None:
    repository = InMemoryRepository()
    (company,) = repository.load(EntityKind.COMPANY, [{"name": "Acme", "is_verified": False}])
    service = ModerationService(repository)

    updated = asyncio.run(
        service.verify_company(company["id"], is_verified=True, admin_notes="checked registry", actor_id="admin-1")
    )

    assert updated["is_verified"] is True
    assert updated["admin_notes"] == "checked registry"
    events = asyncio.run(service.list_events(EntityKind.COMPANY, company["id"]))
    assert events[0]["event_type"] == "updated"
    assert events[0]["payload"] == {"is_verified": True, "admin_notes": "checked registry"}
