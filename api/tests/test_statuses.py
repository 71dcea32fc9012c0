import pytest

from portal_admin.services.statuses import (
    INITIAL_STATUS,
    STATUS_VALUES,
    EntityKind,
    InvalidStatusError,
    has_status,
    validate_status,
)


def test_validate_status_accepts_member_of_kind_enum() -> None:
    assert validate_status(EntityKind.APPLICATION, "hired") == "hired"


def test_validate_status_accepts_plain_kind_string() -> None:
    assert validate_status("blog_comment", "approved") == "approved"


def test_validate_status_rejects_value_outside_kind_enum() -> None:
    with pytest.raises(InvalidStatusError, match="invalid application status: 'archived'"):
        validate_status(EntityKind.APPLICATION, "archived")


def test_validate_status_does_not_leak_values_across_kinds() -> None:
    # "published" is a job status, not a company one.
    with pytest.raises(InvalidStatusError):
        validate_status(EntityKind.COMPANY, "published")


def test_validate_status_allows_any_transition_between_members() -> None:
    for status in ("hired", "pending", "withdrawn", "pending"):
        assert validate_status(EntityKind.APPLICATION, status) == status


@pytest.mark.parametrize("kind", [EntityKind.SKILL, EntityKind.JOB_CATEGORY])
def test_validate_status_rejects_kinds_without_status(kind: EntityKind) -> None:
    assert not has_status(kind)
    with pytest.raises(InvalidStatusError, match="has no status field"):
        validate_status(kind, "active")


def test_validate_status_rejects_unknown_kind() -> None:
    with pytest.raises(InvalidStatusError, match="unknown entity kind"):
        validate_status("invoice", "paid")


def test_validate_status_is_case_sensitive() -> None:
    with pytest.raises(InvalidStatusError):
        validate_status(EntityKind.USER, "Active")


def test_initial_status_is_member_of_each_enum() -> None:
    for kind, status in INITIAL_STATUS.items():
        assert status in STATUS_VALUES[kind]
