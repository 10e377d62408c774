"""
Tests for the PullRequest Store implementations (in-process and SQL)
"""
from datetime import datetime, timedelta, timezone

import pytest

from rv_service.core.errors import (AlreadyExistsError, ConflictError,
                                    ErrorCode, NotFoundError)
from rv_service.models.pull_request import PullRequestStatus
from rv_service.services.pull_request_store import InMemoryPullRequestStore


@pytest.fixture(params=["memory", "sql"])
def store(request, team_service, make_team):
    """Store with users alice..erin available for foreign keys"""
    if request.param == "memory":
        return InMemoryPullRequestStore()
    team_service.save_or_merge_team(make_team("backend", "alice", "bob", "carol", "dave", "erin"))
    return request.getfixturevalue("pr_service")


def test_insert_and_get(store):
    created = store.insert("pr-1", "Add search", "alice", ["bob", "carol"])

    assert created.status == PullRequestStatus.OPEN
    assert created.assigned_reviewers == ["bob", "carol"]
    assert created.created_at is not None
    assert created.merged_at is None

    loaded = store.get("pr-1")
    assert loaded.pull_request_name == "Add search"
    assert loaded.author_id == "alice"
    assert loaded.assigned_reviewers == ["bob", "carol"]


def test_insert_duplicate_id(store):
    store.insert("pr-1", "Add search", "alice", ["bob"])
    with pytest.raises(AlreadyExistsError) as exc_info:
        store.insert("pr-1", "Other", "alice", ["carol"])
    assert exc_info.value.code == ErrorCode.PR_EXISTS
    assert store.get("pr-1").assigned_reviewers == ["bob"]


def test_get_missing(store):
    with pytest.raises(NotFoundError):
        store.get("missing")


def test_swap_reviewer_keeps_remaining_order(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])

    updated = store.swap_reviewer("pr-1", "bob", "dave")

    assert updated.assigned_reviewers == ["carol", "dave"]
    assert store.get("pr-1").assigned_reviewers == ["carol", "dave"]


def test_swap_reviewer_twice(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    store.swap_reviewer("pr-1", "bob", "dave")
    updated = store.swap_reviewer("pr-1", "carol", "erin")
    assert updated.assigned_reviewers == ["dave", "erin"]


def test_swap_reviewer_old_not_assigned(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    with pytest.raises(ConflictError) as exc_info:
        store.swap_reviewer("pr-1", "dave", "erin")
    assert exc_info.value.reason == ErrorCode.NOT_ASSIGNED
    assert store.get("pr-1").assigned_reviewers == ["bob", "carol"]


def test_swap_reviewer_new_already_assigned(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    with pytest.raises(ConflictError) as exc_info:
        store.swap_reviewer("pr-1", "bob", "carol")
    assert exc_info.value.reason == ErrorCode.STATE_CHANGED
    assert store.get("pr-1").assigned_reviewers == ["bob", "carol"]


def test_swap_reviewer_on_merged(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    store.set_merged("pr-1", datetime.now(timezone.utc))
    with pytest.raises(ConflictError) as exc_info:
        store.swap_reviewer("pr-1", "bob", "dave")
    assert exc_info.value.reason == ErrorCode.PR_MERGED
    assert store.get("pr-1").assigned_reviewers == ["bob", "carol"]


def test_swap_reviewer_missing(store):
    with pytest.raises(NotFoundError):
        store.swap_reviewer("missing", "bob", "dave")


def test_set_merged_once(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    first_time = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    merged = store.set_merged("pr-1", first_time)
    again = store.set_merged("pr-1", first_time + timedelta(hours=1))

    assert merged.status == PullRequestStatus.MERGED
    assert again.status == PullRequestStatus.MERGED
    assert again.merged_at == merged.merged_at
    assert again.assigned_reviewers == ["bob", "carol"]


def test_set_merged_missing(store):
    with pytest.raises(NotFoundError):
        store.set_merged("missing", datetime.now(timezone.utc))


def test_list_for_reviewer(store):
    store.insert("pr-1", "First", "alice", ["bob", "carol"])
    store.insert("pr-2", "Second", "alice", ["carol", "dave"])
    store.insert("pr-3", "Third", "bob", ["erin"])

    carol = store.list_for_reviewer("carol")
    assert {pr.pull_request_id for pr in carol} == {"pr-1", "pr-2"}
    assert all(pr.status == PullRequestStatus.OPEN for pr in carol)

    assert store.list_for_reviewer("alice") == []


def test_snapshots_are_copies():
    store = InMemoryPullRequestStore()
    snapshot = store.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    snapshot.assigned_reviewers.append("mallory")
    assert store.get("pr-1").assigned_reviewers == ["bob", "carol"]


def test_swap_reviewer_rejects_ineligible_replacement(store):
    store.insert("pr-1", "Add search", "alice", ["bob", "carol"])

    with pytest.raises(ConflictError) as exc_info:
        store.swap_reviewer("pr-1", "bob", "dave", is_eligible=lambda user_id: user_id != "dave")

    assert exc_info.value.reason == ErrorCode.STATE_CHANGED
    assert store.get("pr-1").assigned_reviewers == ["bob", "carol"]


def test_swap_reviewer_checks_user_row(team_service, pr_service, make_team):
    team_service.save_or_merge_team(make_team("backend", "alice", "bob", "carol", "dave"))
    team_service.save_or_merge_team(make_team("frontend", "frank"))
    pr_service.insert("pr-1", "Add search", "alice", ["bob", "carol"])
    team_service.set_user_active("dave", False)

    for replacement in ("dave", "frank"):
        with pytest.raises(ConflictError) as exc_info:
            pr_service.swap_reviewer("pr-1", "bob", replacement)
        assert exc_info.value.reason == ErrorCode.STATE_CHANGED

    assert pr_service.get("pr-1").assigned_reviewers == ["bob", "carol"]
