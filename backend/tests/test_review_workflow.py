"""
Tests for ReviewWorkflowEngine over both storage backends
"""
from datetime import datetime, timedelta, timezone

import pytest

from rv_service.core.errors import (AlreadyExistsError, ConflictError,
                                    ErrorCode, NotFoundError)
from rv_service.models.pull_request import PullRequestStatus
from rv_service.services.directory import InMemoryDirectory
from rv_service.services.pull_request_store import InMemoryPullRequestStore
from rv_service.services.review_workflow import (ReviewWorkflowEngine,
                                                 can_transition)


class TestCreatePullRequest:
    """Initial reviewer assignment"""

    def test_assigns_two_teammates(self, backend_team):
        pr = backend_team.create_pull_request("pr-1", "Add search", "alice")

        assert pr.status == PullRequestStatus.OPEN
        assert pr.assigned_reviewers == ["bob", "carol"]
        assert pr.merged_at is None
        assert backend_team.get_pull_request("pr-1").assigned_reviewers == ["bob", "carol"]

    def test_never_assigns_author(self, workflow, make_team):
        workflow.save_team(make_team("backend", "alice", "bob", "carol", "dave"))

        for author in ("alice", "bob", "carol", "dave"):
            pr = workflow.create_pull_request(f"pr-{author}", "Change", author)
            assert author not in pr.assigned_reviewers
            assert len(pr.assigned_reviewers) == 2
            assert len(set(pr.assigned_reviewers)) == 2

    def test_single_teammate(self, workflow, make_team):
        workflow.save_team(make_team("backend", "alice", "bob"))

        pr = workflow.create_pull_request("pr-1", "Add search", "alice")

        assert pr.assigned_reviewers == ["bob"]

    def test_inactive_members_excluded(self, workflow, make_team):
        workflow.save_team(make_team("backend", "alice", ("bob", False), "carol", "dave"))

        pr = workflow.create_pull_request("pr-1", "Add search", "alice")

        assert pr.assigned_reviewers == ["carol", "dave"]

    def test_members_of_other_teams_excluded(self, workflow, make_team):
        workflow.save_team(make_team("backend", "alice", "bob"))
        workflow.save_team(make_team("frontend", "aaron", "frank"))

        pr = workflow.create_pull_request("pr-1", "Add search", "alice")

        assert pr.assigned_reviewers == ["bob"]

    def test_no_candidates(self, workflow, make_team):
        workflow.save_team(make_team("solo", "alice"))

        with pytest.raises(ConflictError) as exc_info:
            workflow.create_pull_request("pr-1", "Add search", "alice")

        assert exc_info.value.reason == ErrorCode.NO_CANDIDATE
        with pytest.raises(NotFoundError):
            workflow.get_pull_request("pr-1")

    def test_unknown_author(self, backend_team):
        with pytest.raises(NotFoundError) as exc_info:
            backend_team.create_pull_request("pr-1", "Add search", "ghost")

        assert exc_info.value.code == ErrorCode.AUTHOR_NOT_FOUND
        with pytest.raises(NotFoundError):
            backend_team.get_pull_request("pr-1")

    def test_duplicate_id(self, backend_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")

        with pytest.raises(AlreadyExistsError) as exc_info:
            backend_team.create_pull_request("pr-1", "Something else", "bob")

        assert exc_info.value.code == ErrorCode.PR_EXISTS
        existing = backend_team.get_pull_request("pr-1")
        assert existing.pull_request_name == "Add search"
        assert existing.author_id == "alice"


class TestReassignReviewer:
    """Replacement of a single reviewer"""

    def test_no_replacement_available(self, backend_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")

        with pytest.raises(ConflictError) as exc_info:
            backend_team.reassign_reviewer("pr-1", "bob")

        assert exc_info.value.reason == ErrorCode.NO_CANDIDATE
        assert backend_team.get_pull_request("pr-1").assigned_reviewers == ["bob", "carol"]

    def test_replacement_appended(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", "dave"))

        result = backend_team.reassign_reviewer("pr-1", "bob")

        assert result.replaced_by == "dave"
        assert result.pr.assigned_reviewers == ["carol", "dave"]
        assert backend_team.get_pull_request("pr-1").assigned_reviewers == ["carol", "dave"]

    def test_replacement_skips_inactive(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", ("dave", False), "erin"))

        result = backend_team.reassign_reviewer("pr-1", "carol")

        assert result.replaced_by == "erin"
        assert result.pr.assigned_reviewers == ["bob", "erin"]

    def test_deactivated_reviewer_can_be_replaced(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", "dave"))
        backend_team.set_user_active("bob", False)

        result = backend_team.reassign_reviewer("pr-1", "bob")

        assert result.replaced_by == "dave"
        assert "bob" not in result.pr.assigned_reviewers

    def test_reviewer_not_assigned(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", "dave"))

        with pytest.raises(ConflictError) as exc_info:
            backend_team.reassign_reviewer("pr-1", "dave")

        assert exc_info.value.reason == ErrorCode.NOT_ASSIGNED
        assert backend_team.get_pull_request("pr-1").assigned_reviewers == ["bob", "carol"]

    def test_author_is_never_assigned(self, backend_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")

        with pytest.raises(ConflictError) as exc_info:
            backend_team.reassign_reviewer("pr-1", "alice")

        assert exc_info.value.reason == ErrorCode.NOT_ASSIGNED

    def test_merged_pull_request(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", "dave"))
        backend_team.merge_pull_request("pr-1")

        with pytest.raises(ConflictError) as exc_info:
            backend_team.reassign_reviewer("pr-1", "bob")

        assert exc_info.value.reason == ErrorCode.PR_MERGED
        pr = backend_team.get_pull_request("pr-1")
        assert pr.status == PullRequestStatus.MERGED
        assert pr.assigned_reviewers == ["bob", "carol"]

    def test_unknown_pull_request(self, backend_team):
        with pytest.raises(NotFoundError) as exc_info:
            backend_team.reassign_reviewer("missing", "bob")
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_single_reviewer_replaced(self, workflow, make_team):
        workflow.save_team(make_team("backend", "alice", "bob"))
        workflow.create_pull_request("pr-1", "Add search", "alice")
        workflow.save_team(make_team("backend", "carol"))

        result = workflow.reassign_reviewer("pr-1", "bob")

        assert result.pr.assigned_reviewers == ["carol"]


class TestMergePullRequest:
    """OPEN -> MERGED transition"""

    def test_merge(self, backend_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")

        pr = backend_team.merge_pull_request("pr-1")

        assert pr.status == PullRequestStatus.MERGED
        assert pr.merged_at is not None
        assert pr.assigned_reviewers == ["bob", "carol"]

    def test_merge_unknown(self, backend_team):
        with pytest.raises(NotFoundError):
            backend_team.merge_pull_request("missing")

    def test_repeated_merge_keeps_timestamp(self, make_team):
        now = [datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)]
        engine = ReviewWorkflowEngine(
            store=InMemoryPullRequestStore(),
            directory=InMemoryDirectory(),
            clock=lambda: now[0],
        )
        engine.save_team(make_team("backend", "alice", "bob"))
        engine.create_pull_request("pr-1", "Add search", "alice")

        first = engine.merge_pull_request("pr-1")
        now[0] = now[0] + timedelta(days=1)
        second = engine.merge_pull_request("pr-1")

        assert first.merged_at == datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert second.merged_at == first.merged_at
        assert second.status == PullRequestStatus.MERGED

    def test_repeated_merge_does_not_write(self, make_team):
        store = InMemoryPullRequestStore()
        writes = []
        set_merged = store.set_merged

        def recording_set_merged(pull_request_id, merged_at):
            writes.append(pull_request_id)
            return set_merged(pull_request_id, merged_at)

        store.set_merged = recording_set_merged
        engine = ReviewWorkflowEngine(store=store, directory=InMemoryDirectory())
        engine.save_team(make_team("backend", "alice", "bob"))
        engine.create_pull_request("pr-1", "Add search", "alice")

        engine.merge_pull_request("pr-1")
        again = engine.merge_pull_request("pr-1")

        assert writes == ["pr-1"]
        assert again.status == PullRequestStatus.MERGED

    def test_repeated_merge_sql(self, sql_workflow, make_team):
        sql_workflow.save_team(make_team("backend", "alice", "bob"))
        sql_workflow.create_pull_request("pr-1", "Add search", "alice")

        first = sql_workflow.merge_pull_request("pr-1")
        second = sql_workflow.merge_pull_request("pr-1")

        assert second.merged_at == first.merged_at
        assert second.assigned_reviewers == first.assigned_reviewers

    def test_transitions(self):
        assert can_transition(PullRequestStatus.OPEN, PullRequestStatus.MERGED)
        assert not can_transition(PullRequestStatus.MERGED, PullRequestStatus.OPEN)
        assert not can_transition(PullRequestStatus.MERGED, PullRequestStatus.MERGED)


class TestDirectoryOperations:
    """Team, activity and workload queries"""

    def test_save_team_created_then_updated(self, workflow, make_team):
        created, team = workflow.save_team(make_team("backend", "alice"))
        assert created is True
        assert [m.user_id for m in team.members] == ["alice"]

        created, team = workflow.save_team(make_team("backend", "bob"))
        assert created is False
        assert [m.user_id for m in team.members] == ["alice", "bob"]

    def test_save_team_unchanged(self, backend_team, make_team):
        with pytest.raises(ConflictError) as exc_info:
            backend_team.save_team(make_team("backend", "alice", "bob", "carol"))
        assert exc_info.value.reason == ErrorCode.TEAM_EXISTS

    def test_get_team(self, backend_team):
        team = backend_team.get_team("backend")
        assert [m.user_id for m in team.members] == ["alice", "bob", "carol"]

    def test_deactivation_keeps_existing_assignments(self, backend_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")

        user = backend_team.set_user_active("bob", False)

        assert user.is_active is False
        assert backend_team.get_pull_request("pr-1").assigned_reviewers == ["bob", "carol"]
        pr = backend_team.create_pull_request("pr-2", "Fix bug", "alice")
        assert pr.assigned_reviewers == ["carol"]

    def test_set_user_active_unknown(self, backend_team):
        with pytest.raises(NotFoundError) as exc_info:
            backend_team.set_user_active("ghost", True)
        assert exc_info.value.code == ErrorCode.USER_NOT_FOUND

    def test_user_reviews(self, backend_team, make_team):
        backend_team.save_team(make_team("backend", "dave"))
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.create_pull_request("pr-2", "Fix bug", "bob")
        backend_team.merge_pull_request("pr-1")

        reviews = backend_team.get_user_reviews("carol")

        assert reviews.user_id == "carol"
        by_id = {pr.pull_request_id: pr for pr in reviews.pull_requests}
        assert set(by_id) == {"pr-1", "pr-2"}
        assert by_id["pr-1"].status == PullRequestStatus.MERGED
        assert by_id["pr-2"].status == PullRequestStatus.OPEN

    def test_user_reviews_after_reassign(self, backend_team, make_team):
        backend_team.create_pull_request("pr-1", "Add search", "alice")
        backend_team.save_team(make_team("backend", "dave"))
        backend_team.reassign_reviewer("pr-1", "bob")

        assert backend_team.get_user_reviews("bob").pull_requests == []
        assert [pr.pull_request_id for pr in backend_team.get_user_reviews("dave").pull_requests] == ["pr-1"]

    def test_user_reviews_unknown_user(self, backend_team):
        with pytest.raises(NotFoundError) as exc_info:
            backend_team.get_user_reviews("ghost")
        assert exc_info.value.code == ErrorCode.USER_NOT_FOUND
