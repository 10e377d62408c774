"""
ReviewWorkflowEngine - pull request lifecycle and reviewer rotation

Orchestrates the assignment policy against a Directory and a PullRequest
Store. Every operation reads the directory once, decides, and writes through a
single atomic store primitive.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional, Set, Tuple

from rv_service.core.errors import (ConflictError, ErrorCode, NotFoundError,
                                    ReviewServiceError)
from rv_service.core.logging_config import LoggingConfig
from rv_service.core.metrics import (reviewers_assigned_total,
                                     workflow_operations_total)
from rv_service.models.pull_request import PullRequestStatus
from rv_service.models.schemas import (PullRequestSnapshot, ReassignResult,
                                       TeamInfo, UserInfo, UserReviews)
from rv_service.services.assignment_policy import (select_initial_reviewers,
                                                   select_replacement)
from rv_service.services.directory import Directory
from rv_service.services.pull_request_store import PullRequestStore

logger = LoggingConfig.get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[PullRequestStatus, Set[PullRequestStatus]] = {
    PullRequestStatus.OPEN: {PullRequestStatus.MERGED},
    PullRequestStatus.MERGED: set(),  # terminal
}


def can_transition(from_state: PullRequestStatus, to_state: PullRequestStatus) -> bool:
    return to_state in ALLOWED_TRANSITIONS.get(from_state, set())


class ReviewWorkflowEngine:
    """
    Create / reassign / merge for pull requests

    Functionality:
    - initial reviewer selection from the author's active teammates
    - all-or-nothing reviewer replacement
    - OPEN -> MERGED transition with frozen reviewers
    - team, activity and workload queries through the directory
    """

    def __init__(
        self,
        store: PullRequestStore,
        directory: Directory,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: PullRequest Store used for every read and write of pull requests
            directory: Directory used for eligibility and team queries
            clock: Source of merge timestamps (UTC now by default)
        """
        self.store = store
        self.directory = directory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @contextmanager
    def _track(self, operation: str, **context) -> Iterator[None]:
        """Count the outcome and log rejected operations"""
        try:
            yield
        except ReviewServiceError as e:
            workflow_operations_total.labels(operation=operation, result=e.code.value).inc()
            logger.warning(
                f"{operation} rejected: {e.message}",
                extra={"operation": operation, "reason": e.code.value, **context},
            )
            raise
        workflow_operations_total.labels(operation=operation, result="ok").inc()

    # ── Pull requests ────────────────────────────────────────────────────────

    def create_pull_request(self, pull_request_id: str, pull_request_name: str, author_id: str) -> PullRequestSnapshot:
        """
        Create an OPEN pull request with up to two reviewers

        Raises:
            NotFoundError: AUTHOR_NOT_FOUND
            ConflictError: NO_CANDIDATE when the author has no active teammates
            AlreadyExistsError: PR_EXISTS
        """
        with self._track("create", pull_request_id=pull_request_id, author_id=author_id):
            if not self.directory.author_exists(author_id):
                raise NotFoundError(f"author {author_id} not found", code=ErrorCode.AUTHOR_NOT_FOUND)

            candidates = self.directory.active_members_excluding(author_id)
            reviewers = select_initial_reviewers(author_id, candidates)

            snapshot = self.store.insert(pull_request_id, pull_request_name, author_id, reviewers)

        reviewers_assigned_total.labels(source="create").inc(len(reviewers))
        logger.info(
            f"PR {pull_request_id} created",
            extra={"pull_request_id": pull_request_id, "author_id": author_id, "reviewers": reviewers},
        )
        return snapshot

    def reassign_reviewer(self, pull_request_id: str, old_reviewer_id: str) -> ReassignResult:
        """
        Replace one assigned reviewer with the first eligible teammate of the author

        The decision uses the reviewer set loaded here and a single directory
        snapshot; the store re-validates both at write time, including that the
        replacement is still an active teammate, and rejects the swap if
        another operation got there first.

        Raises:
            NotFoundError: NOT_FOUND
            ConflictError: PR_MERGED, NOT_ASSIGNED, NO_CANDIDATE, STATE_CHANGED
        """
        with self._track("reassign", pull_request_id=pull_request_id, old_reviewer=old_reviewer_id):
            current = self.store.get(pull_request_id)

            if current.is_merged:
                raise ConflictError("cannot reassign on merged PR", reason=ErrorCode.PR_MERGED)
            if old_reviewer_id not in current.assigned_reviewers:
                raise ConflictError("reviewer is not assigned to this PR", reason=ErrorCode.NOT_ASSIGNED)

            candidates = self.directory.active_members_excluding(current.author_id)
            new_reviewer_id = select_replacement(old_reviewer_id, current.assigned_reviewers, candidates)

            author_id = current.author_id
            updated = self.store.swap_reviewer(
                pull_request_id,
                old_reviewer_id,
                new_reviewer_id,
                is_eligible=lambda user_id: user_id in self.directory.active_members_excluding(author_id),
            )

        reviewers_assigned_total.labels(source="reassign").inc()
        logger.info(
            f"PR {pull_request_id}: reviewer {old_reviewer_id} replaced by {new_reviewer_id}",
            extra={
                "pull_request_id": pull_request_id,
                "old_reviewer": old_reviewer_id,
                "new_reviewer": new_reviewer_id,
            },
        )
        return ReassignResult(pr=updated, replaced_by=new_reviewer_id)

    def merge_pull_request(self, pull_request_id: str) -> PullRequestSnapshot:
        """
        Mark a pull request MERGED and freeze its reviewers

        Merging an already merged pull request returns it unchanged, with the
        original merged_at.

        Raises:
            NotFoundError: NOT_FOUND
        """
        with self._track("merge", pull_request_id=pull_request_id):
            current = self.store.get(pull_request_id)
            # MERGED is terminal: a repeated merge returns the record unchanged
            if not can_transition(current.status, PullRequestStatus.MERGED):
                logger.info(f"PR {pull_request_id} already merged", extra={"pull_request_id": pull_request_id})
                return current

            merged = self.store.set_merged(pull_request_id, self._clock())

        logger.info(f"PR {pull_request_id} merged", extra={"pull_request_id": pull_request_id})
        return merged

    def get_pull_request(self, pull_request_id: str) -> PullRequestSnapshot:
        return self.store.get(pull_request_id)

    # ── Directory ────────────────────────────────────────────────────────────

    def save_team(self, team: TeamInfo) -> Tuple[bool, TeamInfo]:
        """
        Create a team or merge members into it

        Returns:
            (created, team with its full member list)

        Raises:
            ConflictError: TEAM_EXISTS when nothing is new or changed
        """
        with self._track("save_team", team_name=team.team_name):
            created = self.directory.save_or_merge_team(team)
            saved = self.directory.get_team(team.team_name)
        return created, saved

    def get_team(self, team_name: str) -> TeamInfo:
        with self._track("get_team", team_name=team_name):
            return self.directory.get_team(team_name)

    def set_user_active(self, user_id: str, is_active: bool) -> UserInfo:
        """Toggle activity; existing assignments are left as they are"""
        with self._track("set_user_active", user_id=user_id):
            return self.directory.set_user_active(user_id, is_active)

    def get_user_reviews(self, user_id: str) -> UserReviews:
        """
        Pull requests the user is assigned to review

        Raises:
            NotFoundError: USER_NOT_FOUND
        """
        with self._track("get_user_reviews", user_id=user_id):
            if not self.directory.user_exists(user_id):
                raise NotFoundError(f"user {user_id} not found", code=ErrorCode.USER_NOT_FOUND)
            return UserReviews(user_id=user_id, pull_requests=self.store.list_for_reviewer(user_id))
