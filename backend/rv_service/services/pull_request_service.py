"""
Pull Request Service: SQLAlchemy-backed PullRequest Store

Reassign and merge lock the pull-request row (SELECT ... FOR UPDATE) for the
duration of their transaction, so the state they validate is the state they
write against.
"""
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rv_service.core.errors import (AlreadyExistsError, ConflictError,
                                    ErrorCode, InternalError, NotFoundError,
                                    ReviewServiceError)
from rv_service.core.logging_config import LoggingConfig
from rv_service.models.pull_request import (PullRequest, PullRequestReviewer,
                                            PullRequestStatus)
from rv_service.models.schemas import PullRequestShort, PullRequestSnapshot
from rv_service.models.team import User
from rv_service.services.pull_request_store import (PullRequestStore,
                                                    check_eligible,
                                                    check_swap)

logger = LoggingConfig.get_logger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored timestamps are always UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PullRequestService(PullRequestStore):
    """Service for persisting pull requests and their reviewer edges"""

    def __init__(self, db: Session):
        """
        Initialize Pull Request Service

        Args:
            db: Database session
        """
        self.db = db

    def _reviewer_ids(self, pull_request_id: str) -> List[str]:
        stmt = (
            select(PullRequestReviewer.user_id)
            .where(PullRequestReviewer.pull_request_id == pull_request_id)
            .order_by(PullRequestReviewer.position)
        )
        return list(self.db.execute(stmt).scalars())

    def _snapshot(self, pr: PullRequest) -> PullRequestSnapshot:
        return PullRequestSnapshot(
            pull_request_id=pr.pull_request_id,
            pull_request_name=pr.pull_request_name,
            author_id=pr.author_id,
            status=PullRequestStatus(pr.status),
            assigned_reviewers=self._reviewer_ids(pr.pull_request_id),
            created_at=_as_utc(pr.created_at),
            merged_at=_as_utc(pr.merged_at),
        )

    def _locked(self, pull_request_id: str) -> PullRequest:
        """Load the pull request row with a write lock, or raise NotFoundError"""
        pr = self.db.execute(
            select(PullRequest)
            .where(PullRequest.pull_request_id == pull_request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if pr is None:
            self.db.rollback()
            raise NotFoundError(f"pull request {pull_request_id} not found")
        return pr

    def _lock_replacement(self, author_id: str, new_reviewer_id: str) -> None:
        """Share-lock the author and replacement rows; the replacement must be an active teammate"""
        users = {
            user.user_id: user
            for user in self.db.execute(
                select(User)
                .where(User.user_id.in_([author_id, new_reviewer_id]))
                .with_for_update(read=True)
                .execution_options(populate_existing=True)
            ).scalars()
        }
        author = users.get(author_id)
        reviewer = users.get(new_reviewer_id)
        if author is None or reviewer is None or not reviewer.is_active or reviewer.team_name != author.team_name:
            raise ConflictError(
                f"reviewer {new_reviewer_id} is no longer eligible, retry",
                reason=ErrorCode.STATE_CHANGED,
            )

    def insert(
        self,
        pull_request_id: str,
        pull_request_name: str,
        author_id: str,
        reviewers: Sequence[str],
    ) -> PullRequestSnapshot:
        """
        Create a pull request together with its reviewers in one transaction

        Raises:
            AlreadyExistsError: If the id is taken
        """
        try:
            if self.db.get(PullRequest, pull_request_id) is not None:
                raise AlreadyExistsError(f"pull request {pull_request_id} already exists")

            pr = PullRequest(
                pull_request_id=pull_request_id,
                pull_request_name=pull_request_name,
                author_id=author_id,
                status=PullRequestStatus.OPEN.value,
                created_at=datetime.now(timezone.utc),
            )
            self.db.add(pr)
            # Parent row must exist before its reviewer edges
            self.db.flush()
            for position, reviewer_id in enumerate(reviewers):
                self.db.add(PullRequestReviewer(
                    pull_request_id=pull_request_id,
                    user_id=reviewer_id,
                    position=position,
                ))
            self.db.commit()
            snapshot = self._snapshot(pr)
        except IntegrityError as e:
            self.db.rollback()
            if self.db.get(PullRequest, pull_request_id) is not None:
                raise AlreadyExistsError(f"pull request {pull_request_id} already exists") from e
            logger.error(f"Integrity error creating PR {pull_request_id}: {e}")
            raise ConflictError("team membership changed concurrently, retry", reason=ErrorCode.STATE_CHANGED) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create PR {pull_request_id}: {e}", exc_info=True)
            raise InternalError("failed to create pull request") from e

        logger.info(f"Created pull request: {pull_request_id}", extra={"reviewers": list(reviewers)})
        return snapshot

    def get(self, pull_request_id: str) -> PullRequestSnapshot:
        try:
            pr = self.db.get(PullRequest, pull_request_id)
            if pr is None:
                raise NotFoundError(f"pull request {pull_request_id} not found")
            return self._snapshot(pr)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load PR {pull_request_id}: {e}", exc_info=True)
            raise InternalError("failed to get pull request") from e

    def swap_reviewer(
        self,
        pull_request_id: str,
        old_reviewer_id: str,
        new_reviewer_id: str,
        is_eligible: Optional[Callable[[str], bool]] = None,
    ) -> PullRequestSnapshot:
        """
        Remove old_reviewer_id and add new_reviewer_id in one transaction

        The replacement's user row is read under a share lock, so a
        deactivation or team move committed after the decision is seen here.
        """
        try:
            pr = self._locked(pull_request_id)
            current = self._snapshot(pr)
            try:
                check_swap(current, old_reviewer_id, new_reviewer_id)
                self._lock_replacement(pr.author_id, new_reviewer_id)
                check_eligible(new_reviewer_id, is_eligible)
            except ConflictError:
                self.db.rollback()
                raise

            next_position = self.db.execute(
                select(func.coalesce(func.max(PullRequestReviewer.position), -1))
                .where(PullRequestReviewer.pull_request_id == pull_request_id)
            ).scalar_one() + 1

            self.db.execute(
                delete(PullRequestReviewer).where(
                    PullRequestReviewer.pull_request_id == pull_request_id,
                    PullRequestReviewer.user_id == old_reviewer_id,
                )
            )
            self.db.add(PullRequestReviewer(
                pull_request_id=pull_request_id,
                user_id=new_reviewer_id,
                position=next_position,
            ))
            self.db.commit()
            snapshot = self._snapshot(pr)
        except ReviewServiceError:
            raise
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("reviewer set changed concurrently, retry", reason=ErrorCode.STATE_CHANGED) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to reassign reviewer on PR {pull_request_id}: {e}", exc_info=True)
            raise InternalError("failed to reassign reviewer") from e

        return snapshot

    def set_merged(self, pull_request_id: str, merged_at: datetime) -> PullRequestSnapshot:
        try:
            pr = self._locked(pull_request_id)
            if pr.status == PullRequestStatus.MERGED.value:
                snapshot = self._snapshot(pr)
                self.db.rollback()
                return snapshot

            pr.status = PullRequestStatus.MERGED.value
            pr.merged_at = merged_at
            self.db.commit()
            snapshot = self._snapshot(pr)
        except ReviewServiceError:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to merge PR {pull_request_id}: {e}", exc_info=True)
            raise InternalError("failed to merge pull request") from e

        return snapshot

    def list_for_reviewer(self, user_id: str) -> List[PullRequestShort]:
        stmt = (
            select(PullRequest)
            .join(PullRequestReviewer, PullRequestReviewer.pull_request_id == PullRequest.pull_request_id)
            .where(PullRequestReviewer.user_id == user_id)
            .order_by(PullRequest.created_at.desc(), PullRequest.pull_request_id)
        )
        try:
            return [
                PullRequestShort(
                    pull_request_id=pr.pull_request_id,
                    pull_request_name=pr.pull_request_name,
                    author_id=pr.author_id,
                    status=PullRequestStatus(pr.status),
                )
                for pr in self.db.execute(stmt).scalars()
            ]
        except SQLAlchemyError as e:
            raise InternalError("failed to get pull requests") from e
