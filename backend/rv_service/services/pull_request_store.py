"""
PullRequest Store contract and its in-process implementation
"""
import itertools
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from rv_service.core.errors import (AlreadyExistsError, ConflictError,
                                    ErrorCode, NotFoundError)
from rv_service.core.logging_config import LoggingConfig
from rv_service.models.pull_request import PullRequestStatus
from rv_service.models.schemas import PullRequestShort, PullRequestSnapshot

logger = LoggingConfig.get_logger(__name__)


class PullRequestStore(ABC):
    """
    Atomic primitives over pull requests and their reviewer sets

    Every method returns a populated snapshot or raises a ReviewServiceError.
    """

    @abstractmethod
    def insert(
        self,
        pull_request_id: str,
        pull_request_name: str,
        author_id: str,
        reviewers: Sequence[str],
    ) -> PullRequestSnapshot:
        """Persist a new OPEN pull request and its reviewers as one unit (AlreadyExistsError on duplicate id)"""
        ...

    @abstractmethod
    def get(self, pull_request_id: str) -> PullRequestSnapshot:
        ...

    @abstractmethod
    def swap_reviewer(
        self,
        pull_request_id: str,
        old_reviewer_id: str,
        new_reviewer_id: str,
        is_eligible: Optional[Callable[[str], bool]] = None,
    ) -> PullRequestSnapshot:
        """
        Replace old_reviewer_id with new_reviewer_id as one unit

        Re-validates at write time: the record is OPEN, old is assigned, new is
        not, and new is still eligible. is_eligible is called with the new
        reviewer id while the record is locked.

        Raises:
            NotFoundError, ConflictError (PR_MERGED, NOT_ASSIGNED, STATE_CHANGED)
        """
        ...

    @abstractmethod
    def set_merged(self, pull_request_id: str, merged_at: datetime) -> PullRequestSnapshot:
        """Mark MERGED; an already merged record is returned unchanged"""
        ...

    @abstractmethod
    def list_for_reviewer(self, user_id: str) -> List[PullRequestShort]:
        """Pull requests where user_id is an assigned reviewer, newest first"""
        ...


def check_swap(snapshot: PullRequestSnapshot, old_reviewer_id: str, new_reviewer_id: str) -> None:
    """Write-time validation shared by store implementations"""
    if snapshot.is_merged:
        raise ConflictError("cannot reassign on merged PR", reason=ErrorCode.PR_MERGED)
    if old_reviewer_id not in snapshot.assigned_reviewers:
        raise ConflictError("reviewer is not assigned to this PR", reason=ErrorCode.NOT_ASSIGNED)
    if new_reviewer_id == old_reviewer_id or new_reviewer_id in snapshot.assigned_reviewers:
        raise ConflictError(
            f"reviewer {new_reviewer_id} was assigned concurrently, retry",
            reason=ErrorCode.STATE_CHANGED,
        )


def check_eligible(new_reviewer_id: str, is_eligible: Optional[Callable[[str], bool]]) -> None:
    if is_eligible is not None and not is_eligible(new_reviewer_id):
        raise ConflictError(
            f"reviewer {new_reviewer_id} is no longer eligible, retry",
            reason=ErrorCode.STATE_CHANGED,
        )


def swapped_reviewers(reviewers: Sequence[str], old_reviewer_id: str, new_reviewer_id: str) -> List[str]:
    """Remaining reviewers in order, replacement appended"""
    return [r for r in reviewers if r != old_reviewer_id] + [new_reviewer_id]


class InMemoryPullRequestStore(PullRequestStore):
    """
    In-process store with one lock per pull request

    The map lock only guards insertion and lookup of records; mutations of a
    single record happen under that record's own lock.
    """

    def __init__(self):
        self._map_lock = threading.Lock()
        self._records: Dict[str, PullRequestSnapshot] = {}
        self._record_locks: Dict[str, threading.Lock] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()

    def _lock_for(self, pull_request_id: str) -> threading.Lock:
        with self._map_lock:
            lock = self._record_locks.get(pull_request_id)
        if lock is None:
            raise NotFoundError(f"pull request {pull_request_id} not found")
        return lock

    def insert(self, pull_request_id, pull_request_name, author_id, reviewers):
        snapshot = PullRequestSnapshot(
            pull_request_id=pull_request_id,
            pull_request_name=pull_request_name,
            author_id=author_id,
            status=PullRequestStatus.OPEN,
            assigned_reviewers=list(reviewers),
            created_at=datetime.now(timezone.utc),
        )
        with self._map_lock:
            if pull_request_id in self._records:
                raise AlreadyExistsError(f"pull request {pull_request_id} already exists")
            self._records[pull_request_id] = snapshot
            self._record_locks[pull_request_id] = threading.Lock()
            self._sequence[pull_request_id] = next(self._counter)
        return snapshot.model_copy(deep=True)

    def get(self, pull_request_id):
        lock = self._lock_for(pull_request_id)
        with lock:
            return self._records[pull_request_id].model_copy(deep=True)

    def swap_reviewer(self, pull_request_id, old_reviewer_id, new_reviewer_id, is_eligible=None):
        lock = self._lock_for(pull_request_id)
        with lock:
            current = self._records[pull_request_id]
            check_swap(current, old_reviewer_id, new_reviewer_id)
            check_eligible(new_reviewer_id, is_eligible)
            updated = current.model_copy(update={
                "assigned_reviewers": swapped_reviewers(current.assigned_reviewers, old_reviewer_id, new_reviewer_id),
            })
            self._records[pull_request_id] = updated
            return updated.model_copy(deep=True)

    def set_merged(self, pull_request_id, merged_at):
        lock = self._lock_for(pull_request_id)
        with lock:
            current = self._records[pull_request_id]
            if current.is_merged:
                return current.model_copy(deep=True)
            updated = current.model_copy(update={"status": PullRequestStatus.MERGED, "merged_at": merged_at})
            self._records[pull_request_id] = updated
            return updated.model_copy(deep=True)

    def list_for_reviewer(self, user_id):
        with self._map_lock:
            ids = sorted(self._records, key=lambda pr_id: self._sequence[pr_id], reverse=True)
        result = []
        for pr_id in ids:
            snapshot = self.get(pr_id)
            if user_id in snapshot.assigned_reviewers:
                result.append(PullRequestShort(
                    pull_request_id=snapshot.pull_request_id,
                    pull_request_name=snapshot.pull_request_name,
                    author_id=snapshot.author_id,
                    status=snapshot.status,
                ))
        return result
