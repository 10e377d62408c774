"""
Reviewer assignment policy

Pure decision logic: candidate pools arrive already filtered to active
members of the author's team and sorted in canonical order (ascending user id).
"""
from typing import Iterable, List, Sequence

from rv_service.core.errors import ConflictError, ErrorCode

MAX_INITIAL_REVIEWERS = 2


class NoCandidateError(ConflictError):
    """No eligible reviewer left in the candidate pool"""

    def __init__(self, message: str = "no active replacement candidate in team"):
        super().__init__(message, reason=ErrorCode.NO_CANDIDATE)


def canonical_order(user_ids: Iterable[str]) -> List[str]:
    """Deduplicated ascending order used for deterministic selection"""
    return sorted(set(user_ids))


def select_initial_reviewers(author_id: str, candidate_pool: Sequence[str]) -> List[str]:
    """
    Choose the first reviewers for a new pull request

    Args:
        author_id: Pull request author, never selected
        candidate_pool: Eligible user ids in canonical order

    Returns:
        Up to MAX_INITIAL_REVIEWERS user ids, in pool order

    Raises:
        NoCandidateError: If the pool holds nobody but the author
    """
    selected: List[str] = []
    for user_id in candidate_pool:
        if user_id == author_id or user_id in selected:
            continue
        selected.append(user_id)
        if len(selected) == MAX_INITIAL_REVIEWERS:
            break

    if not selected:
        raise NoCandidateError("no active team members to assign as reviewers")
    return selected


def select_replacement(
    old_reviewer_id: str,
    current_reviewers: Iterable[str],
    candidate_pool: Sequence[str],
) -> str:
    """
    Pick the reviewer that takes over from old_reviewer_id

    The first candidate, in pool order, that is neither the outgoing reviewer
    nor already assigned. Keeps the reviewer set free of duplicates and its
    size unchanged.

    Raises:
        NoCandidateError: If every candidate is excluded
    """
    excluded = set(current_reviewers)
    excluded.add(old_reviewer_id)
    for user_id in candidate_pool:
        if user_id not in excluded:
            return user_id
    raise NoCandidateError()
