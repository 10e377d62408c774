"""
Directory contract: teams, users and reviewer eligibility
"""
import threading
from abc import ABC, abstractmethod
from typing import Dict, List

from rv_service.core.errors import ConflictError, ErrorCode, NotFoundError
from rv_service.core.logging_config import LoggingConfig
from rv_service.models.schemas import TeamInfo, TeamMember, UserInfo

logger = LoggingConfig.get_logger(__name__)


class Directory(ABC):
    """Membership and activity queries used for reviewer eligibility"""

    @abstractmethod
    def active_members_excluding(self, user_id: str) -> List[str]:
        """Active members of user_id's team other than user_id, ascending by user id"""
        ...

    @abstractmethod
    def author_exists(self, user_id: str) -> bool:
        ...

    @abstractmethod
    def user_exists(self, user_id: str) -> bool:
        ...

    @abstractmethod
    def save_or_merge_team(self, team: TeamInfo) -> bool:
        """
        Create the team or merge members into it

        Returns:
            True if the team was created, False if an existing team was updated

        Raises:
            ConflictError: TEAM_EXISTS when nothing is new or changed
        """
        ...

    @abstractmethod
    def get_team(self, team_name: str) -> TeamInfo:
        ...

    @abstractmethod
    def set_user_active(self, user_id: str, is_active: bool) -> UserInfo:
        ...


def member_changes(team_name: str, members: List[TeamMember], existing: Dict[str, UserInfo]) -> List[TeamMember]:
    """Members that are new to team_name or whose stored attributes differ"""
    changed = []
    for member in members:
        current = existing.get(member.user_id)
        if (
            current is None
            or current.team_name != team_name
            or current.user_name != member.user_name
            or current.is_active != member.is_active
        ):
            changed.append(member)
    return changed


class InMemoryDirectory(Directory):
    """In-process directory guarded by a single lock"""

    def __init__(self):
        self._lock = threading.RLock()
        self._teams: set = set()
        self._users: Dict[str, UserInfo] = {}

    def active_members_excluding(self, user_id: str) -> List[str]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return []
            return sorted(
                u.user_id for u in self._users.values()
                if u.team_name == user.team_name and u.is_active and u.user_id != user_id
            )

    def author_exists(self, user_id: str) -> bool:
        return self.user_exists(user_id)

    def user_exists(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._users

    def save_or_merge_team(self, team: TeamInfo) -> bool:
        with self._lock:
            exists = team.team_name in self._teams
            changed = member_changes(team.team_name, team.members, self._users)

            if exists and not changed:
                raise ConflictError(
                    f"team {team.team_name} already exists with same members",
                    reason=ErrorCode.TEAM_EXISTS,
                )

            self._teams.add(team.team_name)
            for member in changed:
                self._users[member.user_id] = UserInfo(
                    user_id=member.user_id,
                    user_name=member.user_name,
                    team_name=team.team_name,
                    is_active=member.is_active,
                )

        logger.info(
            "Team saved",
            extra={"team_name": team.team_name, "team_created": not exists, "changed_members": len(changed)},
        )
        return not exists

    def get_team(self, team_name: str) -> TeamInfo:
        with self._lock:
            if team_name not in self._teams:
                raise NotFoundError(f"team {team_name} not found", code=ErrorCode.TEAM_NOT_FOUND)
            members = [
                TeamMember(user_id=u.user_id, user_name=u.user_name, is_active=u.is_active)
                for u in sorted(self._users.values(), key=lambda u: u.user_id)
                if u.team_name == team_name
            ]
        return TeamInfo(team_name=team_name, members=members)

    def set_user_active(self, user_id: str, is_active: bool) -> UserInfo:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError(f"user {user_id} not found", code=ErrorCode.USER_NOT_FOUND)
            user = user.model_copy(update={"is_active": is_active})
            self._users[user_id] = user
        logger.info("User activity changed", extra={"user_id": user_id, "is_active": is_active})
        return user
