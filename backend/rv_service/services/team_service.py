"""
Team Service: SQLAlchemy-backed directory of teams and users
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rv_service.core.errors import (ConflictError, ErrorCode, InternalError,
                                    NotFoundError)
from rv_service.core.logging_config import LoggingConfig
from rv_service.models.schemas import TeamInfo, TeamMember, UserInfo
from rv_service.models.team import Team, User
from rv_service.services.directory import Directory, member_changes

logger = LoggingConfig.get_logger(__name__)


class TeamService(Directory):
    """Service for managing teams and their members"""

    def __init__(self, db: Session):
        """
        Initialize Team Service

        Args:
            db: Database session
        """
        self.db = db

    def active_members_excluding(self, user_id: str) -> List[str]:
        """
        Get active members of the user's team, excluding the user

        Args:
            user_id: Author or reference user

        Returns:
            User ids in ascending order (empty if the user is unknown)
        """
        team_of_user = select(User.team_name).where(User.user_id == user_id).scalar_subquery()
        stmt = (
            select(User.user_id)
            .where(
                User.team_name == team_of_user,
                User.is_active.is_(True),
                User.user_id != user_id,
            )
            .order_by(User.user_id)
        )
        try:
            return list(self.db.execute(stmt).scalars())
        except SQLAlchemyError as e:
            logger.error(f"Failed to read team members for {user_id}: {e}", exc_info=True)
            raise InternalError("failed to get team members") from e

    def author_exists(self, user_id: str) -> bool:
        return self.user_exists(user_id)

    def user_exists(self, user_id: str) -> bool:
        try:
            return self.db.get(User, user_id) is not None
        except SQLAlchemyError as e:
            raise InternalError("failed to check user") from e

    def save_or_merge_team(self, team: TeamInfo) -> bool:
        """
        Create a team or merge new and changed members into it

        The whole save runs in one transaction; a member whose user id
        already belongs to another team is moved to this one.

        Returns:
            True if the team was created

        Raises:
            ConflictError: TEAM_EXISTS when the member set is already present and unchanged
        """
        try:
            existing_team = self.db.execute(
                select(Team).where(Team.team_name == team.team_name).with_for_update()
            ).scalar_one_or_none()
            created = existing_team is None

            ids = [m.user_id for m in team.members]
            existing_users = {}
            if ids:
                for user in self.db.execute(select(User).where(User.user_id.in_(ids))).scalars():
                    existing_users[user.user_id] = UserInfo.model_validate(user)

            changed = member_changes(team.team_name, team.members, existing_users)
            if not created and not changed:
                self.db.rollback()
                raise ConflictError(
                    f"team {team.team_name} already exists with same members",
                    reason=ErrorCode.TEAM_EXISTS,
                )

            if created:
                self.db.add(Team(team_name=team.team_name))
                self.db.flush()

            for member in changed:
                user = self.db.get(User, member.user_id)
                if user is None:
                    self.db.add(User(
                        user_id=member.user_id,
                        user_name=member.user_name,
                        team_name=team.team_name,
                        is_active=member.is_active,
                    ))
                else:
                    user.user_name = member.user_name
                    user.team_name = team.team_name
                    user.is_active = member.is_active

            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent save of team {team.team_name}: {e}")
            raise ConflictError(f"team {team.team_name} changed concurrently, retry", reason=ErrorCode.STATE_CHANGED) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save team {team.team_name}: {e}", exc_info=True)
            raise InternalError("failed to save team") from e

        logger.info(
            f"Saved team: {team.team_name}",
            extra={"team_name": team.team_name, "team_created": created, "changed_members": len(changed)},
        )
        return created

    def get_team(self, team_name: str) -> TeamInfo:
        """
        Get team by name

        Raises:
            NotFoundError: TEAM_NOT_FOUND
        """
        try:
            team = self.db.get(Team, team_name)
            if team is None:
                raise NotFoundError(f"team {team_name} not found", code=ErrorCode.TEAM_NOT_FOUND)
            members = self.db.execute(
                select(User).where(User.team_name == team_name).order_by(User.user_id)
            ).scalars()
            return TeamInfo(
                team_name=team.team_name,
                members=[TeamMember.model_validate(m) for m in members],
            )
        except SQLAlchemyError as e:
            raise InternalError("failed to get team") from e

    def set_user_active(self, user_id: str, is_active: bool) -> UserInfo:
        """
        Change a user's activity flag

        Existing reviewer assignments are kept; only future eligibility changes.

        Raises:
            NotFoundError: USER_NOT_FOUND
        """
        try:
            user = self.db.get(User, user_id, with_for_update=True)
            if user is None:
                self.db.rollback()
                raise NotFoundError(f"user {user_id} not found", code=ErrorCode.USER_NOT_FOUND)
            user.is_active = is_active
            self.db.commit()
            info = UserInfo.model_validate(user)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update user {user_id}: {e}", exc_info=True)
            raise InternalError("failed to update user") from e

        logger.info(f"Updated user {user_id} is_active={is_active}")
        return info
