"""
Team and User models
A user belongs to exactly one team; activity gates reviewer eligibility
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from rv_service.core.database import Base


class Team(Base):
    """Team of users that review each other's pull requests"""
    __tablename__ = "teams"

    team_name = Column(String(255), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    members = relationship(
        "User",
        back_populates="team",
        order_by="User.user_id",
    )

    def __repr__(self):
        return f"<Team(team_name={self.team_name})>"


class User(Base):
    """User / team member"""
    __tablename__ = "users"

    user_id = Column(String(255), primary_key=True)
    user_name = Column(String(255), nullable=False)
    team_name = Column(String(255), ForeignKey("teams.team_name"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    team = relationship("Team", back_populates="members")

    def __repr__(self):
        return f"<User(user_id={self.user_id}, team={self.team_name}, active={self.is_active})>"
