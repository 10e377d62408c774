"""
Pull request model and its reviewer edges
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Integer,
                        String)
from sqlalchemy.orm import relationship

from rv_service.core.database import Base


class PullRequestStatus(str, Enum):
    """Pull request lifecycle states"""
    OPEN = "OPEN"
    MERGED = "MERGED"  # terminal


class PullRequest(Base):
    """Pull request with an ordered set of assigned reviewers"""
    __tablename__ = "pull_requests"
    __table_args__ = (
        CheckConstraint("status IN ('OPEN', 'MERGED')", name="ck_pull_requests_status"),
    )

    pull_request_id = Column(String(255), primary_key=True)
    pull_request_name = Column(String(255), nullable=False)
    author_id = Column(String(255), ForeignKey("users.user_id"), nullable=False, index=True)
    status = Column(String(10), nullable=False, default=PullRequestStatus.OPEN.value)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    merged_at = Column(DateTime(timezone=True), nullable=True)

    reviewers = relationship(
        "PullRequestReviewer",
        back_populates="pull_request",
        order_by="PullRequestReviewer.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<PullRequest(id={self.pull_request_id}, status={self.status})>"


class PullRequestReviewer(Base):
    """Reviewer edge; position keeps assignment order"""
    __tablename__ = "pull_requests_reviewers"

    pull_request_id = Column(String(255), ForeignKey("pull_requests.pull_request_id"), primary_key=True)
    user_id = Column(String(255), ForeignKey("users.user_id"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)
    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    pull_request = relationship("PullRequest", back_populates="reviewers")

    def __repr__(self):
        return f"<PullRequestReviewer(pr={self.pull_request_id}, user={self.user_id}, position={self.position})>"
