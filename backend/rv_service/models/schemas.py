"""
Pydantic snapshots exchanged between the engine, its storage and the request layer
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rv_service.models.pull_request import PullRequestStatus


# ── Directory ────────────────────────────────────────────────────────────────


class TeamMember(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)
    is_active: bool = True


class TeamInfo(BaseModel):
    team_name: str = Field(..., min_length=1)
    members: List[TeamMember] = Field(default_factory=list)

    @field_validator("members")
    @classmethod
    def unique_members(cls, members: List[TeamMember]) -> List[TeamMember]:
        seen = set()
        for member in members:
            if member.user_id in seen:
                raise ValueError(f"duplicate member user_id: {member.user_id}")
            seen.add(member.user_id)
        return members


class UserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    user_name: str
    team_name: str
    is_active: bool


# ── Pull requests ────────────────────────────────────────────────────────────


class PullRequestSnapshot(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PullRequestStatus = PullRequestStatus.OPEN
    assigned_reviewers: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None

    @property
    def is_merged(self) -> bool:
        return self.status == PullRequestStatus.MERGED


class PullRequestShort(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PullRequestStatus


class ReassignResult(BaseModel):
    pr: PullRequestSnapshot
    replaced_by: str


class UserReviews(BaseModel):
    user_id: str
    pull_requests: List[PullRequestShort] = Field(default_factory=list)
