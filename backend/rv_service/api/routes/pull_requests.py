"""
API routes for pull requests
"""
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from rv_service.api.dependencies import get_workflow_engine
from rv_service.core.logging_config import LoggingConfig
from rv_service.services.review_workflow import ReviewWorkflowEngine

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/pullRequest", tags=["pull-requests"])


# Request models
class CreatePullRequestRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    pull_request_name: str = Field(..., min_length=1)
    author_id: str = Field(..., min_length=1)


class MergePullRequestRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)


class ReassignReviewerRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    old_reviewer_id: str = Field(..., min_length=1)


@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_pull_request(
    request: CreatePullRequestRequest,
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Create a pull request and assign up to two reviewers from the author's team"""
    pr = engine.create_pull_request(request.pull_request_id, request.pull_request_name, request.author_id)
    return {"pr": pr.model_dump(mode="json")}


@router.post("/merge")
def merge_pull_request(
    request: MergePullRequestRequest,
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Mark a pull request as MERGED; repeating the call returns the same result"""
    pr = engine.merge_pull_request(request.pull_request_id)
    return {"pr": pr.model_dump(mode="json")}


@router.post("/reassign")
def reassign_reviewer(
    request: ReassignReviewerRequest,
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Replace a reviewer with another active member of the author's team"""
    result = engine.reassign_reviewer(request.pull_request_id, request.old_reviewer_id)
    return result.model_dump(mode="json")
