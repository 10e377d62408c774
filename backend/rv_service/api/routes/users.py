"""
API routes for users
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from rv_service.api.dependencies import get_workflow_engine
from rv_service.services.review_workflow import ReviewWorkflowEngine

router = APIRouter(prefix="/users", tags=["users"])


class SetIsActiveRequest(BaseModel):
    """Activity toggle request"""
    user_id: str = Field(..., min_length=1)
    is_active: bool


@router.post("/setIsActive")
def set_is_active(
    request: SetIsActiveRequest,
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Activate or deactivate a user for future reviewer assignments"""
    user = engine.set_user_active(request.user_id, request.is_active)
    return {"user": user.model_dump()}


@router.get("/getReview")
def get_review(
    user_id: str = Query(..., min_length=1, description="Reviewer user id"),
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Pull requests where the user is an assigned reviewer"""
    return engine.get_user_reviews(user_id).model_dump(mode="json")
