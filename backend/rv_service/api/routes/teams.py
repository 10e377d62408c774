"""
API routes for teams
"""
from fastapi import APIRouter, Depends, Query, Response, status

from rv_service.api.dependencies import get_workflow_engine
from rv_service.core.logging_config import LoggingConfig
from rv_service.models.schemas import TeamInfo
from rv_service.services.review_workflow import ReviewWorkflowEngine

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/team", tags=["teams"])


@router.post("/add", status_code=status.HTTP_201_CREATED)
def add_team(
    request: TeamInfo,
    response: Response,
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """
    Create a team, or merge new and changed members into an existing one.

    Returns 201 for a new team and 200 for an update.
    """
    logger.info(f"Saving team {request.team_name}", extra={"team_name": request.team_name})
    created, team = engine.save_team(request)
    if not created:
        response.status_code = status.HTTP_200_OK
    return {"team": team.model_dump()}


@router.get("/get")
def get_team(
    team_name: str = Query(..., min_length=1, description="Team name"),
    engine: ReviewWorkflowEngine = Depends(get_workflow_engine),
):
    """Get a team with its members ordered by user id"""
    return engine.get_team(team_name).model_dump()
