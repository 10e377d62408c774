"""
FastAPI dependencies wiring the workflow engine to a request-scoped session
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from rv_service.core.database import get_db
from rv_service.services.pull_request_service import PullRequestService
from rv_service.services.review_workflow import ReviewWorkflowEngine
from rv_service.services.team_service import TeamService


def get_workflow_engine(db: Session = Depends(get_db)) -> ReviewWorkflowEngine:
    """One engine per request, sharing the request's session between store and directory"""
    return ReviewWorkflowEngine(store=PullRequestService(db), directory=TeamService(db))
