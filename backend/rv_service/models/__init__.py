"""
SQLAlchemy models
"""
from rv_service.core.database import Base  # noqa: F401
from rv_service.models.pull_request import (PullRequest,  # noqa: F401
                                            PullRequestReviewer,
                                            PullRequestStatus)
# Import all models here so metadata.create_all can see them
from rv_service.models.team import Team, User  # noqa: F401
