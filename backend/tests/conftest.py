"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Tests run against an in-memory SQLite database unless told otherwise
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import pytest
from sqlalchemy.orm import Session, sessionmaker

from rv_service.core.database import build_engine, get_db, init_db
from rv_service.models.schemas import TeamInfo, TeamMember
from rv_service.services.directory import InMemoryDirectory
from rv_service.services.pull_request_service import PullRequestService
from rv_service.services.pull_request_store import InMemoryPullRequestStore
from rv_service.services.review_workflow import ReviewWorkflowEngine
from rv_service.services.team_service import TeamService


@pytest.fixture(scope="function")
def sql_engine():
    """Fresh in-memory database with the schema created"""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(sql_engine):
    return sessionmaker(bind=sql_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    """Create a database session for testing"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def team_service(db):
    return TeamService(db)


@pytest.fixture
def pr_service(db):
    return PullRequestService(db)


@pytest.fixture
def sql_workflow(team_service, pr_service):
    return ReviewWorkflowEngine(store=pr_service, directory=team_service)


@pytest.fixture
def memory_workflow():
    return ReviewWorkflowEngine(store=InMemoryPullRequestStore(), directory=InMemoryDirectory())


@pytest.fixture(params=["memory", "sql"])
def workflow(request):
    """Engine over each storage backend"""
    if request.param == "memory":
        return request.getfixturevalue("memory_workflow")
    return request.getfixturevalue("sql_workflow")


def _build_team(team_name, *members):
    """
    Build a TeamInfo from (user_id, is_active) pairs or bare user ids
    """
    built = []
    for member in members:
        user_id, is_active = member if isinstance(member, tuple) else (member, True)
        built.append(TeamMember(user_id=user_id, user_name=user_id.capitalize(), is_active=is_active))
    return TeamInfo(team_name=team_name, members=built)


@pytest.fixture
def make_team():
    return _build_team


@pytest.fixture
def backend_team(workflow):
    """Team `backend` with active alice, bob and carol"""
    workflow.save_team(_build_team("backend", "alice", "bob", "carol"))
    return workflow


@pytest.fixture(scope="function")
def client(session_factory):
    """Create test client with database dependency override"""
    from fastapi.testclient import TestClient

    from rv_service.main import create_app

    app = create_app(init_database=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
