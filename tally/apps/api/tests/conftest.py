"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

# Must be set before tally_api modules are imported
os.environ.setdefault("TOKEN_PEPPER_V1", "test-pepper-v1-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TALLY_TIMEZONE", "UTC")
os.environ["RESEND_API_KEY"] = ""

from datetime import timedelta
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tally_api.auth.passwords import hash_password
from tally_api.auth.token_lifecycle import generate_session_token, hash_token
from tally_api.db.models import AuthSession, Base, Organization, Project, ProjectMember, User
from tally_api.db.session import get_db
from tally_api.enums import OrgRole, ProjectRole
from tally_api.main import app
from tally_api.utils.timeutil import utcnow

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh in-memory SQLite database for each test.

    StaticPool keeps a single connection so the TestClient thread sees the
    same database as the test body.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def test_client(db_session: Session):
    """TestClient with db_session dependency override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory: persist a user with TEST_PASSWORD."""

    def _make(email: str, name: Optional[str] = None) -> User:
        user = User(name=name or email.split("@")[0].title(), email=email, password_hash=hash_password(TEST_PASSWORD))
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(db_session: Session) -> Callable[[User], dict[str, str]]:
    """Factory: open a session for a user and return its Authorization header."""

    def _headers(user: User) -> dict[str, str]:
        raw_token, _ = generate_session_token()
        db_session.add(
            AuthSession(
                user_id=user.id,
                token_hash=hash_token(raw_token),
                pepper_version=1,
                expires_at=utcnow() + timedelta(hours=1),
            )
        )
        db_session.commit()
        return {"Authorization": f"Bearer {raw_token}"}

    return _headers


@pytest.fixture
def make_org(db_session: Session) -> Callable[..., Organization]:
    """Factory: organization owned by `owner`, with optional extra members.

    members: list of (user, role) tuples.
    """

    def _make(owner: User, name: str = "Acme", members: Optional[list[tuple[User, str]]] = None) -> Organization:
        org = Organization(name=name, owner_id=owner.id)
        db_session.add(org)
        db_session.flush()
        owner.organization_id = org.id
        owner.org_role = OrgRole.OWNER.value
        for user, role in members or []:
            user.organization_id = org.id
            user.org_role = role
        db_session.commit()
        db_session.refresh(org)
        return org

    return _make


@pytest.fixture
def make_project(db_session: Session) -> Callable[..., Project]:
    """Factory: project owned by `owner` (inherits the owner's organization)."""

    def _make(owner: User, name: str = "Alpha", organization_id: Optional[str] = None, **fields) -> Project:
        project = Project(
            name=name,
            owner_id=owner.id,
            organization_id=organization_id if organization_id is not None else owner.organization_id,
            **fields,
        )
        db_session.add(project)
        db_session.flush()
        db_session.add(ProjectMember(user_id=owner.id, project_id=project.id, role=ProjectRole.OWNER.value))
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def add_project_member(db_session: Session) -> Callable[[Project, User], ProjectMember]:
    def _add(project: Project, user: User) -> ProjectMember:
        member = ProjectMember(user_id=user.id, project_id=project.id, role=ProjectRole.MEMBER.value)
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)
        return member

    return _add
