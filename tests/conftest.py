"""
Pytest configuration and fixtures.
Provides test database, client, and common test utilities.
"""

import asyncio
import json
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DISABLE_BOOTSTRAP_USERS", "true")

from datetime import datetime, timezone
from typing import Callable, Generator, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.session import get_session
from app.main import app
from app.models.user import Department, User, UserRole
from app.schemas.user import UserCreate
from app.services.user_service import UserService
from app.ui import state as ui_state
from app.ui.client import DirectoryClient


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(name="session")
def session_fixture() -> Generator[Session, None, None]:
    """
    Create a test database session.
    Uses an in-memory SQLite database for fast tests.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with dependency overrides.
    """

    def get_session_override() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    ui_state.clear_view()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session) -> Callable[..., User]:
    """
    Factory inserting a user row directly, with control over timestamps.
    """
    counter = {"n": 0}

    def _make_user(
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
        role: UserRole = UserRole.MEMBER,
        department: Optional[Department] = Department.ENGINEERING,
        created_at: Optional[datetime] = None,
        deleted_at: Optional[datetime] = None,
    ) -> User:
        counter["n"] += 1
        created = created_at or datetime(2024, 1, counter["n"], tzinfo=timezone.utc)
        user = User(
            id=user_id,
            email=email or f"user{counter['n']}@example.com",
            name=name,
            hashed_password=get_password_hash("password123"),
            role=role,
            department=department,
            created_at=created,
            updated_at=created,
            deleted_at=deleted_at,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture(name="test_user")
def test_user_fixture(session: Session) -> User:
    """
    Create a test member.
    """
    user_create = UserCreate(
        email="test@example.com",
        password="testpassword123",
        name="Test User",
    )
    return UserService.create(session, user_create)


@pytest.fixture(name="test_admin")
def test_admin_fixture(session: Session) -> User:
    """
    Create a test admin user.
    """
    user_create = UserCreate(
        email="admin@example.com",
        password="adminpassword123",
        name="Admin User",
    )
    return UserService.create(session, user_create, role=UserRole.ADMIN)


@pytest.fixture(name="user_token")
def user_token_fixture(client: TestClient, test_user: User) -> str:
    """
    Get an access token for a regular user.
    """
    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        data={
            "username": "test@example.com",
            "password": "testpassword123",
        },
    )
    assert response.status_code == 200
    client.cookies.clear()
    return response.json()["access_token"]


@pytest.fixture(name="admin_token")
def admin_token_fixture(client: TestClient, test_admin: User) -> str:
    """
    Get an access token for an admin user.
    """
    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        data={
            "username": "admin@example.com",
            "password": "adminpassword123",
        },
    )
    assert response.status_code == 200
    client.cookies.clear()
    return response.json()["access_token"]


class FakeDirectoryApi:
    """
    In-memory stand-in for the JSON API, served through httpx.MockTransport.
    Set ``patch_gate`` to hold PATCH responses until the event is set.
    """

    def __init__(self) -> None:
        self.principal: Optional[dict] = {"id": 1, "role": "admin"}
        self.users: list[dict] = [
            {
                "id": 2,
                "name": "Grace Hopper",
                "email": "grace@example.com",
                "role": "member",
                "department": "Sales",
                "created_at": "2024-03-02T00:00:00",
            },
            {
                "id": 1,
                "name": None,
                "email": "root@example.com",
                "role": "admin",
                "department": None,
                "created_at": "2024-03-01T00:00:00",
            },
        ]
        self.me_status = 200
        self.users_status = 200
        self.patch_status = 200
        self.patches: list[tuple[int, dict]] = []
        self.patch_gate: Optional[asyncio.Event] = None
        self.patch_started = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path == "/api/auth/me":
            if self.principal is None:
                return httpx.Response(401, json={"detail": "Not authenticated"})
            if self.me_status != 200:
                return httpx.Response(self.me_status, json={"detail": "Failed to fetch user"})
            return httpx.Response(200, json=self.principal)

        if path == "/api/users" and request.method == "GET":
            if self.users_status != 200:
                return httpx.Response(self.users_status, json={"detail": "Failed to fetch users"})
            return httpx.Response(200, json=self.users)

        if path.startswith("/api/users/") and request.method == "PATCH":
            user_id = int(path.rsplit("/", 1)[1])
            self.patch_started.set()
            if self.patch_gate is not None:
                await self.patch_gate.wait()
            if self.patch_status != 200:
                return httpx.Response(self.patch_status, json={"detail": "Failed to update user"})
            body = json.loads(request.content)
            self.patches.append((user_id, body))
            for user in self.users:
                if user["id"] == user_id:
                    user.update(body)
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, json={"detail": "Not Found"})

    def client(self) -> DirectoryClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self), base_url="http://testserver")
        return DirectoryClient(http, api_prefix="/api")


@pytest.fixture(name="directory_api")
def directory_api_fixture() -> FakeDirectoryApi:
    return FakeDirectoryApi()
