import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from learnify.db.init_db import create_all, drop_all
from learnify.db.session import get_db
from learnify.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
PASSWORD = "StrongPass123"


@pytest.fixture()
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test. StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory

    app.dependency_overrides.pop(get_db, None)
    await drop_all(engine)
    await engine.dispose()


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class Api:
    """Thin helpers over the HTTP API for multi-step scenarios."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def signup(
        self,
        email: str,
        role: str,
        display_name: Optional[str] = None,
        password: str = PASSWORD,
        **extra,
    ) -> dict:
        payload = {
            "email": email,
            "display_name": display_name or f"{email.split('@')[0].replace('.', ' ').title()} User",
            "password": password,
            "confirm_password": password,
            "role": role,
            **extra,
        }
        response = await self.client.post("/api/v1/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    async def login(self, email: str, password: str = PASSWORD) -> str:
        response = await self.client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["access_token"]

    async def register(self, email: str, role: str, **extra) -> Tuple[dict, str]:
        data = await self.signup(email, role, **extra)
        return data, await self.login(email)

    async def post(self, token: str, path: str, json: Optional[dict] = None):
        return await self.client.post(path, json=json, headers=auth(token))

    async def get(self, token: str, path: str, params: Optional[dict] = None):
        return await self.client.get(path, params=params, headers=auth(token))

    async def patch(self, token: str, path: str, json: dict):
        return await self.client.patch(path, json=json, headers=auth(token))

    async def delete(self, token: str, path: str, params: Optional[dict] = None):
        return await self.client.delete(path, params=params, headers=auth(token))

    async def route(self, token: str) -> str:
        response = await self.get(token, "/api/v1/auth/me/route")
        assert response.status_code == 200, response.text
        return response.json()["view"]

    async def create_school(self, token: str, name: str = "Greenfield Academy") -> dict:
        response = await self.post(
            token,
            "/api/v1/onboarding/school",
            {"name": name, "school_type": "Secondary", "country": "Kenya", "phone_number": "+254700000"},
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def add_subjects(self, token: str, subjects: List[dict]) -> dict:
        response = await self.post(token, "/api/v1/onboarding/subjects", {"subjects": subjects})
        assert response.status_code == 200, response.text
        return response.json()

    async def create_classes(self, token: str, classes: List[dict]) -> dict:
        response = await self.post(token, "/api/v1/onboarding/classes", {"classes": classes})
        assert response.status_code == 200, response.text
        return response.json()

    async def setup_school(self, email: str = "admin@example.com") -> dict:
        """Admin with a fully configured school: Math (compulsory), Art, and a main class Grade 1."""
        _, token = await self.register(email, "admin")
        school = await self.create_school(token)
        subjects = await self.add_subjects(
            token,
            [{"name": "Math", "is_compulsory": True}, {"name": "Art", "is_compulsory": False}],
        )
        classes = await self.create_classes(token, [{"name": "Grade 1", "class_type": "main"}])
        skip = await self.post(token, "/api/v1/onboarding/invitations/skip")
        assert skip.status_code == 200, skip.text
        done = await self.post(token, "/api/v1/onboarding/complete", {"is_exam_mode_active": False})
        assert done.status_code == 200, done.text
        by_name = {s["name"]: s["id"] for s in subjects["subjects"]}
        return {
            "token": token,
            "school_id": school["school_id"],
            "invite_code": school["invite_code"],
            "math_id": by_name["Math"],
            "art_id": by_name["Art"],
            "class": classes["classes"][0],
        }

    async def approved_member(self, admin_token: str, invite_code: str, email: str, role: str = "student") -> Tuple[dict, str]:
        data, token = await self.register(email, role, invite_code=invite_code)
        response = await self.post(admin_token, f"/api/v1/members/{data['user']['id']}/approve")
        assert response.status_code == 200, response.text
        return data, token


@pytest.fixture()
def api(client: AsyncClient) -> Api:
    return Api(client)
