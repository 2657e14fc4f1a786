"""
Shared fixtures for server tests: an on-disk SQLite database per test and an
HTTP client bound to an app that uses it.
"""

import os

os.environ.setdefault("JWT_SECRET", "tmember-test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.database import Database, DatabaseConfig
from app.main import create_app

DEFAULT_PASSWORD = "Sup3rSecretPass"


@pytest.fixture
async def database(tmp_path):
    db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'tmember.db'}"))
    await db.initialize()
    await db.migrate()
    yield db
    await db.close()


@pytest.fixture
async def client(database):
    app = create_app(database=database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register_user(client):
    """Factory: register a user over the API and return auth material."""

    async def _register(email: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = await client.post(
            "/api/auth/register", json={"email": email, "password": password}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return {
            "user": data["user"],
            "token": data["token"],
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _register


@pytest.fixture
async def alice(register_user):
    return await register_user("alice@example.com")


@pytest.fixture
async def bob(register_user):
    return await register_user("bob@example.com")
