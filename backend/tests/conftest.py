import os
import warnings
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

# Set environment variables BEFORE importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///file:giftlink_tests?mode=memory&cache=shared&uri=true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-32-chars-minimum!!"
os.environ["ENVIRONMENT"] = "test"

warnings.filterwarnings("ignore", category=DeprecationWarning)

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.rate_limit import limiter
from app.core.security import create_access_token
from app.db.session import Base, enable_sqlite_foreign_keys, get_db
from app.main import app
from app.models import models as models_module


def pytest_configure(config):
    warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "giftlink-test.db"
    _ = models_module
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def sync_engine(db_path):
    """Direct access to the test database, bypassing the API."""
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    engine.sync_engine.dispose()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class Actor:
    """An identity-provider subject with ready-made auth headers."""

    def __init__(self, actor_id: UUID | None = None):
        self.id = actor_id or uuid4()
        self.headers = {"Authorization": f"Bearer {create_access_token(self.id)}"}


def make_profile(client: TestClient, actor: Actor, username: str | None = None) -> dict:
    username = username or f"user_{actor.id.hex[:10]}"
    res = client.post(
        "/profiles",
        json={"username": username, "full_name": "Test User"},
        headers=actor.headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def make_wishlist(client: TestClient, actor: Actor, **kwargs) -> dict:
    payload = {"name": "Birthday", **kwargs}
    res = client.post("/wishlists", json=payload, headers=actor.headers)
    assert res.status_code == 201, res.text
    return res.json()


def make_item(client: TestClient, actor: Actor, wishlist_id: str, **kwargs) -> dict:
    payload = {"name": "Headphones", **kwargs}
    res = client.post(f"/wishlists/{wishlist_id}/items", json=payload, headers=actor.headers)
    assert res.status_code == 201, res.text
    return res.json()


def make_share(client: TestClient, actor: Actor, wishlist_id: str, **kwargs) -> dict:
    res = client.post("/shares", json={"wishlist_id": wishlist_id, **kwargs}, headers=actor.headers)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
def owner(client) -> Actor:
    actor = Actor()
    make_profile(client, actor)
    return actor


@pytest.fixture
def viewer() -> Actor:
    return Actor()


@pytest.fixture
def other_viewer() -> Actor:
    return Actor()
