import asyncio
import random

import asyncpg
import httpx
import pytest

from _helper import (
    TEST_DATABASE_URL,
    InMemoryOrderRepository,
    InMemoryPizzaRepository,
    InMemoryUserRepository,
    ManualScheduler,
)
from pizzeria.db import Database
from pizzeria.delivery import DeliverySimulator
from pizzeria.deps import (
    get_delivery_simulator,
    get_order_repository,
    get_pizza_repository,
    get_user_repository,
)
from pizzeria.main import app


@pytest.fixture
def order_repo():
    return InMemoryOrderRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def pizza_repo():
    return InMemoryPizzaRepository()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def sent_events():
    return []


@pytest.fixture
def simulator(scheduler, sent_events):
    async def send(payload: dict) -> int:
        sent_events.append(payload)
        return 200

    return DeliverySimulator(scheduler, send, status="delivered", min_delay=5, max_delay=11, rng=random.Random(7))


@pytest.fixture
def test_app(order_repo, user_repo, pizza_repo, simulator):
    app.dependency_overrides[get_order_repository] = lambda: order_repo
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_pizza_repository] = lambda: pizza_repo
    app.dependency_overrides[get_delivery_simulator] = lambda: simulator
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app):
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def alice(user_repo):
    return await user_repo.create(name="Alice", email="alice@example.com", password_hash="x", address="1 Main St")


@pytest.fixture
async def bob(user_repo):
    return await user_repo.create(name="Bob", email="bob@example.com", password_hash="x", address="2 Side St")


@pytest.fixture
async def admin(user_repo):
    return await user_repo.create(name="Admin", email="admin@example.com", password_hash="x", role="admin")


@pytest.fixture
async def db():
    """Fresh schema on a real Postgres; skipped when TEST_DATABASE_URL is unreachable."""
    database = Database(TEST_DATABASE_URL, min_size=1, max_size=5)
    try:
        await asyncio.wait_for(database.connect(), timeout=5)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"Postgres not available at {TEST_DATABASE_URL}: {e}")
    await database.drop_schema()
    await database.init_schema()
    try:
        yield database
    finally:
        await database.drop_schema()
        await database.close()
