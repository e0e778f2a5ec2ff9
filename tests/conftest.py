"""
Storefront test fixtures

The app runs in-process over httpx's ASGI transport against a throwaway
SQLite file (aiosqlite) and a fakeredis server. Celery dispatch is replaced
by a recorder so no broker is needed.
"""
import os
import tempfile

# Must be set before any storefront module reads get_settings()
_DB_PATH = os.path.join(tempfile.gettempdir(), f"storefront-test-{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["METRICS_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["OAUTH_CLIENT_ID"] = "test-client"
os.environ["PUBLIC_BASE_URL"] = "http://test"

import fakeredis
import httpx
import pytest
import pytest_asyncio

from storefront.core.celery_app import celery_app
from storefront.core.redis_client import set_redis
from storefront.db.database import Base, SessionLocal, engine
from storefront.main import app
from storefront.models import MenuItem, Profile, Role, User
from storefront.services.identity import issue_session


# ─── Infrastructure ────────────────────────────────────────────────────────────
@pytest_asyncio.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture(autouse=True)
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)
    await client.aclose()


@pytest.fixture(autouse=True)
def sent_tasks(monkeypatch):
    """Every send_task call as (task name, args)."""
    calls: list[tuple[str, list]] = []

    def record(name, args=None, **kwargs):
        calls.append((name, list(args or [])))

    monkeypatch.setattr(celery_app, "send_task", record)
    return calls


@pytest_asyncio.fixture
async def db():
    async with SessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ─── Factories ─────────────────────────────────────────────────────────────────
async def make_profile(
    db,
    role: Role = Role.CUSTOMER,
    *,
    name: str | None = None,
    storename: str | None = None,
    storenumber: str | None = None,
    customernumber: str | None = None,
    email: str | None = None,
) -> Profile:
    user = User(email=email)
    db.add(user)
    await db.flush()
    profile = Profile(
        profile_id=user.id,
        email=email,
        role=role,
        name=name,
        storename=storename,
        storenumber=storenumber,
        customernumber=customernumber,
    )
    db.add(profile)
    await db.commit()
    return profile


async def make_store(db, name: str = "burger-house", storename: str = "버거하우스") -> Profile:
    return await make_profile(
        db, Role.OWNER, name=name, storename=storename, storenumber="02-123-4567",
        email=f"{name}@example.com",
    )


async def make_menu_item(
    db, store: Profile, name: str, price: int, *, category: str = "", is_active: bool = True,
    display_order: int = 0,
) -> MenuItem:
    item = MenuItem(
        profile_id=store.profile_id,
        name=name,
        price=price,
        image=f"https://img.example.com/{name}.png",
        category=category,
        is_active=is_active,
        display_order=display_order,
    )
    db.add(item)
    await db.commit()
    return item


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session(profile.profile_id, profile.role)}"}


def cart_line(item: MenuItem, quantity: int = 1) -> dict:
    return {"id": item.id, "name": item.name, "price": item.price, "quantity": quantity}
