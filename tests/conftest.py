"""
Shared test setup.

Environment is pinned before copydesk is imported: in-memory SQLite and no
external credentials, so the model, search and Stripe collaborators all
run in their unconfigured modes.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OPENAI_API_KEY"] = ""
os.environ["BRAVE_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["RESEARCH_FETCH_ENABLED"] = "false"

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from copydesk.db import Account, init_db, drop_db, async_session_maker, engine
from copydesk.services.account_service import generate_token, new_user_state


@pytest_asyncio.fixture
async def database():
    """Create a fresh database for a test"""
    await init_db()
    yield
    await drop_db()
    # In-memory SQLite: a new connection next time means a new database
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def account(db_session):
    """A subscribed account with default state"""
    acct = Account(
        email="client@example.com",
        name="Test Client",
        token=generate_token(),
        subscribed=True,
        billing_status="active",
    )
    db_session.add(acct)
    await db_session.flush()
    db_session.add(new_user_state(acct.id))
    await db_session.commit()
    return acct


@pytest_asyncio.fixture
async def client(database):
    """Create an async test client"""
    from copydesk.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
