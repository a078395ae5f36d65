"""Test configuration and fixtures for relagg."""

import os

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import relagg
from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(autouse=True)
def _fresh_config():
    """Every test starts from the default active config."""
    relagg.reset_config()
    yield
    relagg.reset_config()


@pytest.fixture(scope="function")
def engine():
    """Sync engine: RELAGG_TEST_DATABASE_URL when set, in-memory SQLite otherwise."""
    url = os.getenv('RELAGG_TEST_DATABASE_URL')
    if url:
        eng = create_engine(url, future=True)
        Base.metadata.drop_all(eng)
    else:
        eng = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    Base.metadata.create_all(eng)
    yield eng
    if url:
        Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    factory = sessionmaker(engine, expire_on_commit=False)
    with factory() as session:
        yield session


@pytest.fixture(scope="function")
async def async_engine():
    """Create an async in-memory SQLite engine for each test function."""
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture(scope="function")
async def async_db_session(async_engine):
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# Import fixtures from fixtures module
from tests.fixtures import populated_db, async_populated_db  # noqa: E402,F401
