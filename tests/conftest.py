"""Shared fixtures: environment defaults and an in-memory ledger database."""

import os

# Settings are read at import time by the celery app and the FastAPI app
for _key, _value in {
    "POSTGRES_HOST": "localhost",
    "POSTGRES_USER": "testuser",
    "POSTGRES_PASSWORD": "testpass",
    "POSTGRES_DB": "testdb",
}.items():
    os.environ.setdefault(_key, _value)

import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import fundbook.models  # noqa: F401  registers every table on Base.metadata
from fundbook.db.base import Base
from fundbook.models.fund import Fund
from fundbook.models.wallet import Wallet
from fundbook.schemas.fund import FundCreate
from fundbook.schemas.wallet import WalletCreate
from fundbook.services.fund_service import FundService
from fundbook.services.user_service import Bootstrap, UserService
from fundbook.services.wallet_service import WalletService


async def create_test_engine() -> AsyncEngine:
    """Create an in-memory SQLite engine with the ledger schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[AsyncSession, None]:
    engine = await create_test_engine()
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def owner(session: AsyncSession) -> Bootstrap:
    """A bootstrapped user with their savings fund."""
    result = await UserService().bootstrap(session, "auth|owner", "owner@example.com", "owner")
    await session.commit()
    return result


@pytest.fixture
def user_id(owner: Bootstrap) -> uuid.UUID:
    return owner.user.id


@pytest.fixture
def savings_id(owner: Bootstrap) -> uuid.UUID:
    return owner.savings_fund.id


@pytest.fixture
def make_wallet(session: AsyncSession, user_id: uuid.UUID):
    async def factory(name: str = "Checking", opening: str = "0", owner_id: uuid.UUID | None = None) -> Wallet:
        wallet = await WalletService().create(
            session,
            owner_id or user_id,
            WalletCreate(name=name, opening_amount=Decimal(opening)),
        )
        await session.commit()
        return wallet

    return factory


@pytest.fixture
def make_fund(session: AsyncSession, user_id: uuid.UUID):
    async def factory(
        name: str = "Groceries",
        pull: str = "0",
        opening: str = "0",
        owner_id: uuid.UUID | None = None,
    ) -> Fund:
        fund = await FundService().create(
            session,
            owner_id or user_id,
            FundCreate(name=name, opening_amount=Decimal(opening), pull_percentage=Decimal(pull)),
        )
        await session.commit()
        return fund

    return factory
