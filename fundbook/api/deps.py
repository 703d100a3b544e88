"""API dependency injection.

Provides FastAPI dependencies for database sessions, the requesting user
and the ledger services used across API endpoints.
"""

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.config import Settings, get_settings
from fundbook.db.session import get_async_session
from fundbook.services.balance_service import BalanceService
from fundbook.services.event_query import EventQueryService
from fundbook.services.fund_service import FundService
from fundbook.services.posting_service import PostingService
from fundbook.services.user_service import UserService
from fundbook.services.wallet_service import WalletService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides an async database session.

    This wraps the session management from fundbook.db.session
    for use as a FastAPI dependency.

    Usage:
        @router.get("/items")
        async def get_items(db: DBSession):
            ...
    """
    async for session in get_async_session():
        yield session


async def get_current_user_id(
    x_user_id: Annotated[uuid.UUID, Header(description="Ledger user id resolved by the auth layer")],
) -> uuid.UUID:
    """Requesting user, as resolved by the external authentication layer."""
    return x_user_id


def get_posting_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PostingService:
    return PostingService(require_wallet_and_fund=settings.REQUIRE_WALLET_AND_FUND)


def get_event_query_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventQueryService:
    return EventQueryService(page_size=settings.EVENTS_PAGE_SIZE)


def get_balance_service() -> BalanceService:
    return BalanceService()


def get_wallet_service() -> WalletService:
    return WalletService()


def get_fund_service() -> FundService:
    return FundService()


def get_user_service() -> UserService:
    return UserService()


# Type aliases for cleaner dependency injection syntax
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Postings = Annotated[PostingService, Depends(get_posting_service)]
EventQueries = Annotated[EventQueryService, Depends(get_event_query_service)]
Balances = Annotated[BalanceService, Depends(get_balance_service)]
Wallets = Annotated[WalletService, Depends(get_wallet_service)]
Funds = Annotated[FundService, Depends(get_fund_service)]
Users = Annotated[UserService, Depends(get_user_service)]
