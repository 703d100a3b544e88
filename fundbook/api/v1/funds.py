"""Fund API endpoints."""

import uuid

from fastapi import APIRouter, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.api.deps import Balances, CurrentUserId, DBSession, Funds
from fundbook.core.exceptions import NotFoundError
from fundbook.db.session import transaction
from fundbook.schemas.fund import (
    FundCreate,
    FundPullIn,
    FundPullsRead,
    FundPullsUpdate,
    FundRead,
    FundUpdate,
)
from fundbook.services.balance_service import BalanceService
from fundbook.services.fund_service import PullConfiguration
from fundbook.services.income_allocator import FundPull

router = APIRouter(prefix="/funds", tags=["funds"])


async def _fund_read(
    balances: BalanceService,
    session: AsyncSession,
    user_id: uuid.UUID,
    fund_id: uuid.UUID,
) -> FundRead:
    for fund, balance in await balances.fund_balances(session, user_id):
        if fund.id == fund_id:
            return FundRead.from_balance(fund, balance)
    raise NotFoundError("Fund", str(fund_id))


def _pulls_read(config: PullConfiguration) -> FundPullsRead:
    return FundPullsRead(
        savings_fund_id=config.savings_fund_id,
        pulls=[FundPullIn(fund_id=p.fund_id, percentage=p.percentage) for p in config.pulls],
        savings_percentage=config.savings_percentage,
    )


@router.get("", response_model=list[FundRead])
async def list_funds(session: DBSession, user_id: CurrentUserId, balances: Balances):
    """
    List active funds, savings first.

    `balance` fields are displayed figures: overspent funds show 0 and the
    overspend is taken out of savings. `raw_balance` and `overspent` show
    what is really on the ledger.
    """
    rows = await balances.fund_balances(session, user_id)
    return [FundRead.from_balance(fund, balance) for fund, balance in rows]


@router.post("", response_model=FundRead, status_code=201)
async def create_fund(
    data: FundCreate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Funds,
    balances: Balances,
):
    async with transaction(session, "create fund"):
        fund = await service.create(session, user_id, data)
    return await _fund_read(balances, session, user_id, fund.id)


@router.get("/pulls", response_model=FundPullsRead)
async def get_pulls(session: DBSession, user_id: CurrentUserId, service: Funds):
    """Pull percentage of every non-savings fund and the implied savings share."""
    return _pulls_read(await service.get_pulls(session, user_id))


@router.put("/pulls", response_model=FundPullsRead)
async def set_pulls(
    data: FundPullsUpdate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Funds,
):
    """
    Replace the income pull configuration.

    Funds left out are reset to 0. Savings is never listed; it receives the
    remainder. The percentages may not add up to more than 100.
    """
    pulls = [FundPull(p.fund_id, p.percentage) for p in data.pulls]
    async with transaction(session, "set pulls"):
        config = await service.set_pulls(session, user_id, pulls)
    return _pulls_read(config)


@router.patch("/{fund_id}", response_model=FundRead)
async def update_fund(
    fund_id: uuid.UUID,
    data: FundUpdate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Funds,
    balances: Balances,
):
    async with transaction(session, "update fund"):
        fund = await service.update(session, user_id, fund_id, data)
    return await _fund_read(balances, session, user_id, fund.id)


@router.delete("/{fund_id}", status_code=204)
async def delete_fund(
    fund_id: uuid.UUID,
    session: DBSession,
    user_id: CurrentUserId,
    service: Funds,
):
    """
    Soft-delete a fund.

    The savings fund cannot be deleted, and no fund can be deleted while
    its with-pending balance is not zero.
    """
    async with transaction(session, "delete fund"):
        await service.delete(session, user_id, fund_id)
    return Response(status_code=204)
