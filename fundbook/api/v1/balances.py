"""Balance and totals API endpoints."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from fundbook.api.deps import Balances, CurrentUserId, DBSession
from fundbook.schemas.balance import EntityBalanceRead, TotalsRead
from fundbook.schemas.fund import FundRead
from fundbook.schemas.wallet import WalletRead

router = APIRouter(tags=["balances"])


@router.get("/balances/{entity_id}", response_model=EntityBalanceRead)
async def get_balance(
    entity_id: uuid.UUID,
    session: DBSession,
    user_id: CurrentUserId,
    balances: Balances,
    as_of: Optional[datetime] = Query(
        default=None, description="Only count postings that occurred at or before this instant"
    ),
):
    """Raw and displayed balances of one wallet or fund."""
    result = await balances.compute_balances(session, user_id, entity_id, as_of=as_of)
    return EntityBalanceRead(
        entity_id=result.entity_id,
        entity_type=result.entity_type,
        raw=result.raw.cleared,
        raw_with_pending=result.raw.with_pending,
        displayed=result.displayed.cleared,
        displayed_with_pending=result.displayed.with_pending,
    )


@router.get("/totals", response_model=TotalsRead)
async def get_totals(session: DBSession, user_id: CurrentUserId, balances: Balances):
    """
    Dashboard totals.

    The grand total sums wallets. `unreconciled` is wallets minus funds on
    raw figures and is zero for a consistent ledger.
    """
    totals = await balances.totals(session, user_id)
    return TotalsRead(
        grand_total=totals.grand_total.cleared,
        grand_total_with_pending=totals.grand_total.with_pending,
        unreconciled=totals.unreconciled.cleared,
        unreconciled_with_pending=totals.unreconciled.with_pending,
        wallets=[WalletRead.from_balance(w, pair) for w, pair in totals.wallets],
        funds=[FundRead.from_balance(f, balance) for f, balance in totals.funds],
    )
