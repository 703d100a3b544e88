"""Balance reads over the ledger store.

Balances are recomputed from the posting set on every call. There are no
cached running balances, so reads need no locking.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import NotFoundError
from fundbook.models.fund import Fund
from fundbook.models.wallet import Wallet
from fundbook.services.balance_calculator import (
    BalancePair,
    FundBalance,
    absorb_overspend,
    fold_totals,
    grand_total,
    reconciliation_gap,
)
from fundbook.services.ledger_store import LedgerStore


@dataclass(frozen=True)
class EntityBalance:
    """Raw and displayed balances of one wallet or fund."""

    entity_id: uuid.UUID
    entity_type: Literal["wallet", "fund"]
    raw: BalancePair
    displayed: BalancePair


@dataclass(frozen=True)
class Totals:
    """Everything a dashboard needs in one read."""

    wallets: list[tuple[Wallet, BalancePair]]
    funds: list[tuple[Fund, FundBalance]]
    grand_total: BalancePair
    unreconciled: BalancePair


class BalanceService:
    """Read-only balance computations for one user."""

    def __init__(self, store: LedgerStore | None = None) -> None:
        self.store = store or LedgerStore()

    async def wallet_balances(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        as_of: datetime | None = None,
    ) -> list[tuple[Wallet, BalancePair]]:
        wallets = await self.store.list_wallets(session, user_id)
        totals = await self.store.wallet_totals(session, user_id, as_of=as_of)
        balances = fold_totals({w.id: w.opening_amount for w in wallets}, totals)
        return [(wallet, balances[wallet.id]) for wallet in wallets]

    async def fund_balances(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        as_of: datetime | None = None,
    ) -> list[tuple[Fund, FundBalance]]:
        """Raw and displayed balances of every active fund, savings first."""
        funds = await self.store.list_funds(session, user_id)
        totals = await self.store.fund_totals(session, user_id, as_of=as_of)
        raw = fold_totals({f.id: f.opening_amount for f in funds}, totals)
        savings_id = next((f.id for f in funds if f.is_savings), None)
        balances = absorb_overspend(raw, savings_id)
        return [(fund, balances[fund.id]) for fund in funds]

    async def compute_balances(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        entity_id: uuid.UUID,
        as_of: datetime | None = None,
    ) -> EntityBalance:
        """Balances of a wallet or a fund, optionally as of a point in time.

        Wallets have no display transform, so their displayed figures are
        the raw ones. A fund's displayed balance depends on every other
        fund of the user, so all of them are computed.

        Raises:
            NotFoundError: If no wallet or fund with this id belongs to the user
        """
        for wallet, pair in await self.wallet_balances(session, user_id, as_of):
            if wallet.id == entity_id:
                return EntityBalance(entity_id, "wallet", raw=pair, displayed=pair)

        for fund, balance in await self.fund_balances(session, user_id, as_of):
            if fund.id == entity_id:
                return EntityBalance(
                    entity_id, "fund", raw=balance.raw, displayed=balance.displayed
                )

        raise NotFoundError("Wallet or fund", str(entity_id))

    async def totals(self, session: AsyncSession, user_id: uuid.UUID) -> Totals:
        wallets = await self.wallet_balances(session, user_id)
        funds = await self.fund_balances(session, user_id)
        wallet_pairs = [pair for _, pair in wallets]
        return Totals(
            wallets=wallets,
            funds=funds,
            grand_total=grand_total(wallet_pairs),
            unreconciled=reconciliation_gap(
                wallet_pairs, [balance.raw for _, balance in funds]
            ),
        )
