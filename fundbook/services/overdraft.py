"""Overspend absorption for non-savings funds.

A non-savings fund is never left below zero by a posting. When a line would
push it under, savings advances the shortfall through a zero-net pair of
fund-only postings. When money later flows back into the fund, the
outstanding advance is repaid first with the opposite pair. Wallet balances
are untouched by either pair.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from itertools import groupby
from operator import attrgetter

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.models.fund import Fund
from fundbook.models.posting import Posting, PostingKind, PostingStatus
from fundbook.services.balance_calculator import ZERO, fold_totals, is_zero
from fundbook.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedPosting:
    """A money-moving row that is about to be written."""

    amount: Decimal
    wallet_id: uuid.UUID | None
    fund_id: uuid.UUID | None
    is_pending: bool
    description: str | None = None
    kind: PostingKind = PostingKind.STANDARD
    income_pull: Decimal | None = None


class OverdraftTracker:
    """Running fund balances and advances for the postings of one event.

    Balances and outstanding advances are read from the store once per fund,
    as of the event's occurrence time, and then carried forward in memory
    across the event's lines. Planning must finish before any of the
    event's new rows are added to the session.
    """

    def __init__(
        self,
        store: LedgerStore,
        session: AsyncSession,
        user_id: uuid.UUID,
        occurred_at: datetime,
        funds: Mapping[uuid.UUID, Fund],
        savings_fund_id: uuid.UUID,
    ) -> None:
        self._store = store
        self._session = session
        self._user_id = user_id
        self._occurred_at = occurred_at
        self._funds = funds
        self._savings_fund_id = savings_fund_id
        self._balances: dict[uuid.UUID, Decimal] = {}
        self._debts: dict[uuid.UUID, Decimal] = {}

    def _tracks(self, fund_id: uuid.UUID | None) -> bool:
        if fund_id is None or fund_id == self._savings_fund_id:
            return False
        fund = self._funds.get(fund_id)
        return fund is not None and not fund.is_savings

    async def _balance(self, fund_id: uuid.UUID) -> Decimal:
        if fund_id not in self._balances:
            totals = await self._store.fund_totals(
                self._session, self._user_id, as_of=self._occurred_at, fund_id=fund_id
            )
            opening = {fund_id: self._funds[fund_id].opening_amount}
            self._balances[fund_id] = fold_totals(opening, totals)[fund_id].with_pending
        return self._balances[fund_id]

    async def _debt(self, fund_id: uuid.UUID) -> Decimal:
        if fund_id not in self._debts:
            self._debts[fund_id] = await self._store.overdraft_debt(
                self._session, self._user_id, fund_id, self._occurred_at
            )
        return self._debts[fund_id]

    def _pair(
        self,
        fund_id: uuid.UUID,
        fund_amount: Decimal,
        kind: PostingKind,
        is_pending: bool,
    ) -> list[PlannedPosting]:
        return [
            PlannedPosting(fund_amount, None, fund_id, is_pending, kind=kind),
            PlannedPosting(-fund_amount, None, self._savings_fund_id, is_pending, kind=kind),
        ]

    async def settle(self, line: PlannedPosting) -> list[PlannedPosting]:
        """Expand one line into the rows to write.

        Returns the line itself, preceded by a repayment pair when it brings
        money into a fund that owes savings, and followed by an advance pair
        when it leaves the fund below zero.
        """
        fund_id = line.fund_id
        if not self._tracks(fund_id):
            return [line]

        balance = await self._balance(fund_id)
        rows: list[PlannedPosting] = []

        if line.amount > 0:
            debt = await self._debt(fund_id)
            repay = min(line.amount, debt)
            if repay > 0:
                logger.info("Fund %s repays %s of overdraft to savings", fund_id, repay)
                rows.extend(
                    self._pair(fund_id, -repay, PostingKind.OVERDRAFT_REPAYMENT, line.is_pending)
                )
                self._debts[fund_id] = debt - repay
                balance -= repay

        rows.append(line)
        balance += line.amount

        if balance < 0:
            shortfall = -balance
            logger.info("Fund %s overspent by %s, advancing from savings", fund_id, shortfall)
            rows.extend(
                self._pair(fund_id, shortfall, PostingKind.OVERDRAFT_ADVANCE, line.is_pending)
            )
            self._debts[fund_id] = await self._debt(fund_id) + shortfall
            balance = ZERO

        self._balances[fund_id] = balance
        return rows


def with_pending(line: PlannedPosting, is_pending: bool) -> PlannedPosting:
    return replace(line, is_pending=is_pending)


def _reversal(repayment: Posting, amount: Decimal, savings_fund_id: uuid.UUID) -> list[Posting]:
    """Opposite pair that gives back ``amount`` of a repayment."""
    return [
        Posting(
            id=uuid.uuid4(),
            user_id=repayment.user_id,
            parent_id=repayment.parent_id,
            occurred_at=repayment.occurred_at,
            is_pending=repayment.is_pending,
            status=PostingStatus.ACTIVE,
            is_posting=True,
            amount=fund_amount,
            wallet_id=None,
            fund_id=fund_id,
            kind=PostingKind.OVERDRAFT_REPAYMENT,
        )
        for fund_id, fund_amount in (
            (repayment.fund_id, amount),
            (savings_fund_id, -amount),
        )
    ]


async def unwind_repayments(
    store: LedgerStore,
    session: AsyncSession,
    user_id: uuid.UUID,
    fund_ids: Iterable[uuid.UUID],
    savings_fund_id: uuid.UUID,
) -> int:
    """Give back repayments that now exceed what a fund owes.

    Voiding or moving an advance can leave a later repayment paying savings
    back for money it never advanced. Each fund's advances and repayments
    are walked in date order; wherever the running debt drops below zero,
    the repayments at that instant get an opposite pair for the excess,
    written under the repayment's own event.

    Returns:
        int: Number of reversal pairs written
    """
    reversals: list[Posting] = []
    for fund_id in set(fund_ids):
        if fund_id == savings_fund_id:
            continue
        history = await store.overdraft_history(session, user_id, fund_id)
        debt = ZERO
        for _, group in groupby(history, key=attrgetter("occurred_at")):
            rows = list(group)
            debt += sum((row.amount for row in rows), ZERO)
            if debt >= 0 or is_zero(debt):
                continue
            excess = -debt
            repayments = [
                row
                for row in rows
                if row.kind is PostingKind.OVERDRAFT_REPAYMENT and row.amount < 0
            ]
            for repayment in reversed(repayments):
                portion = min(excess, -repayment.amount)
                reversals.extend(_reversal(repayment, portion, savings_fund_id))
                excess -= portion
                if excess <= 0:
                    break
            logger.info(
                "Fund %s was repaid %s more than it owed, giving it back", fund_id, -debt
            )
            debt = ZERO

    if reversals:
        store.add_postings(session, reversals)
        await session.flush()
    return len(reversals) // 2
