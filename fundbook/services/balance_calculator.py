"""Pure balance arithmetic.

Nothing in this module touches the database. Callers feed it opening
amounts and either posting rows or pre-aggregated sums, and get back
cleared and with-pending figures. Clamping only happens in
``absorb_overspend``, which is a display transform for fund listings.
"""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from fundbook.models.posting import Posting, PostingStatus

ZERO = Decimal("0")

# Tolerance for "is this balance zero" checks on values read back from storage
BALANCE_EPSILON = Decimal("1e-9")


@dataclass(frozen=True)
class BalancePair:
    """Cleared and with-pending views of one balance."""

    cleared: Decimal = ZERO
    with_pending: Decimal = ZERO

    def __add__(self, other: "BalancePair") -> "BalancePair":
        return BalancePair(
            self.cleared + other.cleared,
            self.with_pending + other.with_pending,
        )

    def __sub__(self, other: "BalancePair") -> "BalancePair":
        return BalancePair(
            self.cleared - other.cleared,
            self.with_pending - other.with_pending,
        )


@dataclass(frozen=True)
class PostingTotal:
    """Sum of posting amounts for one entity and one pending state."""

    entity_id: uuid.UUID
    is_pending: bool
    total: Decimal


@dataclass(frozen=True)
class FundBalance:
    """Raw and displayed balance of a fund."""

    fund_id: uuid.UUID
    is_savings: bool
    raw: BalancePair
    displayed: BalancePair

    @property
    def overspent(self) -> BalancePair:
        """How far below zero the raw balance is, per view."""
        return BalancePair(deficit(self.raw.cleared), deficit(self.raw.with_pending))


def is_zero(amount: Decimal) -> bool:
    return abs(amount) <= BALANCE_EPSILON


def deficit(amount: Decimal) -> Decimal:
    """max(0, -amount)"""
    return max(ZERO, -amount)


def fold_totals(
    openings: Mapping[uuid.UUID, Decimal],
    totals: Iterable[PostingTotal],
) -> dict[uuid.UUID, BalancePair]:
    """Add pre-aggregated posting sums on top of opening amounts.

    Totals for ids missing from ``openings`` are ignored, so postings that
    still point at a deleted wallet or fund do not resurrect it.
    """
    cleared = {entity_id: Decimal(opening) for entity_id, opening in openings.items()}
    pending = dict(cleared)
    for row in totals:
        if row.entity_id not in cleared:
            continue
        pending[row.entity_id] += row.total
        if not row.is_pending:
            cleared[row.entity_id] += row.total
    return {
        entity_id: BalancePair(cleared[entity_id], pending[entity_id])
        for entity_id in cleared
    }


def totals_from_postings(
    postings: Iterable[Posting],
    attribute: Literal["wallet_id", "fund_id"],
) -> list[PostingTotal]:
    """Aggregate money-moving, active postings by wallet or fund."""
    sums: dict[tuple[uuid.UUID, bool], Decimal] = {}
    for posting in postings:
        if not posting.is_posting or posting.status is not PostingStatus.ACTIVE:
            continue
        entity_id = getattr(posting, attribute)
        if entity_id is None:
            continue
        key = (entity_id, bool(posting.is_pending))
        sums[key] = sums.get(key, ZERO) + posting.amount
    return [
        PostingTotal(entity_id, is_pending, total)
        for (entity_id, is_pending), total in sums.items()
    ]


def balances_from_postings(
    openings: Mapping[uuid.UUID, Decimal],
    postings: Iterable[Posting],
    attribute: Literal["wallet_id", "fund_id"],
) -> dict[uuid.UUID, BalancePair]:
    """Compute balances straight from posting rows."""
    return fold_totals(openings, totals_from_postings(postings, attribute))


def absorb_overspend(
    raw: Mapping[uuid.UUID, BalancePair],
    savings_fund_id: uuid.UUID | None,
) -> dict[uuid.UUID, FundBalance]:
    """Apply the overspend display transform to fund balances.

    Every non-savings fund shows ``max(0, raw)``. The savings fund shows its
    raw balance minus the deficits of all other funds and may go negative.
    """
    total_deficit = BalancePair()
    for fund_id, pair in raw.items():
        if fund_id == savings_fund_id:
            continue
        total_deficit += BalancePair(deficit(pair.cleared), deficit(pair.with_pending))

    result: dict[uuid.UUID, FundBalance] = {}
    for fund_id, pair in raw.items():
        if fund_id == savings_fund_id:
            displayed = pair - total_deficit
        else:
            displayed = BalancePair(max(ZERO, pair.cleared), max(ZERO, pair.with_pending))
        result[fund_id] = FundBalance(
            fund_id=fund_id,
            is_savings=fund_id == savings_fund_id,
            raw=pair,
            displayed=displayed,
        )
    return result


def grand_total(wallet_balances: Iterable[BalancePair]) -> BalancePair:
    """Dashboard total. Wallets are the canonical side."""
    total = BalancePair()
    for pair in wallet_balances:
        total += pair
    return total


def reconciliation_gap(
    wallet_balances: Iterable[BalancePair],
    fund_balances: Iterable[BalancePair],
) -> BalancePair:
    """Wallet side minus fund side on raw figures; zero for a sound ledger."""
    return grand_total(wallet_balances) - grand_total(fund_balances)
