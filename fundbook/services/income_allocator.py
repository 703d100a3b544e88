"""Income allocation across funds.

Every non-savings fund pulls ``total * percentage / 100`` of an income.
The savings fund receives whatever is left, computed as a literal
remainder so that the allocations always add back up to the total.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from fundbook.core.exceptions import ConfigurationError, ValidationError

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FundPull:
    """A fund and the share of income it pulls."""

    fund_id: uuid.UUID
    percentage: Decimal


@dataclass(frozen=True)
class Allocation:
    """One fund's share of an income event.

    Attributes:
        fund_id: Fund receiving the share
        amount: Amount allocated, full precision
        percentage_used: Pull percentage snapshot stored on the posting
        is_savings: True for the remainder row
    """

    fund_id: uuid.UUID
    amount: Decimal
    percentage_used: Decimal
    is_savings: bool = False


def pull_sum(pulls: Sequence[FundPull]) -> Decimal:
    """Sum of pull percentages."""
    return sum((p.percentage for p in pulls), Decimal("0"))


def validate_pulls(pulls: Sequence[FundPull], savings_fund_id: uuid.UUID) -> Decimal:
    """Check a pull configuration and return its sum.

    Raises:
        ValidationError: If a percentage is outside 0-100, a fund appears
            twice, or the savings fund is listed explicitly
        ConfigurationError: If the percentages add up to more than 100
    """
    seen: set[uuid.UUID] = set()
    for pull in pulls:
        if pull.fund_id == savings_fund_id:
            raise ValidationError(
                "Do not set savings explicitly; it is computed as remainder"
            )
        if pull.fund_id in seen:
            raise ValidationError(f"Duplicate pull for fund {pull.fund_id}")
        if pull.percentage < 0 or pull.percentage > HUNDRED:
            raise ValidationError(
                f"Invalid pull percentage {pull.percentage} for fund {pull.fund_id}"
            )
        seen.add(pull.fund_id)

    total = pull_sum(pulls)
    if total > HUNDRED:
        raise ConfigurationError(total)
    return total


def allocate_income(
    total_amount: Decimal,
    pulls: Sequence[FundPull],
    savings_fund_id: uuid.UUID,
) -> list[Allocation]:
    """Split an income over funds.

    Allocations come back in pull order, zero-percentage pulls skipped,
    followed by the savings remainder. The savings row is always present,
    even when the remainder is zero, so the snapshot stays complete.

    Args:
        total_amount: Income amount, strictly positive
        pulls: Non-savings funds with their pull percentages
        savings_fund_id: Fund receiving the remainder

    Returns:
        list[Allocation]: Amounts summing exactly to ``total_amount``

    Raises:
        ValidationError: If the amount is not positive or the pulls are invalid
        ConfigurationError: If the pulls add up to more than 100
    """
    if total_amount <= 0:
        raise ValidationError("Income amount must be greater than zero")

    used = validate_pulls(pulls, savings_fund_id)

    allocations: list[Allocation] = []
    allocated = Decimal("0")
    for pull in pulls:
        if pull.percentage <= 0:
            continue
        amount = total_amount * pull.percentage / HUNDRED
        allocated += amount
        allocations.append(Allocation(pull.fund_id, amount, pull.percentage))

    allocations.append(
        Allocation(
            fund_id=savings_fund_id,
            amount=total_amount - allocated,
            percentage_used=HUNDRED - used,
            is_savings=True,
        )
    )
    return allocations
