"""Fund Pydantic schemas for request/response validation."""

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class FundBase(BaseModel):
    """Base schema with common Fund fields."""

    name: str = Field(..., min_length=1, max_length=255)


class FundCreate(FundBase):
    """Schema for creating a new (non-savings) Fund."""

    opening_amount: Decimal = Decimal("0")
    pull_percentage: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))


class FundUpdate(BaseModel):
    """Schema for updating an existing Fund.

    All fields are optional to allow partial updates.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    opening_amount: Optional[Decimal] = None
    pull_percentage: Optional[Decimal] = Field(
        default=None, ge=Decimal("0"), le=Decimal("100")
    )


class FundRead(FundBase):
    """Schema for reading Fund data with raw and displayed balances.

    ``balance`` and ``balance_with_pending`` are the displayed figures.
    The raw figures expose overspending that the display hides.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    opening_amount: Decimal
    pull_percentage: Decimal
    is_savings: bool
    balance: Decimal
    balance_with_pending: Decimal
    raw_balance: Decimal
    raw_balance_with_pending: Decimal
    overspent: Decimal = Field(description="Cleared amount the fund is below zero")
    overspent_with_pending: Decimal

    @field_serializer(
        "opening_amount",
        "pull_percentage",
        "balance",
        "balance_with_pending",
        "raw_balance",
        "raw_balance_with_pending",
        "overspent",
        "overspent_with_pending",
    )
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amounts as decimal strings to preserve precision."""
        return str(amount)

    @classmethod
    def from_balance(cls, fund, balance) -> "FundRead":
        """Build from a Fund model and its FundBalance."""
        return cls(
            id=fund.id,
            name=fund.name,
            opening_amount=fund.opening_amount,
            pull_percentage=fund.pull_percentage,
            is_savings=fund.is_savings,
            balance=balance.displayed.cleared,
            balance_with_pending=balance.displayed.with_pending,
            raw_balance=balance.raw.cleared,
            raw_balance_with_pending=balance.raw.with_pending,
            overspent=balance.overspent.cleared,
            overspent_with_pending=balance.overspent.with_pending,
        )


class FundPullIn(BaseModel):
    """One entry of a pull configuration."""

    fund_id: uuid.UUID
    percentage: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))


class FundPullsUpdate(BaseModel):
    """Replace the pull percentage of every non-savings fund."""

    pulls: list[FundPullIn]


class FundPullsRead(BaseModel):
    """Current pull configuration."""

    savings_fund_id: uuid.UUID
    pulls: list[FundPullIn]
    savings_percentage: Decimal

    @field_serializer("savings_percentage")
    def serialize_percentage(self, value: Decimal) -> str:
        return str(value)
