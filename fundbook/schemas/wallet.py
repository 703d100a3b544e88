"""Wallet Pydantic schemas for request/response validation."""

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class WalletBase(BaseModel):
    """Base schema with common Wallet fields."""

    name: str = Field(..., min_length=1, max_length=255)


class WalletCreate(WalletBase):
    """Schema for creating a new Wallet."""

    opening_amount: Decimal = Decimal("0")


class WalletUpdate(BaseModel):
    """Schema for updating an existing Wallet.

    All fields are optional to allow partial updates.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    opening_amount: Optional[Decimal] = None


class WalletRead(WalletBase):
    """Schema for reading Wallet data with its live balances.

    Amounts are serialized as decimal strings for precision.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    opening_amount: Decimal
    balance: Decimal = Field(description="Cleared balance")
    balance_with_pending: Decimal

    @field_serializer("opening_amount", "balance", "balance_with_pending")
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amounts as decimal strings to preserve precision."""
        return str(amount)

    @classmethod
    def from_balance(cls, wallet, balance) -> "WalletRead":
        """Build from a Wallet model and its BalancePair."""
        return cls(
            id=wallet.id,
            name=wallet.name,
            opening_amount=wallet.opening_amount,
            balance=balance.cleared,
            balance_with_pending=balance.with_pending,
        )
