"""Balance Pydantic schemas."""

import uuid
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, field_serializer

from fundbook.schemas.fund import FundRead
from fundbook.schemas.wallet import WalletRead


class EntityBalanceRead(BaseModel):
    """Balances of one wallet or fund.

    For wallets the displayed figures equal the raw ones.
    """

    entity_id: uuid.UUID
    entity_type: Literal["wallet", "fund"]
    raw: Decimal
    raw_with_pending: Decimal
    displayed: Decimal
    displayed_with_pending: Decimal

    @field_serializer("raw", "raw_with_pending", "displayed", "displayed_with_pending")
    def serialize_amount(self, amount: Decimal) -> str:
        return str(amount)


class TotalsRead(BaseModel):
    """Dashboard totals. The grand total is wallet based."""

    grand_total: Decimal
    grand_total_with_pending: Decimal
    unreconciled: Decimal
    unreconciled_with_pending: Decimal
    wallets: list[WalletRead]
    funds: list[FundRead]

    @field_serializer(
        "grand_total",
        "grand_total_with_pending",
        "unreconciled",
        "unreconciled_with_pending",
    )
    def serialize_amount(self, amount: Decimal) -> str:
        return str(amount)
