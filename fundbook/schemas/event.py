"""Event Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from fundbook.models.posting import EventType, PostingKind


class PostingLineIn(BaseModel):
    """One money-moving line of an expense or transfer."""

    wallet_id: Optional[uuid.UUID] = None
    fund_id: Optional[uuid.UUID] = None
    amount: Decimal
    description: Optional[str] = None
    is_pending: Optional[bool] = Field(
        default=None, description="Defaults to the event's pending flag"
    )

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, amount: Decimal) -> Decimal:
        if not amount.is_finite() or amount == 0:
            raise ValueError("Line amount must be a non-zero number")
        return amount

    @model_validator(mode="after")
    def references_wallet_or_fund(self) -> "PostingLineIn":
        if self.wallet_id is None and self.fund_id is None:
            raise ValueError("Line must include wallet_id or fund_id")
        return self


class ExpenseEventCreate(BaseModel):
    """Request schema for a single or multi-line expense/transfer."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "expense",
                "occurred_at": "2025-03-01T12:00:00Z",
                "description": "Move cash for groceries",
                "is_pending": False,
                "lines": [
                    {
                        "wallet_id": "123e4567-e89b-12d3-a456-426614174000",
                        "fund_id": "123e4567-e89b-12d3-a456-426614174002",
                        "amount": "-200",
                    },
                    {
                        "wallet_id": "123e4567-e89b-12d3-a456-426614174001",
                        "fund_id": "123e4567-e89b-12d3-a456-426614174002",
                        "amount": "200",
                    },
                ],
            }
        }
    )

    type: Literal["expense"] = "expense"
    occurred_at: datetime
    description: Optional[str] = None
    is_pending: bool = True
    lines: list[PostingLineIn] = Field(..., min_length=1)


class IncomeEventCreate(BaseModel):
    """Request schema for an income deposit split across funds."""

    type: Literal["income"]
    occurred_at: datetime
    description: Optional[str] = None
    is_pending: bool = True
    wallet_id: uuid.UUID = Field(..., description="Wallet receiving the whole amount")
    amount: Decimal = Field(..., gt=Decimal("0"))


EventCreate = Annotated[
    Union[ExpenseEventCreate, IncomeEventCreate],
    Field(discriminator="type"),
]


class EventPatch(BaseModel):
    """Partial update of an event.

    Only ``occurred_at``, ``description`` and ``is_pending`` are metadata.
    Any other field triggers a rebuild of the event's postings.
    """

    type: Optional[EventType] = None
    occurred_at: Optional[datetime] = None
    description: Optional[str] = None
    is_pending: Optional[bool] = None
    lines: Optional[list[PostingLineIn]] = Field(default=None, min_length=1)
    wallet_id: Optional[uuid.UUID] = None
    amount: Optional[Decimal] = Field(default=None, gt=Decimal("0"))
    refresh_allocation: bool = Field(
        default=False,
        description="Re-split income with the current fund pulls instead of the stored snapshot",
    )

    @property
    def rebuilds(self) -> bool:
        return (
            self.type is not None
            or self.lines is not None
            or self.wallet_id is not None
            or self.amount is not None
            or self.refresh_allocation
        )


class EventMutationResult(BaseModel):
    """Response for create/edit/delete."""

    event_id: uuid.UUID


class ClearPendingResult(BaseModel):
    """Response for clearing pending postings."""

    cleared: int


class PostingRead(BaseModel):
    """A money-moving row as shown in event listings."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: Decimal
    wallet_id: Optional[uuid.UUID] = None
    wallet_name: Optional[str] = None
    fund_id: Optional[uuid.UUID] = None
    fund_name: Optional[str] = None
    description: Optional[str] = None
    is_pending: bool
    kind: PostingKind
    income_pull: Optional[Decimal] = None

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amount as decimal string to preserve precision."""
        return str(amount)


class _EventReadBase(BaseModel):
    id: uuid.UUID
    event_type: Optional[EventType] = None
    occurred_at: datetime
    description: Optional[str] = None
    is_pending: bool


class SingleLineEventRead(_EventReadBase):
    """An event that is itself the only posting."""

    shape: Literal["single"] = "single"
    posting: PostingRead


class GroupedEventRead(_EventReadBase):
    """A banner event with its child postings."""

    shape: Literal["grouped"] = "grouped"
    children: list[PostingRead]


EventRead = Annotated[
    Union[SingleLineEventRead, GroupedEventRead],
    Field(discriminator="shape"),
]


class EventPage(BaseModel):
    """One page of events, newest first."""

    events: list[EventRead]
    current_page: int
    next_page: int = Field(description="-1 when this is the last page")
