"""Posting SQLAlchemy ORM model.

One row type plays every structural role in the ledger:

- an event row (``parent_id`` is None) is what a user sees as one
  transaction;
- a posting-only event is an event row that also moves money
  (``is_posting`` is True);
- a grouped event is a banner row (``is_posting`` False, ``amount`` 0)
  whose children carry the money.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundbook.db.base import Base


class PostingStatus(str, enum.Enum):
    """Posting lifecycle.

    Values:
        ACTIVE: Row counts towards balances
        VOID: Row was superseded by an edit rebuild
        DELETED: Row belongs to a deleted event
    """

    ACTIVE = "ACTIVE"
    VOID = "VOID"
    DELETED = "DELETED"


class PostingKind(str, enum.Enum):
    """What produced a money-moving row.

    Values:
        STANDARD: A line authored by the user
        INCOME_ALLOCATION: A fund share of an income event
        OVERDRAFT_ADVANCE: Savings covering a fund that went below zero
        OVERDRAFT_REPAYMENT: A fund paying an earlier advance back to savings
    """

    STANDARD = "STANDARD"
    INCOME_ALLOCATION = "INCOME_ALLOCATION"
    OVERDRAFT_ADVANCE = "OVERDRAFT_ADVANCE"
    OVERDRAFT_REPAYMENT = "OVERDRAFT_REPAYMENT"

    @property
    def is_correction(self) -> bool:
        return self in (PostingKind.OVERDRAFT_ADVANCE, PostingKind.OVERDRAFT_REPAYMENT)


class EventType(str, enum.Enum):
    """Kind of event a user created."""

    EXPENSE = "expense"
    INCOME = "income"


class Posting(Base):
    """Posting model: a signed money movement, or the event that groups them.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to the owning User
        parent_id: Event row this posting belongs to, None for event rows
        event_type: income or expense, set on event rows only
        occurred_at: When the money moved
        description: Free text
        is_pending: Excluded from cleared balances while True
        status: ACTIVE, VOID or DELETED
        is_posting: True when the row itself moves money
        amount: Signed amount, negative is an outflow
        wallet_id: Wallet the money sits in, optional
        fund_id: Fund the money is allocated to, optional
        income_pull: Pull percentage used when the row was allocated from income
        kind: STANDARD, INCOME_ALLOCATION or an overdraft correction
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "postings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("postings.id"),
        nullable=True
    )
    event_type: Mapped[EventType | None] = mapped_column(
        Enum(EventType, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=True
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )
    is_pending: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )
    status: Mapped[PostingStatus] = mapped_column(
        Enum(PostingStatus, native_enum=False, length=20),
        nullable=False,
        default=PostingStatus.ACTIVE
    )
    is_posting: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric,
        nullable=False,
        default=Decimal("0")
    )
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("wallets.id"),
        nullable=True
    )
    fund_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("funds.id"),
        nullable=True
    )
    income_pull: Mapped[Decimal | None] = mapped_column(
        Numeric,
        nullable=True
    )
    kind: Mapped[PostingKind] = mapped_column(
        Enum(PostingKind, native_enum=False, length=32),
        nullable=False,
        default=PostingKind.STANDARD
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    wallet: Mapped["Wallet | None"] = relationship("Wallet", foreign_keys=[wallet_id])
    fund: Mapped["Fund | None"] = relationship("Fund", foreign_keys=[fund_id])

    # Composite indexes for query performance
    __table_args__ = (
        Index("ix_postings_user_id_status", "user_id", "status"),
        Index("ix_postings_parent_id", "parent_id"),
        Index("ix_postings_wallet_id", "wallet_id"),
        Index("ix_postings_fund_id", "fund_id"),
    )

    @property
    def is_event(self) -> bool:
        return self.parent_id is None

    @property
    def is_active(self) -> bool:
        return self.status is PostingStatus.ACTIVE
