"""Wallet SQLAlchemy ORM model."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundbook.db.base import Base


class Wallet(Base):
    """Wallet model: a physical place where money sits.

    The balance is never stored. It is the opening amount plus the sum of
    active postings attributed to the wallet.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to the owning User
        name: Display name (not unique)
        opening_amount: Signed balance before any posting
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
        deleted_at: Soft-delete timestamp, None while the wallet is open
    """

    __tablename__ = "wallets"

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
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    opening_amount: Mapped[Decimal] = mapped_column(
        Numeric,
        nullable=False,
        default=Decimal("0")
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
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    user: Mapped["User"] = relationship("User", back_populates="wallets")

    __table_args__ = (
        Index("ix_wallets_user_id", "user_id"),
    )
