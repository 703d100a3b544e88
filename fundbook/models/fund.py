"""Fund SQLAlchemy ORM model."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundbook.db.base import Base


class Fund(Base):
    """Fund model: the purpose money is set aside for (an envelope).

    Each user has exactly one savings fund. It absorbs the income remainder
    and the overspend of every other fund, and it cannot be deleted.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to the owning User
        name: Display name
        opening_amount: Signed balance before any posting
        pull_percentage: Share of each income routed here (0-100)
        is_savings: Marks the user's savings fund
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
        deleted_at: Soft-delete timestamp
    """

    __tablename__ = "funds"

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
    pull_percentage: Mapped[Decimal] = mapped_column(
        Numeric,
        nullable=False,
        default=Decimal("0")
    )
    is_savings: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
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

    user: Mapped["User"] = relationship("User", back_populates="funds")

    __table_args__ = (
        Index("ix_funds_user_id", "user_id"),
        # One savings fund per user
        Index(
            "uq_funds_user_savings",
            "user_id",
            unique=True,
            postgresql_where=text("is_savings"),
            sqlite_where=text("is_savings = 1"),
        ),
    )
