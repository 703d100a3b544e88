"""User SQLAlchemy ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundbook.db.base import Base


class User(Base):
    """User model anchoring ownership of wallets, funds and postings.

    Attributes:
        id: Unique identifier (UUID)
        external_id: Subject id issued by the external identity provider
        email: User email address (unique)
        username: Display name
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    external_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False
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

    wallets: Mapped[list["Wallet"]] = relationship("Wallet", back_populates="user")
    funds: Mapped[list["Fund"]] = relationship("Fund", back_populates="user")
