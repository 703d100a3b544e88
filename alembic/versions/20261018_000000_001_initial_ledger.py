"""Initial ledger - User, Wallet, Fund, Posting

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Create the users, wallets, funds and postings tables."""

    # Create users table
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Create wallets table
    op.create_table(
        "wallets",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        # Unscaled numeric: amounts are stored exactly as given
        sa.Column("opening_amount", sa.Numeric(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_wallets_user_id"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"], unique=False)

    # Create funds table
    op.create_table(
        "funds",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("opening_amount", sa.Numeric(), nullable=False, server_default=sa.text("0")),
        sa.Column("pull_percentage", sa.Numeric(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_savings", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_funds_user_id"),
    )
    op.create_index("ix_funds_user_id", "funds", ["user_id"], unique=False)
    op.create_index(
        "uq_funds_user_savings",
        "funds",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_savings"),
    )

    # Create postings table
    op.create_table(
        "postings",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("event_type", sa.String(20), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("is_posting", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("amount", sa.Numeric(), nullable=False, server_default=sa.text("0")),
        sa.Column("wallet_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("fund_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("income_pull", sa.Numeric(), nullable=True),
        sa.Column("kind", sa.String(32), nullable=False, server_default=sa.text("'STANDARD'")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_postings_user_id"),
        sa.ForeignKeyConstraint(["parent_id"], ["postings.id"], name="fk_postings_parent_id"),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"], name="fk_postings_wallet_id"),
        sa.ForeignKeyConstraint(["fund_id"], ["funds.id"], name="fk_postings_fund_id"),
    )
    op.create_index("ix_postings_user_id_status", "postings", ["user_id", "status"], unique=False)
    op.create_index("ix_postings_parent_id", "postings", ["parent_id"], unique=False)
    op.create_index("ix_postings_wallet_id", "postings", ["wallet_id"], unique=False)
    op.create_index("ix_postings_fund_id", "postings", ["fund_id"], unique=False)


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_index("ix_postings_fund_id", table_name="postings")
    op.drop_index("ix_postings_wallet_id", table_name="postings")
    op.drop_index("ix_postings_parent_id", table_name="postings")
    op.drop_index("ix_postings_user_id_status", table_name="postings")
    op.drop_table("postings")
    op.drop_index("uq_funds_user_savings", table_name="funds")
    op.drop_index("ix_funds_user_id", table_name="funds")
    op.drop_table("funds")
    op.drop_index("ix_wallets_user_id", table_name="wallets")
    op.drop_table("wallets")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_external_id", table_name="users")
    op.drop_table("users")
