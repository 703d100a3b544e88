"""Persistence for wallets, funds and postings.

Every query is scoped by the owning user id. Rows owned by somebody else
look exactly like rows that do not exist. Soft-deleted wallets and funds
and non-active postings are filtered out unless a method says otherwise.
No business rules live here.
"""

import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import NotFoundError
from fundbook.models.fund import Fund
from fundbook.models.posting import Posting, PostingKind, PostingStatus
from fundbook.models.user import User
from fundbook.models.wallet import Wallet
from fundbook.services.balance_calculator import PostingTotal


def _as_decimal(value) -> Decimal:
    """Aggregates come back as floats on SQLite."""
    return value if isinstance(value, Decimal) else Decimal(str(value))


class LedgerStore:
    """Owner-scoped queries and writes used by the ledger services."""

    # Users

    async def get_user(self, session: AsyncSession, user_id: uuid.UUID) -> User:
        """Fetch a bootstrapped user.

        Raises:
            NotFoundError: If no user with this id exists
        """
        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    # Wallets

    async def get_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        wallet_id: uuid.UUID,
        for_update: bool = False,
    ) -> Wallet:
        """Fetch an open wallet owned by the user.

        Raises:
            NotFoundError: If the wallet does not exist, is deleted or is foreign
        """
        stmt = select(Wallet).where(
            Wallet.id == wallet_id,
            Wallet.user_id == user_id,
            Wallet.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        wallet = (await session.execute(stmt)).scalar_one_or_none()
        if wallet is None:
            raise NotFoundError("Wallet", str(wallet_id))
        return wallet

    async def list_wallets(self, session: AsyncSession, user_id: uuid.UUID) -> list[Wallet]:
        result = await session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id, Wallet.deleted_at.is_(None))
            .order_by(Wallet.created_at, Wallet.name)
        )
        return list(result.scalars().all())

    async def find_wallet_ids(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        wallet_ids: Iterable[uuid.UUID],
    ) -> set[uuid.UUID]:
        """Return the subset of ``wallet_ids`` that are open and owned by the user."""
        ids = set(wallet_ids)
        if not ids:
            return set()
        result = await session.execute(
            select(Wallet.id).where(
                Wallet.user_id == user_id,
                Wallet.id.in_(ids),
                Wallet.deleted_at.is_(None),
            )
        )
        return set(result.scalars().all())

    # Funds

    async def get_fund(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        fund_id: uuid.UUID,
        for_update: bool = False,
    ) -> Fund:
        """Fetch an active fund owned by the user.

        Raises:
            NotFoundError: If the fund does not exist, is deleted or is foreign
        """
        stmt = select(Fund).where(
            Fund.id == fund_id,
            Fund.user_id == user_id,
            Fund.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        fund = (await session.execute(stmt)).scalar_one_or_none()
        if fund is None:
            raise NotFoundError("Fund", str(fund_id))
        return fund

    async def list_funds(self, session: AsyncSession, user_id: uuid.UUID) -> list[Fund]:
        result = await session.execute(
            select(Fund)
            .where(Fund.user_id == user_id, Fund.deleted_at.is_(None))
            .order_by(Fund.is_savings.desc(), Fund.created_at, Fund.name)
        )
        return list(result.scalars().all())

    async def get_savings_fund(self, session: AsyncSession, user_id: uuid.UUID) -> Fund | None:
        result = await session.execute(
            select(Fund).where(
                Fund.user_id == user_id,
                Fund.is_savings.is_(True),
                Fund.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    # Postings

    def add_postings(self, session: AsyncSession, postings: Sequence[Posting]) -> None:
        """Stage postings for insertion in the caller's transaction."""
        session.add_all(postings)

    async def get_event(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
    ) -> Posting:
        """Fetch an active event row.

        Raises:
            NotFoundError: If no active event with this id belongs to the user
        """
        result = await session.execute(
            select(Posting).where(
                Posting.id == event_id,
                Posting.user_id == user_id,
                Posting.parent_id.is_(None),
                Posting.status == PostingStatus.ACTIVE,
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event", str(event_id))
        return event

    async def get_children(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        parent_ids: Iterable[uuid.UUID],
        include_inactive: bool = False,
    ) -> list[Posting]:
        ids = list(parent_ids)
        if not ids:
            return []
        stmt = select(Posting).where(
            Posting.user_id == user_id,
            Posting.parent_id.in_(ids),
        )
        if not include_inactive:
            stmt = stmt.where(Posting.status == PostingStatus.ACTIVE)
        result = await session.execute(stmt.order_by(Posting.created_at, Posting.id))
        return list(result.scalars().all())

    async def set_children_status(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        parent_id: uuid.UUID,
        status: PostingStatus,
    ) -> int:
        """Move every active child of an event to ``status``."""
        result = await session.execute(
            update(Posting)
            .where(
                Posting.user_id == user_id,
                Posting.parent_id == parent_id,
                Posting.status == PostingStatus.ACTIVE,
            )
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def update_children_metadata(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        parent_id: uuid.UUID,
        occurred_at: datetime | None = None,
        is_pending: bool | None = None,
    ) -> int:
        """Update date and/or pending flag of every active child in place."""
        values: dict[str, object] = {}
        if occurred_at is not None:
            values["occurred_at"] = occurred_at
        if is_pending is not None:
            values["is_pending"] = is_pending
        if not values:
            return 0
        result = await session.execute(
            update(Posting)
            .where(
                Posting.user_id == user_id,
                Posting.parent_id == parent_id,
                Posting.status == PostingStatus.ACTIVE,
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def clear_pending(self, session: AsyncSession, user_id: uuid.UUID) -> int:
        """Mark every active pending row of the user as cleared."""
        result = await session.execute(
            update(Posting)
            .where(
                Posting.user_id == user_id,
                Posting.is_pending.is_(True),
                Posting.status == PostingStatus.ACTIVE,
            )
            .values(is_pending=False)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def list_events(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        offset: int,
        limit: int,
    ) -> list[Posting]:
        result = await session.execute(
            select(Posting)
            .where(
                Posting.user_id == user_id,
                Posting.parent_id.is_(None),
                Posting.status == PostingStatus.ACTIVE,
            )
            .order_by(Posting.occurred_at.desc(), Posting.created_at.desc(), Posting.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    # Aggregates

    def _active_postings(
        self,
        user_id: uuid.UUID,
        group_column,
        as_of: datetime | None,
    ) -> Select:
        stmt = (
            select(
                group_column,
                Posting.is_pending,
                func.coalesce(func.sum(Posting.amount), 0),
            )
            .where(
                Posting.user_id == user_id,
                Posting.is_posting.is_(True),
                Posting.status == PostingStatus.ACTIVE,
                group_column.is_not(None),
            )
            .group_by(group_column, Posting.is_pending)
        )
        if as_of is not None:
            stmt = stmt.where(Posting.occurred_at <= as_of)
        return stmt

    async def wallet_totals(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        as_of: datetime | None = None,
        wallet_id: uuid.UUID | None = None,
    ) -> list[PostingTotal]:
        """Posting sums per wallet and pending state."""
        stmt = self._active_postings(user_id, Posting.wallet_id, as_of)
        if wallet_id is not None:
            stmt = stmt.where(Posting.wallet_id == wallet_id)
        result = await session.execute(stmt)
        return [PostingTotal(row[0], bool(row[1]), _as_decimal(row[2])) for row in result.all()]

    async def fund_totals(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        as_of: datetime | None = None,
        fund_id: uuid.UUID | None = None,
    ) -> list[PostingTotal]:
        """Posting sums per fund and pending state."""
        stmt = self._active_postings(user_id, Posting.fund_id, as_of)
        if fund_id is not None:
            stmt = stmt.where(Posting.fund_id == fund_id)
        result = await session.execute(stmt)
        return [PostingTotal(row[0], bool(row[1]), _as_decimal(row[2])) for row in result.all()]

    async def overdraft_debt(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        fund_id: uuid.UUID,
        as_of: datetime,
    ) -> Decimal:
        """Outstanding savings advance owed by a fund at ``as_of``.

        Advances credit the fund and repayments debit it, so the signed sum
        of both kinds on the fund is what is still owed.
        """
        result = await session.execute(
            select(func.coalesce(func.sum(Posting.amount), 0)).where(
                Posting.user_id == user_id,
                Posting.fund_id == fund_id,
                Posting.is_posting.is_(True),
                Posting.status == PostingStatus.ACTIVE,
                Posting.occurred_at <= as_of,
                Posting.kind.in_(
                    [PostingKind.OVERDRAFT_ADVANCE, PostingKind.OVERDRAFT_REPAYMENT]
                ),
            )
        )
        return max(Decimal("0"), _as_decimal(result.scalar_one()))

    async def overdraft_history(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        fund_id: uuid.UUID,
    ) -> list[Posting]:
        """Active advance and repayment rows of one fund, oldest first."""
        result = await session.execute(
            select(Posting)
            .where(
                Posting.user_id == user_id,
                Posting.fund_id == fund_id,
                Posting.is_posting.is_(True),
                Posting.status == PostingStatus.ACTIVE,
                Posting.kind.in_(
                    [PostingKind.OVERDRAFT_ADVANCE, PostingKind.OVERDRAFT_REPAYMENT]
                ),
            )
            .order_by(Posting.occurred_at, Posting.created_at, Posting.id)
        )
        return list(result.scalars().all())

    # Names

    async def wallet_names(self, session: AsyncSession, user_id: uuid.UUID) -> dict[uuid.UUID, str]:
        """Names of every wallet of the user, deleted ones included."""
        result = await session.execute(
            select(Wallet.id, Wallet.name).where(Wallet.user_id == user_id)
        )
        return {row[0]: row[1] for row in result.all()}

    async def fund_names(self, session: AsyncSession, user_id: uuid.UUID) -> dict[uuid.UUID, str]:
        """Names of every fund of the user, deleted ones included."""
        result = await session.execute(
            select(Fund.id, Fund.name).where(Fund.user_id == user_id)
        )
        return {row[0]: row[1] for row in result.all()}
