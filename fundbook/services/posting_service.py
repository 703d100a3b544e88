"""Posting author: creates, edits and deletes ledger events.

An event is written either as a single posting-only row or as a banner row
with child postings. Edits that change what money moves never update
posting rows in place: the old children are voided and a fresh set is
written under the same event id. Deletes move the event and its children
to DELETED. Nothing is ever physically removed.

Every method runs inside the caller's transaction; the service never
begins or commits.

Example:
    async with transaction(session, "create event"):
        service = PostingService()
        event_id = await service.create_event(session, user_id, request)
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import ReferenceNotFoundError, ValidationError
from fundbook.models.fund import Fund
from fundbook.models.posting import EventType, Posting, PostingKind, PostingStatus
from fundbook.schemas.event import (
    EventPatch,
    ExpenseEventCreate,
    IncomeEventCreate,
    PostingLineIn,
)
from fundbook.services.income_allocator import FundPull, allocate_income
from fundbook.services.ledger_store import LedgerStore
from fundbook.services.overdraft import (
    OverdraftTracker,
    PlannedPosting,
    unwind_repayments,
    with_pending,
)

logger = logging.getLogger(__name__)


@dataclass
class _FundContext:
    """Active funds of a user, keyed by id, and their savings fund."""

    funds: dict[uuid.UUID, Fund]
    savings: Fund

    @property
    def pulls(self) -> list[FundPull]:
        return [
            FundPull(fund.id, fund.pull_percentage)
            for fund in self.funds.values()
            if not fund.is_savings
        ]


class PostingService:
    """Service that turns event requests into posting rows.

    Args:
        store: Ledger store used for every read and write
        require_wallet_and_fund: Require both references on user-authored
            expense lines. Income allocations and overdraft corrections are
            always exempt.
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        require_wallet_and_fund: bool = True,
    ) -> None:
        self.store = store or LedgerStore()
        self.require_wallet_and_fund = require_wallet_and_fund

    # Create

    async def create_event(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        request: ExpenseEventCreate | IncomeEventCreate,
    ) -> uuid.UUID:
        """Create an expense/transfer or an income event.

        Args:
            session: Active async database session (transaction managed by caller)
            user_id: Owner of the event
            request: Validated expense or income request

        Returns:
            uuid.UUID: Id of the new event

        Raises:
            ReferenceNotFoundError: If a wallet or fund is unknown, deleted or foreign
            ValidationError: If a line is incomplete or the user has no savings fund
            ConfigurationError: If income pulls add up to more than 100
        """
        event_type = EventType(request.type)
        context = await self._load_funds(session, user_id)

        if event_type is EventType.INCOME:
            lines = await self._income_lines(
                session,
                user_id,
                context,
                wallet_id=request.wallet_id,
                amount=request.amount,
                pulls=context.pulls,
                is_pending=request.is_pending,
            )
        else:
            lines = await self._expense_lines(
                session, user_id, context, request.lines, request.is_pending
            )

        rows = await self._settle(session, user_id, context, request.occurred_at, lines)

        event_id = uuid.uuid4()
        if event_type is EventType.EXPENSE and len(rows) == 1:
            line = rows[0]
            event = Posting(
                id=event_id,
                user_id=user_id,
                event_type=event_type,
                occurred_at=request.occurred_at,
                description=request.description if request.description is not None else line.description,
                is_pending=line.is_pending,
                status=PostingStatus.ACTIVE,
                is_posting=True,
                amount=line.amount,
                wallet_id=line.wallet_id,
                fund_id=line.fund_id,
                income_pull=line.income_pull,
                kind=line.kind,
            )
            self.store.add_postings(session, [event])
        else:
            event = self._banner(
                event_id,
                user_id,
                event_type,
                request.occurred_at,
                request.description,
                any(row.is_pending for row in rows),
            )
            self.store.add_postings(session, [event])
            self.store.add_postings(
                session,
                self._children(event_id, user_id, request.occurred_at, rows),
            )

        await session.flush()
        logger.info(
            "Created %s event %s for user %s with %d posting(s)",
            event_type.value,
            event_id,
            user_id,
            len(rows),
        )
        return event_id

    # Edit

    async def edit_event(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
        patch: EventPatch,
    ) -> uuid.UUID:
        """Apply a patch to an event.

        A patch touching only the date, description or pending flag is
        applied in place. Anything else rebuilds the event's postings.

        Income rebuilds replay the pull percentages stored on the previous
        allocation postings. Pass ``refresh_allocation`` to split with the
        funds' current pulls instead.

        Raises:
            NotFoundError: If the event does not exist, is deleted or is foreign
            ReferenceNotFoundError: If a wallet or fund is unknown, deleted or foreign
            ValidationError: If the rebuilt event would be incomplete
            ConfigurationError: If refreshed income pulls add up to more than 100
        """
        event = await self.store.get_event(session, user_id, event_id)
        fields = patch.model_fields_set

        occurred_at = patch.occurred_at or event.occurred_at
        description = patch.description if "description" in fields else event.description
        pending_changed = patch.is_pending is not None
        is_pending = patch.is_pending if pending_changed else event.is_pending

        if not patch.rebuilds:
            event.occurred_at = occurred_at
            event.description = description
            event.is_pending = is_pending
            updated = await self.store.update_children_metadata(
                session,
                user_id,
                event.id,
                occurred_at=patch.occurred_at,
                is_pending=patch.is_pending,
            )
            await session.flush()
            if patch.occurred_at is not None:
                await self._unwind(
                    session, user_id, await self.store.get_children(session, user_id, [event.id])
                )
            logger.info(
                "Updated metadata of event %s (%d child posting(s))", event.id, updated
            )
            return event.id

        event_type = patch.type or event.event_type or EventType.EXPENSE
        if event_type is EventType.EXPENSE and (
            patch.amount is not None or patch.wallet_id is not None
        ):
            raise ValidationError("amount/wallet_id apply to income events; send lines")
        if event_type is EventType.INCOME and patch.lines is not None:
            raise ValidationError("Income events take wallet_id and amount, not lines")

        children = await self.store.get_children(session, user_id, [event.id])
        previous = [event] if event.is_posting else children

        context = await self._load_funds(session, user_id)

        if event_type is EventType.INCOME:
            allocations = [p for p in previous if p.kind is PostingKind.INCOME_ALLOCATION]
            wallet_id = patch.wallet_id or next(
                (p.wallet_id for p in allocations if p.wallet_id is not None), None
            )
            amount = patch.amount
            if amount is None and allocations:
                amount = sum((p.amount for p in allocations), Decimal("0"))
            if wallet_id is None or amount is None:
                raise ValidationError("Income events need a wallet_id and an amount")
            pulls = self._replay_pulls(allocations, context, patch.refresh_allocation)
        else:
            old_lines = [
                PlannedPosting(
                    amount=p.amount,
                    wallet_id=p.wallet_id,
                    fund_id=p.fund_id,
                    is_pending=p.is_pending,
                    description=p.description if p.parent_id is not None else None,
                )
                for p in previous
                if p.kind is PostingKind.STANDARD
            ]

        # Void the old postings before planning so they no longer count
        # towards the balances the overdraft planning reads.
        voided = await self.store.set_children_status(
            session, user_id, event.id, PostingStatus.VOID
        )
        if event.is_posting:
            self.store.add_postings(session, [self._void_copy(event)])
            event.is_posting = False
            event.amount = Decimal("0")
            event.wallet_id = None
            event.fund_id = None
            event.income_pull = None
            event.kind = PostingKind.STANDARD
            voided += 1

        event.event_type = event_type
        event.occurred_at = occurred_at
        event.description = description
        event.is_pending = is_pending
        await session.flush()

        if event_type is EventType.INCOME:
            lines = await self._income_lines(
                session,
                user_id,
                context,
                wallet_id=wallet_id,
                amount=amount,
                pulls=pulls,
                is_pending=is_pending,
            )
        elif patch.lines is not None:
            lines = await self._expense_lines(
                session, user_id, context, patch.lines, is_pending
            )
        else:
            if not old_lines:
                raise ValidationError("Missing lines")
            if pending_changed:
                old_lines = [with_pending(line, is_pending) for line in old_lines]
            await self._check_references(session, user_id, context, old_lines)
            lines = old_lines

        rows = await self._settle(session, user_id, context, occurred_at, lines)
        self.store.add_postings(
            session, self._children(event.id, user_id, occurred_at, rows)
        )
        event.is_pending = any(row.is_pending for row in rows)
        await session.flush()
        await self._unwind(session, user_id, previous, context.savings.id)

        logger.info(
            "Rebuilt %s event %s: voided %d posting(s), wrote %d",
            event_type.value,
            event.id,
            voided,
            len(rows),
        )
        return event.id

    # Delete

    async def delete_event(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
    ) -> uuid.UUID:
        """Mark an event and all of its children as deleted.

        Raises:
            NotFoundError: If the event does not exist, is already deleted or is foreign
        """
        event = await self.store.get_event(session, user_id, event_id)
        children = await self.store.get_children(session, user_id, [event.id])
        deleted = await self.store.set_children_status(
            session, user_id, event.id, PostingStatus.DELETED
        )
        event.status = PostingStatus.DELETED
        await session.flush()
        await self._unwind(session, user_id, children)
        logger.info("Deleted event %s and %d child posting(s)", event.id, deleted)
        return event.id

    async def clear_all_pending(self, session: AsyncSession, user_id: uuid.UUID) -> int:
        """Clear the pending flag on every active row of the user.

        Returns:
            int: Number of rows that were pending
        """
        count = await self.store.clear_pending(session, user_id)
        logger.info("Cleared %d pending row(s) for user %s", count, user_id)
        return count

    async def _unwind(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        rows: Sequence[Posting],
        savings_fund_id: uuid.UUID | None = None,
    ) -> None:
        """Reverse over-repayments on funds with advances or repayments in ``rows``."""
        fund_ids = {
            row.fund_id
            for row in rows
            if row.kind in (PostingKind.OVERDRAFT_ADVANCE, PostingKind.OVERDRAFT_REPAYMENT)
            and row.fund_id is not None
        }
        if not fund_ids:
            return
        if savings_fund_id is None:
            savings_fund_id = (await self._load_funds(session, user_id)).savings.id
        await unwind_repayments(self.store, session, user_id, fund_ids, savings_fund_id)

    # Planning

    async def _load_funds(self, session: AsyncSession, user_id: uuid.UUID) -> _FundContext:
        funds = await self.store.list_funds(session, user_id)
        savings = next((fund for fund in funds if fund.is_savings), None)
        if savings is None:
            await self.store.get_user(session, user_id)
            raise ValidationError("No savings fund found; bootstrap the user first")
        return _FundContext({fund.id: fund for fund in funds}, savings)

    async def _check_references(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        context: _FundContext,
        lines: Sequence[PlannedPosting],
    ) -> None:
        wallet_ids = {line.wallet_id for line in lines if line.wallet_id is not None}
        found = await self.store.find_wallet_ids(session, user_id, wallet_ids)
        for line in lines:
            if line.wallet_id is not None and line.wallet_id not in found:
                raise ReferenceNotFoundError("Wallet", str(line.wallet_id))
            if line.fund_id is not None and line.fund_id not in context.funds:
                raise ReferenceNotFoundError("Fund", str(line.fund_id))

    async def _expense_lines(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        context: _FundContext,
        lines: Sequence[PostingLineIn],
        is_pending: bool,
    ) -> list[PlannedPosting]:
        planned: list[PlannedPosting] = []
        for line in lines:
            if line.amount == 0:
                raise ValidationError("Line amount must be non-zero")
            if line.wallet_id is None and line.fund_id is None:
                raise ValidationError("Line must include wallet_id or fund_id")
            if self.require_wallet_and_fund and (line.wallet_id is None or line.fund_id is None):
                raise ValidationError("Line must include both wallet_id and fund_id")
            planned.append(
                PlannedPosting(
                    amount=line.amount,
                    wallet_id=line.wallet_id,
                    fund_id=line.fund_id,
                    is_pending=is_pending if line.is_pending is None else line.is_pending,
                    description=line.description,
                )
            )
        await self._check_references(session, user_id, context, planned)
        return planned

    async def _income_lines(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        context: _FundContext,
        wallet_id: uuid.UUID,
        amount: Decimal,
        pulls: Sequence[FundPull],
        is_pending: bool,
    ) -> list[PlannedPosting]:
        found = await self.store.find_wallet_ids(session, user_id, [wallet_id])
        if wallet_id not in found:
            raise ReferenceNotFoundError("Wallet", str(wallet_id))

        allocations = allocate_income(amount, pulls, context.savings.id)
        return [
            PlannedPosting(
                amount=allocation.amount,
                wallet_id=wallet_id,
                fund_id=allocation.fund_id,
                is_pending=is_pending,
                kind=PostingKind.INCOME_ALLOCATION,
                income_pull=allocation.percentage_used,
            )
            for allocation in allocations
        ]

    def _replay_pulls(
        self,
        allocations: Sequence[Posting],
        context: _FundContext,
        refresh: bool,
    ) -> list[FundPull]:
        """Pulls to split a rebuilt income with.

        Stored snapshots win unless a refresh is asked for or there is no
        snapshot to replay. Snapshot pulls of funds deleted since then are
        dropped and end up in the savings remainder.
        """
        has_snapshot = any(p.income_pull is not None for p in allocations)
        if refresh or not has_snapshot:
            return context.pulls
        return [
            FundPull(p.fund_id, p.income_pull)
            for p in allocations
            if p.income_pull is not None
            and p.fund_id != context.savings.id
            and p.fund_id in context.funds
        ]

    async def _settle(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        context: _FundContext,
        occurred_at: datetime,
        lines: Sequence[PlannedPosting],
    ) -> list[PlannedPosting]:
        tracker = OverdraftTracker(
            self.store, session, user_id, occurred_at, context.funds, context.savings.id
        )
        rows: list[PlannedPosting] = []
        # Inflows first: money moved within one fund nets out before any advance
        for line in sorted(lines, key=lambda line: line.amount < 0):
            rows.extend(await tracker.settle(line))
        return rows

    # Row builders

    @staticmethod
    def _banner(
        event_id: uuid.UUID,
        user_id: uuid.UUID,
        event_type: EventType,
        occurred_at: datetime,
        description: str | None,
        is_pending: bool,
    ) -> Posting:
        return Posting(
            id=event_id,
            user_id=user_id,
            event_type=event_type,
            occurred_at=occurred_at,
            description=description,
            is_pending=is_pending,
            status=PostingStatus.ACTIVE,
            is_posting=False,
            amount=Decimal("0"),
            kind=PostingKind.STANDARD,
        )

    @staticmethod
    def _children(
        event_id: uuid.UUID,
        user_id: uuid.UUID,
        occurred_at: datetime,
        rows: Sequence[PlannedPosting],
    ) -> list[Posting]:
        return [
            Posting(
                id=uuid.uuid4(),
                user_id=user_id,
                parent_id=event_id,
                occurred_at=occurred_at,
                description=row.description,
                is_pending=row.is_pending,
                status=PostingStatus.ACTIVE,
                is_posting=True,
                amount=row.amount,
                wallet_id=row.wallet_id,
                fund_id=row.fund_id,
                income_pull=row.income_pull,
                kind=row.kind,
            )
            for row in rows
        ]

    @staticmethod
    def _void_copy(event: Posting) -> Posting:
        """Keep the money side of a posting-only event before it turns into a banner."""
        return Posting(
            id=uuid.uuid4(),
            user_id=event.user_id,
            parent_id=event.id,
            occurred_at=event.occurred_at,
            description=event.description,
            is_pending=event.is_pending,
            status=PostingStatus.VOID,
            is_posting=True,
            amount=event.amount,
            wallet_id=event.wallet_id,
            fund_id=event.fund_id,
            income_pull=event.income_pull,
            kind=event.kind,
        )
