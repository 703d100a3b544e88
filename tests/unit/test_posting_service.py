"""Tests for creating, editing and deleting ledger events."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    ReferenceNotFoundError,
    ValidationError,
)
from fundbook.models.posting import EventType, Posting, PostingKind, PostingStatus
from fundbook.models.user import User
from fundbook.schemas.event import (
    EventPatch,
    ExpenseEventCreate,
    IncomeEventCreate,
    PostingLineIn,
)
from fundbook.schemas.fund import FundUpdate
from fundbook.services.balance_service import BalanceService
from fundbook.services.fund_service import FundService
from fundbook.services.posting_service import PostingService
from fundbook.services.user_service import UserService

MARCH_1 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def expense(*lines: PostingLineIn, pending: bool = False, when: datetime = MARCH_1, description: str | None = None) -> ExpenseEventCreate:
    return ExpenseEventCreate(
        occurred_at=when, description=description, is_pending=pending, lines=list(lines)
    )


def line(wallet, fund, amount: str, **kwargs) -> PostingLineIn:
    return PostingLineIn(
        wallet_id=wallet.id if wallet else None,
        fund_id=fund.id if fund else None,
        amount=Decimal(amount),
        **kwargs,
    )


def income(wallet, amount: str, pending: bool = False, when: datetime = MARCH_1) -> IncomeEventCreate:
    return IncomeEventCreate(
        type="income",
        occurred_at=when,
        is_pending=pending,
        wallet_id=wallet.id,
        amount=Decimal(amount),
    )


async def rows_of(session: AsyncSession, event_id: uuid.UUID, status: PostingStatus | None = PostingStatus.ACTIVE) -> list[Posting]:
    stmt = select(Posting).where(Posting.parent_id == event_id)
    if status is not None:
        stmt = stmt.where(Posting.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def fund_raw(session: AsyncSession, user_id: uuid.UUID) -> dict[uuid.UUID, Decimal]:
    balances = await BalanceService().fund_balances(session, user_id)
    return {fund.id: balance.raw.with_pending for fund, balance in balances}


async def wallet_raw(session: AsyncSession, user_id: uuid.UUID) -> dict[uuid.UUID, Decimal]:
    balances = await BalanceService().wallet_balances(session, user_id)
    return {wallet.id: pair.with_pending for wallet, pair in balances}


@pytest.fixture
def service() -> PostingService:
    return PostingService()


class TestCreateExpense:
    @pytest.mark.asyncio
    async def test_single_line_is_a_posting_only_event(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet("Checking", opening="100")
        groceries = await make_fund("Groceries", opening="100")

        event_id = await service.create_event(
            session, user_id, expense(line(checking, groceries, "-30"), description="Market")
        )
        await session.commit()

        event = await session.get(Posting, event_id)
        assert event.is_posting
        assert event.parent_id is None
        assert event.event_type is EventType.EXPENSE
        assert event.amount == Decimal("-30")
        assert event.description == "Market"
        assert await rows_of(session, event_id) == []
        assert (await wallet_raw(session, user_id))[checking.id] == Decimal("70")
        assert (await fund_raw(session, user_id))[groceries.id] == Decimal("70")

    @pytest.mark.asyncio
    async def test_two_line_transfer_within_one_fund(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet("Checking", opening="500")
        cash = await make_wallet("Cash")
        groceries = await make_fund("Groceries", opening="0")

        event_id = await service.create_event(
            session,
            user_id,
            expense(line(checking, groceries, "-200"), line(cash, groceries, "200")),
        )
        await session.commit()

        event = await session.get(Posting, event_id)
        assert not event.is_posting
        assert event.amount == Decimal("0")
        wallets = await wallet_raw(session, user_id)
        funds = await fund_raw(session, user_id)
        assert wallets[checking.id] == Decimal("300")
        assert wallets[cash.id] == Decimal("200")
        assert funds[groceries.id] == Decimal("0")

    @pytest.mark.asyncio
    async def test_line_description_and_pending_override(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        fund = await make_fund(opening="100")

        event_id = await service.create_event(
            session,
            user_id,
            expense(
                line(checking, fund, "-10", description="bread"),
                line(checking, fund, "-5", is_pending=True),
                pending=False,
            ),
        )
        await session.commit()

        children = {c.amount: c for c in await rows_of(session, event_id)}
        assert children[Decimal("-10")].description == "bread"
        assert not children[Decimal("-10")].is_pending
        assert children[Decimal("-5")].is_pending

    @pytest.mark.asyncio
    async def test_banner_is_pending_only_when_a_line_is(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        fund = await make_fund(opening="100")

        cleared_id = await service.create_event(
            session,
            user_id,
            expense(
                line(checking, fund, "-10", is_pending=False),
                line(checking, fund, "-5", is_pending=False),
                pending=True,
            ),
        )
        mixed_id = await service.create_event(
            session,
            user_id,
            expense(line(checking, fund, "-1"), line(checking, fund, "-2", is_pending=True)),
        )
        await session.commit()

        assert not (await session.get(Posting, cleared_id)).is_pending
        assert (await session.get(Posting, mixed_id)).is_pending

    @pytest.mark.asyncio
    async def test_both_references_required_for_user_lines(self, session, user_id, service, make_wallet) -> None:
        checking = await make_wallet()

        with pytest.raises(ValidationError, match="both"):
            await service.create_event(session, user_id, expense(line(checking, None, "-10")))

    @pytest.mark.asyncio
    async def test_wallet_only_line_allowed_when_rule_is_off(self, session, user_id, make_wallet) -> None:
        checking = await make_wallet(opening="10")
        service = PostingService(require_wallet_and_fund=False)

        event_id = await service.create_event(session, user_id, expense(line(checking, None, "-10")))
        await session.commit()

        event = await session.get(Posting, event_id)
        assert event.fund_id is None
        assert (await wallet_raw(session, user_id))[checking.id] == Decimal("0")

    @pytest.mark.asyncio
    async def test_foreign_wallet_is_a_reference_error(self, session, user_id, service, make_wallet, make_fund) -> None:
        other = await UserService().bootstrap(session, "auth|other", "other@example.com")
        await session.commit()
        foreign = await make_wallet("Theirs", owner_id=other.user.id)
        fund = await make_fund()

        with pytest.raises(ReferenceNotFoundError) as exc_info:
            await service.create_event(session, user_id, expense(line(foreign, fund, "-1")))

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_deleted_fund_is_a_reference_error(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet()
        fund = await make_fund()
        await FundService().delete(session, user_id, fund.id)
        await session.commit()

        with pytest.raises(ReferenceNotFoundError):
            await service.create_event(session, user_id, expense(line(checking, fund, "-1")))

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, session, service) -> None:
        with pytest.raises(NotFoundError, match="User"):
            await service.create_event(
                session,
                uuid.uuid4(),
                expense(PostingLineIn(wallet_id=uuid.uuid4(), fund_id=uuid.uuid4(), amount=Decimal("-1"))),
            )

    @pytest.mark.asyncio
    async def test_user_without_savings_fund_cannot_post(self, session, service) -> None:
        user = User(id=uuid.uuid4(), external_id="auth|bare", email="bare@example.com", username="bare")
        session.add(user)
        await session.flush()

        with pytest.raises(ValidationError, match="bootstrap"):
            await service.create_event(
                session,
                user.id,
                expense(PostingLineIn(wallet_id=uuid.uuid4(), fund_id=uuid.uuid4(), amount=Decimal("-1"))),
            )


class TestCreateIncome:
    @pytest.mark.asyncio
    async def test_income_split_thirty_twenty_remainder(self, session, user_id, savings_id, service, make_wallet, make_fund) -> None:
        wallet_a = await make_wallet("A")
        fund_x = await make_fund("X", pull="30")
        fund_y = await make_fund("Y", pull="20")

        event_id = await service.create_event(session, user_id, income(wallet_a, "1000"))
        await session.commit()

        event = await session.get(Posting, event_id)
        assert event.event_type is EventType.INCOME
        assert not event.is_posting

        children = {c.fund_id: c for c in await rows_of(session, event_id)}
        assert children[fund_x.id].amount == Decimal("300")
        assert children[fund_y.id].amount == Decimal("200")
        assert children[savings_id].amount == Decimal("500")
        assert children[fund_x.id].income_pull == Decimal("30")
        assert children[savings_id].income_pull == Decimal("50")
        assert all(c.wallet_id == wallet_a.id for c in children.values())
        assert all(c.kind is PostingKind.INCOME_ALLOCATION for c in children.values())

        assert (await wallet_raw(session, user_id))[wallet_a.id] == Decimal("1000")

    @pytest.mark.asyncio
    async def test_income_without_pulls_is_still_grouped(self, session, user_id, savings_id, service, make_wallet) -> None:
        wallet = await make_wallet()

        event_id = await service.create_event(session, user_id, income(wallet, "75"))
        await session.commit()

        children = await rows_of(session, event_id)
        assert len(children) == 1
        assert children[0].fund_id == savings_id
        assert children[0].income_pull == Decimal("100")

    @pytest.mark.asyncio
    async def test_pull_sum_above_hundred_is_a_configuration_error(self, session, user_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet()
        await make_fund(pull="60")
        other = await make_fund("Other", pull="40")
        # Bypass the service guard to simulate a configuration written elsewhere
        other.pull_percentage = Decimal("41")
        await session.commit()

        with pytest.raises(ConfigurationError):
            await service.create_event(session, user_id, income(wallet, "100"))

    @pytest.mark.asyncio
    async def test_unknown_income_wallet(self, session, user_id, service) -> None:
        with pytest.raises(ReferenceNotFoundError):
            await service.create_event(
                session,
                user_id,
                IncomeEventCreate(
                    type="income", occurred_at=MARCH_1, wallet_id=uuid.uuid4(), amount=Decimal("1")
                ),
            )


class TestEditEvent:
    @pytest.mark.asyncio
    async def test_income_edit_replays_stored_pulls(self, session, user_id, savings_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet()
        fund_x = await make_fund("X", pull="30")
        event_id = await service.create_event(session, user_id, income(wallet, "1000"))
        await session.commit()

        await FundService().update(session, user_id, fund_x.id, FundUpdate(pull_percentage=Decimal("10")))
        await service.edit_event(session, user_id, event_id, EventPatch(amount=Decimal("2000")))
        await session.commit()

        children = {c.fund_id: c for c in await rows_of(session, event_id)}
        assert children[fund_x.id].amount == Decimal("600")
        assert children[savings_id].amount == Decimal("1400")
        assert len(await rows_of(session, event_id, PostingStatus.VOID)) == 2
        assert (await wallet_raw(session, user_id))[wallet.id] == Decimal("2000")

    @pytest.mark.asyncio
    async def test_refresh_allocation_uses_current_pulls(self, session, user_id, savings_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet()
        fund_x = await make_fund("X", pull="30")
        event_id = await service.create_event(session, user_id, income(wallet, "1000"))
        await session.commit()

        await FundService().update(session, user_id, fund_x.id, FundUpdate(pull_percentage=Decimal("10")))
        await service.edit_event(session, user_id, event_id, EventPatch(refresh_allocation=True))
        await session.commit()

        children = {c.fund_id: c for c in await rows_of(session, event_id)}
        assert children[fund_x.id].amount == Decimal("100")
        assert children[fund_x.id].income_pull == Decimal("10")
        assert children[savings_id].amount == Decimal("900")

    @pytest.mark.asyncio
    async def test_income_edit_moves_to_another_wallet(self, session, user_id, service, make_wallet) -> None:
        first = await make_wallet("First")
        second = await make_wallet("Second")
        event_id = await service.create_event(session, user_id, income(first, "40"))
        await session.commit()

        await service.edit_event(session, user_id, event_id, EventPatch(wallet_id=second.id))
        await session.commit()

        wallets = await wallet_raw(session, user_id)
        assert wallets[first.id] == Decimal("0")
        assert wallets[second.id] == Decimal("40")

    @pytest.mark.asyncio
    async def test_metadata_edit_updates_in_place(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        fund = await make_fund(opening="100")
        event_id = await service.create_event(
            session,
            user_id,
            expense(line(checking, fund, "-10"), line(checking, fund, "-20"), pending=True),
        )
        await session.commit()
        before = {c.id for c in await rows_of(session, event_id)}

        later = MARCH_1 + timedelta(days=2)
        await service.edit_event(
            session,
            user_id,
            event_id,
            EventPatch(occurred_at=later, description="renamed", is_pending=False),
        )
        await session.commit()

        children = await rows_of(session, event_id)
        assert {c.id for c in children} == before
        assert all(not c.is_pending for c in children)
        assert await rows_of(session, event_id, PostingStatus.VOID) == []
        event = await session.get(Posting, event_id)
        assert event.description == "renamed"
        assert not event.is_pending

    @pytest.mark.asyncio
    async def test_description_only_edit_keeps_line_pending_flags(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        fund = await make_fund(opening="100")
        event_id = await service.create_event(
            session,
            user_id,
            expense(line(checking, fund, "-10"), line(checking, fund, "-5", is_pending=True)),
        )
        await session.commit()

        await service.edit_event(session, user_id, event_id, EventPatch(description="x"))
        await session.commit()

        flags = {c.amount: c.is_pending for c in await rows_of(session, event_id)}
        assert flags == {Decimal("-10"): False, Decimal("-5"): True}

    @pytest.mark.asyncio
    async def test_posting_only_event_rebuilt_into_grouped_event(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        cash = await make_wallet("Cash")
        fund = await make_fund(opening="100")
        event_id = await service.create_event(session, user_id, expense(line(checking, fund, "-30")))
        await session.commit()

        await service.edit_event(
            session,
            user_id,
            event_id,
            EventPatch(lines=[line(checking, fund, "-10"), line(cash, fund, "-15")]),
        )
        await session.commit()

        event = await session.get(Posting, event_id)
        assert not event.is_posting
        assert event.amount == Decimal("0")
        assert event.wallet_id is None

        voided = await rows_of(session, event_id, PostingStatus.VOID)
        assert [v.amount for v in voided] == [Decimal("-30")]
        assert len(await rows_of(session, event_id)) == 2

        wallets = await wallet_raw(session, user_id)
        assert wallets[checking.id] == Decimal("90")
        assert wallets[cash.id] == Decimal("-15")
        assert (await fund_raw(session, user_id))[fund.id] == Decimal("75")

    @pytest.mark.asyncio
    async def test_expense_to_income_needs_wallet_and_amount(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="100")
        fund = await make_fund(opening="100")
        event_id = await service.create_event(session, user_id, expense(line(checking, fund, "-30")))
        await session.commit()

        with pytest.raises(ValidationError):
            await service.edit_event(session, user_id, event_id, EventPatch(type=EventType.INCOME))

    @pytest.mark.asyncio
    async def test_income_to_expense_without_lines_is_rejected(self, session, user_id, service, make_wallet) -> None:
        wallet = await make_wallet()
        event_id = await service.create_event(session, user_id, income(wallet, "10"))
        await session.commit()

        with pytest.raises(ValidationError, match="Missing lines"):
            await service.edit_event(session, user_id, event_id, EventPatch(type=EventType.EXPENSE))

    @pytest.mark.asyncio
    async def test_amount_patch_on_expense_is_rejected(self, session, user_id, service, make_wallet, make_fund) -> None:
        checking = await make_wallet(opening="500")
        fund = await make_fund(opening="500")
        event_id = await service.create_event(session, user_id, expense(line(checking, fund, "-50")))
        await session.commit()

        with pytest.raises(ValidationError, match="send lines"):
            await service.edit_event(session, user_id, event_id, EventPatch(amount=Decimal("80")))
        with pytest.raises(ValidationError, match="send lines"):
            await service.edit_event(session, user_id, event_id, EventPatch(wallet_id=checking.id))

        assert (await wallet_raw(session, user_id))[checking.id] == Decimal("450")

    @pytest.mark.asyncio
    async def test_lines_patch_on_income_is_rejected(self, session, user_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet()
        fund = await make_fund()
        event_id = await service.create_event(session, user_id, income(wallet, "10"))
        await session.commit()

        with pytest.raises(ValidationError, match="not lines"):
            await service.edit_event(
                session, user_id, event_id, EventPatch(lines=[line(wallet, fund, "-4")])
            )

    @pytest.mark.asyncio
    async def test_edit_unknown_event(self, session, user_id, service) -> None:
        with pytest.raises(NotFoundError):
            await service.edit_event(session, user_id, uuid.uuid4(), EventPatch(description="x"))


class TestDeleteAndClear:
    @pytest.mark.asyncio
    async def test_delete_marks_event_and_children(self, session, user_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet()
        await make_fund(pull="25")
        event_id = await service.create_event(session, user_id, income(wallet, "80"))
        await session.commit()

        await service.delete_event(session, user_id, event_id)
        await session.commit()

        event = await session.get(Posting, event_id)
        assert event.status is PostingStatus.DELETED
        assert len(await rows_of(session, event_id, PostingStatus.DELETED)) == 2
        assert (await wallet_raw(session, user_id))[wallet.id] == Decimal("0")
        assert all(v == Decimal("0") for v in (await fund_raw(session, user_id)).values())

        with pytest.raises(NotFoundError):
            await service.delete_event(session, user_id, event_id)

    @pytest.mark.asyncio
    async def test_other_users_cannot_delete(self, session, user_id, service, make_wallet) -> None:
        wallet = await make_wallet()
        event_id = await service.create_event(session, user_id, income(wallet, "5"))
        await session.commit()

        with pytest.raises(NotFoundError):
            await service.delete_event(session, uuid.uuid4(), event_id)

    @pytest.mark.asyncio
    async def test_clear_all_pending_converges_views(self, session, user_id, service, make_wallet, make_fund) -> None:
        wallet = await make_wallet(opening="50")
        fund = await make_fund(opening="50", pull="50")
        await service.create_event(session, user_id, income(wallet, "100", pending=True))
        await service.create_event(session, user_id, expense(line(wallet, fund, "-20"), pending=True))
        await session.commit()

        cleared = await service.clear_all_pending(session, user_id)
        await session.commit()

        assert cleared > 0
        balances = BalanceService()
        for _, pair in await balances.wallet_balances(session, user_id):
            assert pair.cleared == pair.with_pending
        for _, balance in await balances.fund_balances(session, user_id):
            assert balance.raw.cleared == balance.raw.with_pending
        assert await service.clear_all_pending(session, user_id) == 0
