"""Fund management and income pull configuration."""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import (
    ConfigurationError,
    HasBalanceError,
    ProtectedFundError,
    ReferenceNotFoundError,
    ValidationError,
)
from fundbook.models.fund import Fund
from fundbook.schemas.fund import FundCreate, FundUpdate
from fundbook.services.balance_calculator import fold_totals, is_zero
from fundbook.services.income_allocator import HUNDRED, FundPull, validate_pulls
from fundbook.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullConfiguration:
    """Pull percentages of the non-savings funds and the implied savings share."""

    savings_fund_id: uuid.UUID
    pulls: list[FundPull]
    savings_percentage: Decimal


class FundService:
    """Create, update and soft-delete funds; manage income pulls.

    The savings fund is created by user bootstrap only. Its name and
    opening amount can change; its pull percentage and its existence
    cannot.
    """

    def __init__(self, store: LedgerStore | None = None) -> None:
        self.store = store or LedgerStore()

    async def _savings(self, session: AsyncSession, user_id: uuid.UUID) -> Fund:
        savings = await self.store.get_savings_fund(session, user_id)
        if savings is None:
            await self.store.get_user(session, user_id)
            raise ValidationError("No savings fund found; bootstrap the user first")
        return savings

    async def _check_pull_sum(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        overrides: dict[uuid.UUID, Decimal],
    ) -> None:
        """Validate the pull configuration that results from ``overrides``."""
        funds = await self.store.list_funds(session, user_id)
        savings_id = next((f.id for f in funds if f.is_savings), None)
        pulls = [
            FundPull(f.id, overrides.get(f.id, f.pull_percentage))
            for f in funds
            if not f.is_savings
        ]
        pulls.extend(
            FundPull(fund_id, pct)
            for fund_id, pct in overrides.items()
            if all(p.fund_id != fund_id for p in pulls)
        )
        try:
            validate_pulls(pulls, savings_id)
        except ConfigurationError as exc:
            logger.warning("Rejected pull configuration for user %s: %s", user_id, exc.message)
            raise

    async def create(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        data: FundCreate,
    ) -> Fund:
        """Create a non-savings fund.

        Raises:
            NotFoundError: If the user was never bootstrapped
            ConfigurationError: If its pull would push the pull sum above 100
        """
        await self.store.get_user(session, user_id)
        fund_id = uuid.uuid4()
        if data.pull_percentage > 0:
            await self._check_pull_sum(session, user_id, {fund_id: data.pull_percentage})
        fund = Fund(
            id=fund_id,
            user_id=user_id,
            name=data.name.strip(),
            opening_amount=data.opening_amount,
            pull_percentage=data.pull_percentage,
            is_savings=False,
        )
        session.add(fund)
        await session.flush()
        logger.info("Created fund %s for user %s", fund.id, user_id)
        return fund

    async def update(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        fund_id: uuid.UUID,
        data: FundUpdate,
    ) -> Fund:
        """Update name, opening amount or pull percentage.

        Raises:
            NotFoundError: If the fund does not exist, is deleted or is foreign
            ProtectedFundError: If the pull percentage of savings is changed
            ConfigurationError: If the new pull pushes the pull sum above 100
        """
        fund = await self.store.get_fund(session, user_id, fund_id)
        if data.pull_percentage is not None:
            if fund.is_savings:
                raise ProtectedFundError("change its pull percentage")
            await self._check_pull_sum(session, user_id, {fund.id: data.pull_percentage})
            fund.pull_percentage = data.pull_percentage
        if data.name is not None:
            fund.name = data.name.strip()
        if data.opening_amount is not None:
            fund.opening_amount = data.opening_amount
        await session.flush()
        return fund

    async def delete(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        fund_id: uuid.UUID,
    ) -> Fund:
        """Soft-delete a non-savings fund whose with-pending balance is zero.

        Raises:
            NotFoundError: If the fund does not exist, is deleted or is foreign
            ProtectedFundError: If the fund is the savings fund
            HasBalanceError: If the fund still holds money, pending included
        """
        fund = await self.store.get_fund(session, user_id, fund_id, for_update=True)
        if fund.is_savings:
            raise ProtectedFundError("delete it")

        totals = await self.store.fund_totals(session, user_id, fund_id=fund.id)
        balance = fold_totals({fund.id: fund.opening_amount}, totals)[fund.id]
        if not is_zero(balance.with_pending):
            raise HasBalanceError("Fund", str(fund.id), balance.with_pending)

        fund.deleted_at = datetime.now(timezone.utc)
        await session.flush()
        logger.info("Deleted fund %s", fund.id)
        return fund

    async def get_pulls(self, session: AsyncSession, user_id: uuid.UUID) -> PullConfiguration:
        funds = await self.store.list_funds(session, user_id)
        savings = next((f for f in funds if f.is_savings), None)
        if savings is None:
            raise ValidationError("No savings fund found; bootstrap the user first")
        pulls = [FundPull(f.id, f.pull_percentage) for f in funds if not f.is_savings]
        used = sum((p.percentage for p in pulls), Decimal("0"))
        return PullConfiguration(savings.id, pulls, HUNDRED - used)

    async def set_pulls(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        pulls: Sequence[FundPull],
    ) -> PullConfiguration:
        """Replace the pull configuration.

        Every non-savings fund missing from ``pulls`` is reset to 0.

        Raises:
            ValidationError: If savings is listed, a fund repeats or a
                percentage is outside 0-100
            ReferenceNotFoundError: If a fund is unknown, deleted or foreign
            ConfigurationError: If the percentages add up to more than 100
        """
        savings = await self._savings(session, user_id)
        try:
            validate_pulls(pulls, savings.id)
        except ConfigurationError as exc:
            logger.warning("Rejected pull configuration for user %s: %s", user_id, exc.message)
            raise

        funds = {f.id: f for f in await self.store.list_funds(session, user_id)}
        for pull in pulls:
            if pull.fund_id not in funds:
                raise ReferenceNotFoundError("Fund", str(pull.fund_id))

        requested = {pull.fund_id: pull.percentage for pull in pulls}
        for fund in funds.values():
            if not fund.is_savings:
                fund.pull_percentage = requested.get(fund.id, Decimal("0"))
        await session.flush()
        logger.info("Updated pull configuration for user %s", user_id)
        return await self.get_pulls(session, user_id)
