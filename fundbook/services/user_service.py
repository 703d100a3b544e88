"""User bootstrap."""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.models.fund import Fund
from fundbook.models.user import User
from fundbook.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

SAVINGS_FUND_NAME = "Savings"


@dataclass(frozen=True)
class Bootstrap:
    user: User
    savings_fund: Fund


class UserService:
    """Links an externally authenticated identity to a ledger user."""

    def __init__(self, store: LedgerStore | None = None) -> None:
        self.store = store or LedgerStore()

    async def bootstrap(
        self,
        session: AsyncSession,
        external_id: str,
        email: str,
        username: str | None = None,
    ) -> Bootstrap:
        """Upsert the user and make sure they own a savings fund.

        The user is matched by external id first, then by email, so an
        account created before the identity provider changed is re-linked
        rather than duplicated. Safe to call on every sign-in.
        """
        result = await session.execute(
            select(User)
            .where(or_(User.external_id == external_id, User.email == email))
            .order_by((User.external_id == external_id).desc())
        )
        user = result.scalars().first()

        if user is None:
            user = User(
                id=uuid.uuid4(),
                external_id=external_id,
                email=email,
                username=username or email.split("@")[0],
            )
            session.add(user)
            await session.flush()
            logger.info("Created user %s", user.id)
        else:
            user.external_id = external_id
            user.email = email
            if username:
                user.username = username

        savings = await self.store.get_savings_fund(session, user.id)
        if savings is None:
            savings = Fund(
                id=uuid.uuid4(),
                user_id=user.id,
                name=SAVINGS_FUND_NAME,
                opening_amount=Decimal("0"),
                pull_percentage=Decimal("0"),
                is_savings=True,
            )
            session.add(savings)
            logger.info("Created savings fund %s for user %s", savings.id, user.id)

        await session.flush()
        return Bootstrap(user, savings)
