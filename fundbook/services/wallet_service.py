"""Wallet management."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import HasBalanceError
from fundbook.models.wallet import Wallet
from fundbook.schemas.wallet import WalletCreate, WalletUpdate
from fundbook.services.balance_calculator import fold_totals, is_zero
from fundbook.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class WalletService:
    """Create, update and soft-delete wallets."""

    def __init__(self, store: LedgerStore | None = None) -> None:
        self.store = store or LedgerStore()

    async def create(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        data: WalletCreate,
    ) -> Wallet:
        """Open a wallet.

        Raises:
            NotFoundError: If the user was never bootstrapped
        """
        await self.store.get_user(session, user_id)
        wallet = Wallet(
            id=uuid.uuid4(),
            user_id=user_id,
            name=data.name.strip(),
            opening_amount=data.opening_amount,
        )
        session.add(wallet)
        await session.flush()
        logger.info("Created wallet %s for user %s", wallet.id, user_id)
        return wallet

    async def update(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        wallet_id: uuid.UUID,
        data: WalletUpdate,
    ) -> Wallet:
        """Rename a wallet or change its opening amount.

        Raises:
            NotFoundError: If the wallet does not exist, is deleted or is foreign
        """
        wallet = await self.store.get_wallet(session, user_id, wallet_id)
        if data.name is not None:
            wallet.name = data.name.strip()
        if data.opening_amount is not None:
            wallet.opening_amount = data.opening_amount
        await session.flush()
        return wallet

    async def delete(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        wallet_id: uuid.UUID,
    ) -> Wallet:
        """Soft-delete a wallet whose with-pending balance is zero.

        The balance is read after locking the wallet row, in the same
        transaction that marks it deleted.

        Raises:
            NotFoundError: If the wallet does not exist, is deleted or is foreign
            HasBalanceError: If the wallet still holds money, pending included
        """
        wallet = await self.store.get_wallet(session, user_id, wallet_id, for_update=True)
        totals = await self.store.wallet_totals(session, user_id, wallet_id=wallet.id)
        balance = fold_totals({wallet.id: wallet.opening_amount}, totals)[wallet.id]
        if not is_zero(balance.with_pending):
            raise HasBalanceError("Wallet", str(wallet.id), balance.with_pending)

        wallet.deleted_at = datetime.now(timezone.utc)
        await session.flush()
        logger.info("Deleted wallet %s", wallet.id)
        return wallet
