"""Wallet API endpoints."""

import uuid

from fastapi import APIRouter, Response

from fundbook.api.deps import Balances, CurrentUserId, DBSession, Wallets
from fundbook.db.session import transaction
from fundbook.schemas.wallet import WalletCreate, WalletRead, WalletUpdate

router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.get("", response_model=list[WalletRead])
async def list_wallets(session: DBSession, user_id: CurrentUserId, balances: Balances):
    """List open wallets with cleared and with-pending balances."""
    rows = await balances.wallet_balances(session, user_id)
    return [WalletRead.from_balance(wallet, balance) for wallet, balance in rows]


@router.post("", response_model=WalletRead, status_code=201)
async def create_wallet(
    data: WalletCreate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Wallets,
    balances: Balances,
):
    async with transaction(session, "create wallet"):
        wallet = await service.create(session, user_id, data)
    result = await balances.compute_balances(session, user_id, wallet.id)
    return WalletRead.from_balance(wallet, result.raw)


@router.patch("/{wallet_id}", response_model=WalletRead)
async def update_wallet(
    wallet_id: uuid.UUID,
    data: WalletUpdate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Wallets,
    balances: Balances,
):
    """Rename a wallet or change its opening amount."""
    async with transaction(session, "update wallet"):
        wallet = await service.update(session, user_id, wallet_id, data)
    result = await balances.compute_balances(session, user_id, wallet.id)
    return WalletRead.from_balance(wallet, result.raw)


@router.delete("/{wallet_id}", status_code=204)
async def delete_wallet(
    wallet_id: uuid.UUID,
    session: DBSession,
    user_id: CurrentUserId,
    service: Wallets,
):
    """
    Soft-delete a wallet.

    Fails with 400 while the wallet's with-pending balance is not zero.
    """
    async with transaction(session, "delete wallet"):
        await service.delete(session, user_id, wallet_id)
    return Response(status_code=204)
