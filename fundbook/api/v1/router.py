"""API v1 router aggregation."""

from fastapi import APIRouter

from fundbook.api.v1 import balances, events, funds, users, wallets

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(users.router)
api_router.include_router(wallets.router)
api_router.include_router(funds.router)
api_router.include_router(balances.router)
api_router.include_router(events.router)
