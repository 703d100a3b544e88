"""User API endpoints."""

from fastapi import APIRouter

from fundbook.api.deps import DBSession, Users
from fundbook.db.session import transaction
from fundbook.schemas.user import BootstrapRead, UserBootstrap, UserRead

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/bootstrap", response_model=BootstrapRead)
async def bootstrap_user(data: UserBootstrap, session: DBSession, service: Users):
    """
    Link an authenticated identity to a ledger user.

    Called by the authentication layer on sign-in. Creates the user and
    their savings fund on first call; later calls are no-ops apart from
    refreshing the email and username.
    """
    async with transaction(session, "bootstrap user"):
        result = await service.bootstrap(
            session, data.external_id, data.email, data.username
        )
    return BootstrapRead(
        user=UserRead.model_validate(result.user),
        savings_fund_id=result.savings_fund.id,
    )
