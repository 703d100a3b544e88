"""Event API endpoints."""

import uuid

from fastapi import APIRouter, Query

from fundbook.api.deps import AppSettings, CurrentUserId, DBSession, EventQueries, Postings
from fundbook.db.session import transaction
from fundbook.schemas.event import (
    ClearPendingResult,
    EventCreate,
    EventMutationResult,
    EventPage,
    EventPatch,
)
from fundbook.worker import audit_log_event

router = APIRouter(prefix="/events", tags=["events"])


def queue_audit(
    settings: AppSettings,
    event_id: uuid.UUID | None,
    action: str,
    user_id: uuid.UUID,
    **data,
) -> None:
    """Queue the audit task. Call only after the transaction committed."""
    if not settings.AUDIT_EVENTS:
        return
    audit_log_event.delay(
        event_id=str(event_id) if event_id is not None else None,
        action=action,
        data={"user_id": str(user_id), **data},
    )


@router.get("", response_model=EventPage)
async def list_events(
    session: DBSession,
    user_id: CurrentUserId,
    service: EventQueries,
    page: int = Query(0, ge=0),
    include_corrections: bool = False,
):
    """
    List events, newest first.

    - **page**: zero-based page index; the response's `next_page` is -1 on the last page
    - **include_corrections**: also show overdraft advance/repayment postings
    """
    return await service.list_events(
        session, user_id, page=page, include_corrections=include_corrections
    )


@router.post("", response_model=EventMutationResult, status_code=201)
async def create_event(
    request: EventCreate,
    session: DBSession,
    user_id: CurrentUserId,
    service: Postings,
    settings: AppSettings,
):
    """
    Create an expense/transfer (`type: "expense"`, one or more lines) or an
    income (`type: "income"`, wallet and amount split across funds).

    All postings of the event are written in one transaction.
    """
    async with transaction(session, "create event"):
        event_id = await service.create_event(session, user_id, request)

    # Transaction committed; safe to queue background tasks
    queue_audit(settings, event_id, "created", user_id, request=request.model_dump(mode="json"))
    return EventMutationResult(event_id=event_id)


@router.post("/clear-pending", response_model=ClearPendingResult)
async def clear_pending(
    session: DBSession,
    user_id: CurrentUserId,
    service: Postings,
    settings: AppSettings,
):
    """Mark every pending posting and event of the user as cleared."""
    async with transaction(session, "clear pending"):
        cleared = await service.clear_all_pending(session, user_id)

    queue_audit(settings, None, "cleared_pending", user_id, cleared=cleared)
    return ClearPendingResult(cleared=cleared)


@router.patch("/{event_id}", response_model=EventMutationResult)
async def edit_event(
    event_id: uuid.UUID,
    patch: EventPatch,
    session: DBSession,
    user_id: CurrentUserId,
    service: Postings,
    settings: AppSettings,
):
    """
    Edit an event.

    Date, description and pending changes are applied in place. Changing
    the type, the lines, the income wallet/amount or asking for
    `refresh_allocation` rebuilds the event's postings.
    """
    async with transaction(session, "edit event"):
        event_id = await service.edit_event(session, user_id, event_id, patch)

    queue_audit(
        settings, event_id, "edited", user_id, patch=patch.model_dump(mode="json", exclude_unset=True)
    )
    return EventMutationResult(event_id=event_id)


@router.delete("/{event_id}", response_model=EventMutationResult)
async def delete_event(
    event_id: uuid.UUID,
    session: DBSession,
    user_id: CurrentUserId,
    service: Postings,
    settings: AppSettings,
):
    """Delete an event and all of its postings. Rows are kept for audit."""
    async with transaction(session, "delete event"):
        event_id = await service.delete_event(session, user_id, event_id)

    queue_audit(settings, event_id, "deleted", user_id)
    return EventMutationResult(event_id=event_id)
