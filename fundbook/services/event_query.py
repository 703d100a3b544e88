"""Event listing: newest first, each event as its tagged shape."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from fundbook.core.exceptions import ValidationError
from fundbook.models.posting import Posting
from fundbook.schemas.event import (
    EventPage,
    GroupedEventRead,
    PostingRead,
    SingleLineEventRead,
)
from fundbook.services.ledger_store import LedgerStore


class EventQueryService:
    """Builds event projections for listings.

    Overdraft advances and repayments are engine bookkeeping and are left
    out of grouped events unless ``include_corrections`` is set.
    """

    def __init__(self, store: LedgerStore | None = None, page_size: int = 20) -> None:
        self.store = store or LedgerStore()
        self.page_size = page_size

    async def list_events(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        page: int = 0,
        include_corrections: bool = False,
    ) -> EventPage:
        if page < 0:
            raise ValidationError("Invalid page")

        events = await self.store.list_events(
            session, user_id, offset=page * self.page_size, limit=self.page_size + 1
        )
        has_more = len(events) > self.page_size
        events = events[: self.page_size]

        children = await self.store.get_children(session, user_id, [e.id for e in events])
        by_parent: dict[uuid.UUID, list[Posting]] = {}
        for child in children:
            if child.kind.is_correction and not include_corrections:
                continue
            by_parent.setdefault(child.parent_id, []).append(child)

        wallet_names = await self.store.wallet_names(session, user_id)
        fund_names = await self.store.fund_names(session, user_id)

        def posting_read(posting: Posting) -> PostingRead:
            return PostingRead(
                id=posting.id,
                amount=posting.amount,
                wallet_id=posting.wallet_id,
                wallet_name=wallet_names.get(posting.wallet_id),
                fund_id=posting.fund_id,
                fund_name=fund_names.get(posting.fund_id),
                description=posting.description,
                is_pending=posting.is_pending,
                kind=posting.kind,
                income_pull=posting.income_pull,
            )

        projected = []
        for event in events:
            common = dict(
                id=event.id,
                event_type=event.event_type,
                occurred_at=event.occurred_at,
                description=event.description,
                is_pending=event.is_pending,
            )
            if event.is_posting:
                projected.append(SingleLineEventRead(posting=posting_read(event), **common))
            else:
                projected.append(
                    GroupedEventRead(
                        children=[posting_read(c) for c in by_parent.get(event.id, [])],
                        **common,
                    )
                )

        return EventPage(
            events=projected,
            current_page=page,
            next_page=page + 1 if has_more else -1,
        )
