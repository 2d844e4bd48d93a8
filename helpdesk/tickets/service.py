from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from .errors import TicketNotFoundError
from .models import DateRange, Ticket
from .state import TicketStateMachine, TicketTransition
from .store import TicketStore

logger = logging.getLogger(__name__)


class TicketService:
    """High level orchestration for ticket lifecycle operations.

    Every single-ticket transition is forwarded to the store as exactly one
    conditional update. A ticket that does not exist and a ticket that is in
    the wrong state both surface as :class:`TicketNotFoundError`.
    """

    def __init__(self, store: TicketStore, *, state_machine: type[TicketStateMachine] = TicketStateMachine) -> None:
        self._store = store
        self._state_machine = state_machine

    @property
    def store(self) -> TicketStore:
        return self._store

    async def create_ticket(self, *, subject: str | None, description: str | None) -> Ticket:
        ticket = await self._store.create(subject, description)
        logger.info("Created ticket %s", ticket.id)
        return ticket

    async def start_ticket(self, ticket_id: UUID | str) -> Ticket:
        return await self._apply(self._state_machine.START, ticket_id)

    async def complete_ticket(self, ticket_id: UUID | str, *, resolution: str | None = None) -> Ticket:
        return await self._apply(self._state_machine.COMPLETE, ticket_id, resolution)

    async def cancel_ticket(self, ticket_id: UUID | str, *, cancellation_reason: str | None = None) -> Ticket:
        return await self._apply(self._state_machine.CANCEL, ticket_id, cancellation_reason)

    async def cancel_all_in_progress(self, *, cancellation_reason: str | None = None) -> int:
        transition = self._state_machine.CANCEL_ALL
        modified = await self._store.bulk_transition(
            transition.condition,
            transition.target,
            {transition.extra_field: cancellation_reason},
        )
        logger.info("Cancelled %d in-progress tickets", modified)
        return modified

    async def list_tickets(
        self,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Ticket]:
        return await self._store.list_tickets(DateRange(start=start_date, end=end_date))

    async def _apply(
        self,
        transition: TicketTransition,
        ticket_id: UUID | str,
        value: str | None = None,
    ) -> Ticket:
        parsed_id = _parse_ticket_id(ticket_id)
        extra_fields = {transition.extra_field: value} if transition.extra_field else None
        try:
            ticket = await self._store.transition(parsed_id, transition.condition, transition.target, extra_fields)
        except TicketNotFoundError:
            logger.info("Rejected %s for ticket %s", transition.name, ticket_id)
            raise
        logger.info("Ticket %s moved to %s via %s", ticket.id, ticket.status.value, transition.name)
        return ticket


def _parse_ticket_id(ticket_id: UUID | str) -> UUID:
    if isinstance(ticket_id, UUID):
        return ticket_id
    try:
        return UUID(str(ticket_id))
    except ValueError as exc:
        raise TicketNotFoundError(f"Ticket {ticket_id} not found or not in the required state") from exc
