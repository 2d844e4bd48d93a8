from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Mapping, Protocol
from uuid import UUID, uuid4

from .errors import TicketNotFoundError, TicketValidationError
from .models import DateRange, Ticket
from .state import StatusCondition, TicketStateMachine, TicketStatus

# Ticket fields a transition is allowed to write besides ``status``.
TRANSITION_FIELDS = frozenset({"resolution", "cancellation_reason"})


class TicketStore(Protocol):
    """Persistence contract for ticket records.

    Every mutating call is a single atomic operation against the backing
    store: a conditional transition either applies completely or raises
    :class:`TicketNotFoundError` without touching the record.
    """

    async def create(self, subject: str | None, description: str | None) -> Ticket:
        ...

    async def transition(
        self,
        ticket_id: UUID,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> Ticket:
        ...

    async def bulk_transition(
        self,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> int:
        ...

    async def list_tickets(self, date_range: DateRange | None = None) -> list[Ticket]:
        ...

    async def count(self) -> int:
        ...


def validate_new_ticket(subject: str | None, description: str | None) -> tuple[str, str]:
    """Return the creation fields, rejecting missing or blank values."""

    missing = [
        name
        for name, value in (("subject", subject), ("description", description))
        if value is None or not value.strip()
    ]
    if missing:
        raise TicketValidationError(f"Ticket {' and '.join(missing)} must not be empty")
    return subject, description  # type: ignore[return-value]


def validate_extra_fields(extra_fields: Mapping[str, str | None] | None) -> dict[str, str | None]:
    fields = dict(extra_fields or {})
    unknown = set(fields) - TRANSITION_FIELDS
    if unknown:
        raise ValueError(f"Unsupported transition fields: {', '.join(sorted(unknown))}")
    return fields


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryTicketStore:
    """Process-local store keeping tickets in a dictionary.

    Check and update happen without yielding to the event loop, so each call
    is atomic with respect to other coroutines on the same loop.
    """

    def __init__(self) -> None:
        self._tickets: dict[UUID, Ticket] = {}

    async def create(self, subject: str | None, description: str | None) -> Ticket:
        subject, description = validate_new_ticket(subject, description)
        ticket_id = uuid4()
        while ticket_id in self._tickets:
            ticket_id = uuid4()
        ticket = Ticket(
            id=ticket_id,
            subject=subject,
            description=description,
            status=TicketStateMachine.initial_state(),
            created_at=utcnow(),
        )
        self._tickets[ticket_id] = ticket
        return replace(ticket)

    async def transition(
        self,
        ticket_id: UUID,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> Ticket:
        fields = validate_extra_fields(extra_fields)
        ticket = self._tickets.get(ticket_id)
        if ticket is None or not condition.matches(ticket.status):
            raise TicketNotFoundError(f"Ticket {ticket_id} not found or not in the required state")
        self._apply(ticket, new_status, fields)
        return replace(ticket)

    async def bulk_transition(
        self,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> int:
        fields = validate_extra_fields(extra_fields)
        matched = [ticket for ticket in self._tickets.values() if condition.matches(ticket.status)]
        for ticket in matched:
            self._apply(ticket, new_status, fields)
        return len(matched)

    async def list_tickets(self, date_range: DateRange | None = None) -> list[Ticket]:
        window = date_range or DateRange()
        tickets = [replace(ticket) for ticket in self._tickets.values() if window.contains(ticket.created_at)]
        tickets.sort(key=lambda ticket: ticket.created_at, reverse=True)
        return tickets

    async def count(self) -> int:
        return len(self._tickets)

    @staticmethod
    def _apply(ticket: Ticket, new_status: TicketStatus, fields: Mapping[str, str | None]) -> None:
        ticket.status = new_status
        for name, value in fields.items():
            setattr(ticket, name, value)
