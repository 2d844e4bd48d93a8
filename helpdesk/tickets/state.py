from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "New"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True, slots=True)
class StatusCondition:
    """Precondition on a ticket's current status, evaluated atomically by the store."""

    allowed: frozenset[TicketStatus]

    @classmethod
    def exactly(cls, status: TicketStatus) -> StatusCondition:
        return cls(frozenset({status}))

    @classmethod
    def any_except(cls, *excluded: TicketStatus) -> StatusCondition:
        return cls(frozenset(status for status in TicketStatus if status not in excluded))

    def matches(self, status: TicketStatus) -> bool:
        return status in self.allowed

    def values(self) -> list[str]:
        return sorted(status.value for status in self.allowed)


@dataclass(frozen=True, slots=True)
class TicketTransition:
    """A named move to ``target`` guarded by ``condition``."""

    name: str
    condition: StatusCondition
    target: TicketStatus
    extra_field: str | None = None


class TicketStateMachine:
    """Ticket lifecycle transitions and their preconditions."""

    START = TicketTransition(
        name="start",
        condition=StatusCondition.exactly(TicketStatus.NEW),
        target=TicketStatus.IN_PROGRESS,
    )
    COMPLETE = TicketTransition(
        name="complete",
        condition=StatusCondition.exactly(TicketStatus.IN_PROGRESS),
        target=TicketStatus.COMPLETED,
        extra_field="resolution",
    )
    CANCEL = TicketTransition(
        name="cancel",
        condition=StatusCondition.any_except(TicketStatus.COMPLETED),
        target=TicketStatus.CANCELLED,
        extra_field="cancellation_reason",
    )
    # Bulk cancellation only sweeps tickets that are being worked on.
    CANCEL_ALL = TicketTransition(
        name="cancel_all",
        condition=StatusCondition.exactly(TicketStatus.IN_PROGRESS),
        target=TicketStatus.CANCELLED,
        extra_field="cancellation_reason",
    )

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.NEW
