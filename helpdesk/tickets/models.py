from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from .state import TicketStatus


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: UUID
    subject: str
    description: str
    status: TicketStatus
    created_at: datetime
    resolution: str | None = None
    cancellation_reason: str | None = None


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive creation-date window; either bound may be left open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "end", _as_utc(self.end))

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive bounds are treated as UTC so they compare against stored timestamps.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
