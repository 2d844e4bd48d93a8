"""Sample tickets loaded into an empty store for demos and local development."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .service import TicketService
from .state import TicketStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DemoTicket:
    subject: str
    description: str
    status: TicketStatus = TicketStatus.NEW
    resolution: str | None = None


DEMO_TICKETS: tuple[DemoTicket, ...] = (
    DemoTicket(
        subject="Cannot sign in to the system.",
        description="Pressed the sign-in button many times and the account got locked.",
    ),
    DemoTicket(
        subject="Desktop GUI disappeared after reboot.",
        description="Changed the default system Python by accident; after a restart only the console is left.",
        status=TicketStatus.IN_PROGRESS,
    ),
    DemoTicket(
        subject="Payment form is broken.",
        description="The payment form on my site does not work, checkout cannot be completed.",
        status=TicketStatus.COMPLETED,
        resolution="Payment gateway integration fixed.",
    ),
)


async def seed_demo_tickets(service: TicketService) -> int:
    """Create the demo tickets when the store is empty and return how many were added."""

    existing = await service.store.count()
    if existing:
        logger.info("Ticket store already holds %d tickets, skipping demo data", existing)
        return 0

    for entry in DEMO_TICKETS:
        ticket = await service.create_ticket(subject=entry.subject, description=entry.description)
        if entry.status in {TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED}:
            await service.start_ticket(ticket.id)
        if entry.status == TicketStatus.COMPLETED:
            await service.complete_ticket(ticket.id, resolution=entry.resolution)

    logger.info("Seeded %d demo tickets", len(DEMO_TICKETS))
    return len(DEMO_TICKETS)
