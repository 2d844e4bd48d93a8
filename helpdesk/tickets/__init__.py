"""Ticket lifecycle domain models, stores and services."""

from .errors import TicketError, TicketNotFoundError, TicketStoreUnavailableError, TicketValidationError
from .models import DateRange, Ticket
from .service import TicketService
from .state import StatusCondition, TicketStateMachine, TicketStatus, TicketTransition
from .store import InMemoryTicketStore, TicketStore

__all__ = [
    "DateRange",
    "InMemoryTicketStore",
    "StatusCondition",
    "Ticket",
    "TicketError",
    "TicketNotFoundError",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "TicketStoreUnavailableError",
    "TicketTransition",
    "TicketValidationError",
]
