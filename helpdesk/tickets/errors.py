class TicketError(RuntimeError):
    """Base error for ticket service issues."""


class TicketValidationError(TicketError):
    """Raised when a ticket is created without a subject or description."""


class TicketNotFoundError(TicketError):
    """Raised when a ticket is unknown or not in the state an operation requires."""


class TicketStoreUnavailableError(TicketError):
    """Raised when the backing store cannot be reached."""
