from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping
from uuid import UUID, uuid4

import asyncpg

from .errors import TicketNotFoundError, TicketStoreUnavailableError
from .models import DateRange, Ticket
from .state import StatusCondition, TicketStateMachine, TicketStatus
from .store import utcnow, validate_extra_fields, validate_new_ticket

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
)


class PostgresTicketStore:
    """Ticket store backed by a PostgreSQL ``tickets`` table.

    Each operation is one SQL statement. Conditional transitions rely on
    ``UPDATE ... WHERE status = ANY(...) RETURNING``, which PostgreSQL applies
    under a row lock, so two concurrent callers cannot both match the same
    precondition.
    """

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS tickets (
        id UUID PRIMARY KEY,
        subject TEXT NOT NULL CHECK (length(btrim(subject)) > 0),
        description TEXT NOT NULL CHECK (length(btrim(description)) > 0),
        status TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        resolution TEXT NULL,
        cancellation_reason TEXT NULL
    )
    """

    _CREATE_CREATED_AT_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS tickets_created_at_idx ON tickets (created_at DESC)
    """

    _INSERT_TICKET_SQL = """
    INSERT INTO tickets (id, subject, description, status, created_at)
    VALUES ($1, $2, $3, $4, $5)
    RETURNING id, subject, description, status, created_at, resolution, cancellation_reason
    """

    _LIST_TICKETS_SQL = """
    SELECT id, subject, description, status, created_at, resolution, cancellation_reason
    FROM tickets
    WHERE ($1::timestamptz IS NULL OR created_at >= $1::timestamptz)
      AND ($2::timestamptz IS NULL OR created_at <= $2::timestamptz)
    ORDER BY created_at DESC
    """

    _COUNT_TICKETS_SQL = """
    SELECT COUNT(*) FROM tickets
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._acquire() as connection:
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_CREATED_AT_INDEX_SQL)

    async def create(self, subject: str | None, description: str | None) -> Ticket:
        subject, description = validate_new_ticket(subject, description)
        async with self._acquire() as connection:
            row = await connection.fetchrow(
                self._INSERT_TICKET_SQL,
                uuid4(),
                subject,
                description,
                TicketStateMachine.initial_state().value,
                utcnow(),
            )
        if row is None:
            raise RuntimeError("Failed to insert ticket")
        return self._row_to_ticket(row)

    async def transition(
        self,
        ticket_id: UUID,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> Ticket:
        statement, params = self._build_update(
            new_status,
            validate_extra_fields(extra_fields),
            condition,
            ticket_id=ticket_id,
        )
        async with self._acquire() as connection:
            row = await connection.fetchrow(statement, *params)
        if row is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found or not in the required state")
        return self._row_to_ticket(row)

    async def bulk_transition(
        self,
        condition: StatusCondition,
        new_status: TicketStatus,
        extra_fields: Mapping[str, str | None] | None = None,
    ) -> int:
        statement, params = self._build_update(new_status, validate_extra_fields(extra_fields), condition)
        async with self._acquire() as connection:
            result = await connection.execute(statement, *params)
        return _affected_rows(result)

    async def list_tickets(self, date_range: DateRange | None = None) -> list[Ticket]:
        window = date_range or DateRange()
        async with self._acquire() as connection:
            rows = await connection.fetch(self._LIST_TICKETS_SQL, window.start, window.end)
        return [self._row_to_ticket(row) for row in rows]

    async def count(self) -> int:
        async with self._acquire() as connection:
            value = await connection.fetchval(self._COUNT_TICKETS_SQL)
        return int(value or 0)

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Any]:
        try:
            async with self._pool.acquire() as connection:
                yield connection
        except _UNAVAILABLE_ERRORS as exc:
            logger.error("Ticket store unavailable: %s", exc)
            raise TicketStoreUnavailableError("Ticket store is unavailable") from exc

    @staticmethod
    def _build_update(
        new_status: TicketStatus,
        fields: Mapping[str, str | None],
        condition: StatusCondition,
        *,
        ticket_id: UUID | None = None,
    ) -> tuple[str, list[Any]]:
        params: list[Any] = []
        predicates: list[str] = []
        if ticket_id is not None:
            params.append(ticket_id)
            predicates.append(f"id = ${len(params)}")

        params.append(new_status.value)
        assignments = [f"status = ${len(params)}"]
        # Keys were checked against TRANSITION_FIELDS, which are also the column names.
        for name, value in fields.items():
            params.append(value)
            assignments.append(f"{name} = ${len(params)}")

        params.append(condition.values())
        predicates.append(f"status = ANY(${len(params)}::text[])")

        statement = f"UPDATE tickets SET {', '.join(assignments)} WHERE {' AND '.join(predicates)}"
        if ticket_id is not None:
            statement += " RETURNING id, subject, description, status, created_at, resolution, cancellation_reason"
        return statement, params

    @staticmethod
    def _row_to_ticket(row: Any) -> Ticket:
        return Ticket(
            id=_to_uuid(row["id"]),
            subject=str(row["subject"]),
            description=str(row["description"]),
            status=TicketStatus(str(row["status"])),
            created_at=row["created_at"],
            resolution=row["resolution"],
            cancellation_reason=row["cancellation_reason"],
        )


def _to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def _affected_rows(result: Any) -> int:
    # asyncpg reports command tags such as "UPDATE 3".
    if isinstance(result, str):
        tail = result.strip().rsplit(" ", 1)[-1]
        return int(tail) if tail.isdigit() else 0
    return int(result or 0)
