from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from helpdesk.tickets.errors import TicketNotFoundError, TicketStoreUnavailableError, TicketValidationError
from helpdesk.tickets.models import DateRange
from helpdesk.tickets.repository import PostgresTicketStore
from helpdesk.tickets.state import StatusCondition, TicketStateMachine, TicketStatus


class DummyAcquire:
    def __init__(self, connection, error: BaseException | None = None):
        self._connection = connection
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self._connection

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyPool:
    def __init__(self, connection, error: BaseException | None = None):
        self._connection = connection
        self._error = error

    def acquire(self):
        return DummyAcquire(self._connection, self._error)


def _row(**overrides):
    row = {
        "id": uuid4(),
        "subject": "Printer",
        "description": "Paper jam",
        "status": "New",
        "created_at": datetime.now(timezone.utc),
        "resolution": None,
        "cancellation_reason": None,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_ensure_schema_creates_table_and_index():
    connection = AsyncMock()
    store = PostgresTicketStore(DummyPool(connection))

    await store.ensure_schema()

    executed = [call.args[0] for call in connection.execute.await_args_list]
    assert any("CREATE TABLE IF NOT EXISTS tickets" in stmt for stmt in executed)
    assert any("tickets_created_at_idx" in stmt for stmt in executed)


@pytest.mark.asyncio
async def test_create_inserts_new_ticket():
    row = _row()
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=row)
    store = PostgresTicketStore(DummyPool(connection))

    ticket = await store.create("Printer", "Paper jam")

    assert ticket.id == row["id"]
    assert ticket.status == TicketStatus.NEW
    args = connection.fetchrow.await_args.args
    assert "INSERT INTO tickets" in args[0]
    assert args[2:5] == ("Printer", "Paper jam", "New")


@pytest.mark.asyncio
async def test_create_validates_before_touching_database():
    connection = AsyncMock()
    store = PostgresTicketStore(DummyPool(connection))

    with pytest.raises(TicketValidationError):
        await store.create("", "Paper jam")

    connection.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_transition_is_a_single_conditional_update():
    ticket_id = uuid4()
    row = _row(id=ticket_id, status="Completed", resolution="fixed")
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=row)
    store = PostgresTicketStore(DummyPool(connection))
    transition = TicketStateMachine.COMPLETE

    ticket = await store.transition(ticket_id, transition.condition, transition.target, {"resolution": "fixed"})

    assert ticket.status == TicketStatus.COMPLETED
    assert ticket.resolution == "fixed"
    connection.fetchrow.assert_awaited_once()
    statement, *params = connection.fetchrow.await_args.args
    assert statement.startswith("UPDATE tickets SET status = $2, resolution = $3")
    assert "WHERE id = $1 AND status = ANY($4::text[])" in statement
    assert "RETURNING" in statement
    assert params == [ticket_id, "Completed", "fixed", ["InProgress"]]


@pytest.mark.asyncio
async def test_transition_without_matching_row_raises_not_found():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=None)
    store = PostgresTicketStore(DummyPool(connection))

    with pytest.raises(TicketNotFoundError):
        await store.transition(
            uuid4(),
            StatusCondition.any_except(TicketStatus.COMPLETED),
            TicketStatus.CANCELLED,
            {"cancellation_reason": "duplicate"},
        )


@pytest.mark.asyncio
async def test_transition_rejects_field_outside_ticket_columns():
    connection = AsyncMock()
    store = PostgresTicketStore(DummyPool(connection))

    with pytest.raises(ValueError):
        await store.transition(
            uuid4(),
            StatusCondition.exactly(TicketStatus.NEW),
            TicketStatus.IN_PROGRESS,
            {"status = 'Completed'; --": "x"},
        )

    connection.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_bulk_transition_reports_updated_rows():
    connection = AsyncMock()
    connection.execute = AsyncMock(return_value="UPDATE 2")
    store = PostgresTicketStore(DummyPool(connection))
    transition = TicketStateMachine.CANCEL_ALL

    changed = await store.bulk_transition(
        transition.condition,
        transition.target,
        {"cancellation_reason": "outage"},
    )

    assert changed == 2
    statement, *params = connection.execute.await_args.args
    assert statement.startswith("UPDATE tickets SET status = $1, cancellation_reason = $2")
    assert "WHERE status = ANY($3::text[])" in statement
    assert "RETURNING" not in statement
    assert params == ["Cancelled", "outage", ["InProgress"]]


@pytest.mark.asyncio
async def test_bulk_transition_with_no_matches_returns_zero():
    connection = AsyncMock()
    connection.execute = AsyncMock(return_value="UPDATE 0")
    store = PostgresTicketStore(DummyPool(connection))

    changed = await store.bulk_transition(StatusCondition.exactly(TicketStatus.IN_PROGRESS), TicketStatus.CANCELLED)

    assert changed == 0


@pytest.mark.asyncio
async def test_list_passes_date_bounds_to_query():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2024, 1, 31, tzinfo=timezone.utc)
    connection = AsyncMock()
    connection.fetch = AsyncMock(return_value=[_row(), _row(status="InProgress")])
    store = PostgresTicketStore(DummyPool(connection))

    tickets = await store.list_tickets(DateRange(start=start, end=end))

    assert [ticket.status for ticket in tickets] == [TicketStatus.NEW, TicketStatus.IN_PROGRESS]
    statement, *params = connection.fetch.await_args.args
    assert "ORDER BY created_at DESC" in statement
    assert params == [start, end]


@pytest.mark.asyncio
async def test_count_returns_integer():
    connection = AsyncMock()
    connection.fetchval = AsyncMock(return_value=3)
    store = PostgresTicketStore(DummyPool(connection))

    assert await store.count() == 3


@pytest.mark.asyncio
async def test_unreachable_pool_raises_store_unavailable():
    store = PostgresTicketStore(DummyPool(AsyncMock(), error=ConnectionRefusedError("refused")))

    with pytest.raises(TicketStoreUnavailableError):
        await store.list_tickets()


@pytest.mark.asyncio
async def test_broken_connection_raises_store_unavailable():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=asyncpg.InterfaceError("connection is closed"))
    store = PostgresTicketStore(DummyPool(connection))

    with pytest.raises(TicketStoreUnavailableError):
        await store.transition(uuid4(), StatusCondition.exactly(TicketStatus.NEW), TicketStatus.IN_PROGRESS)
