from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from helpdesk.main import create_app
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.store import InMemoryTicketStore

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def service(store: InMemoryTicketStore) -> TicketService:
    return TicketService(store)


@pytest.fixture
def frozen_clock(monkeypatch) -> Callable[[datetime], None]:
    """Pin the creation timestamp handed out by the in-memory store."""

    current = {"now": BASE_TIME}

    def set_now(moment: datetime) -> None:
        current["now"] = moment

    monkeypatch.setattr("helpdesk.tickets.store.utcnow", lambda: current["now"])
    return set_now


@pytest.fixture
def day() -> Callable[[int], datetime]:
    return lambda offset: BASE_TIME + timedelta(days=offset)


@pytest.fixture
def api_client(service: TicketService) -> Iterator[TestClient]:
    app = create_app()
    app.state.ticket_service = service
    yield TestClient(app)
