from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketNotFoundError, TicketStoreUnavailableError, TicketValidationError
from helpdesk.tickets.models import Ticket
from helpdesk.tickets.state import TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TicketCreateRequest(_CamelModel):
    subject: str | None = None
    description: str | None = None


class TicketCompleteRequest(_CamelModel):
    resolution: str | None = None


class TicketCancelRequest(_CamelModel):
    cancellation_reason: str | None = None


class TicketResponse(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subject: str
    description: str
    status: TicketStatus
    created_at: datetime
    resolution: str | None = None
    cancellation_reason: str | None = None


class CancelAllResponse(_CamelModel):
    modified_count: int


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except TicketValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TicketStoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(service: TicketServiceDep, payload: TicketCreateRequest | None = None) -> TicketResponse:
    payload = payload or TicketCreateRequest()
    with _http_errors():
        ticket = await service.create_ticket(subject=payload.subject, description=payload.description)
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
) -> list[TicketResponse]:
    with _http_errors():
        tickets = await service.list_tickets(start_date=start_date, end_date=end_date)
    return [_to_response(ticket) for ticket in tickets]


@router.patch("/cancel-all", response_model=CancelAllResponse)
async def cancel_all_tickets(service: TicketServiceDep, payload: TicketCancelRequest | None = None) -> CancelAllResponse:
    payload = payload or TicketCancelRequest()
    with _http_errors():
        modified = await service.cancel_all_in_progress(cancellation_reason=payload.cancellation_reason)
    return CancelAllResponse(modified_count=modified)


@router.patch("/{ticket_id}/start", response_model=TicketResponse)
async def start_ticket(ticket_id: str, service: TicketServiceDep) -> TicketResponse:
    with _http_errors():
        ticket = await service.start_ticket(ticket_id)
    return _to_response(ticket)


@router.patch("/{ticket_id}/complete", response_model=TicketResponse)
async def complete_ticket(
    ticket_id: str,
    service: TicketServiceDep,
    payload: TicketCompleteRequest | None = None,
) -> TicketResponse:
    payload = payload or TicketCompleteRequest()
    with _http_errors():
        ticket = await service.complete_ticket(ticket_id, resolution=payload.resolution)
    return _to_response(ticket)


@router.patch("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel_ticket(
    ticket_id: str,
    service: TicketServiceDep,
    payload: TicketCancelRequest | None = None,
) -> TicketResponse:
    payload = payload or TicketCancelRequest()
    with _http_errors():
        ticket = await service.cancel_ticket(ticket_id, cancellation_reason=payload.cancellation_reason)
    return _to_response(ticket)
