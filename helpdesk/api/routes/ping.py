from fastapi import APIRouter, HTTPException

from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketStoreUnavailableError

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/store", summary="Ticket store reachability check")
async def ping_store(service: TicketServiceDep) -> dict[str, object]:
    try:
        tickets = await service.store.count()
    except TicketStoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ok", "tickets": tickets}
