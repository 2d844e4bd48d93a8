from contextlib import asynccontextmanager

from fastapi import FastAPI

from helpdesk.api.errors import register_exception_handlers
from helpdesk.api.routes import ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging
from helpdesk.services.postgres import PostgresPool
from helpdesk.tickets.repository import PostgresTicketStore
from helpdesk.tickets.seed import seed_demo_tickets
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.store import InMemoryTicketStore, TicketStore


async def build_ticket_store(settings: Settings, postgres: PostgresPool | None) -> TicketStore:
    """Create the store selected by ``settings.store_backend``."""

    if settings.store_backend == "memory" or postgres is None:
        return InMemoryTicketStore()
    store = PostgresTicketStore(await postgres.get_pool())
    await store.ensure_schema()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger = configure_logging(settings)
    app.state.logger = logger

    postgres = None
    if settings.store_backend == "postgres":
        postgres = PostgresPool(
            dsn=settings.postgres_dsn,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
            command_timeout=settings.postgres_command_timeout,
        )
    app.state.postgres = postgres

    try:
        store = await build_ticket_store(settings, postgres)
        service = TicketService(store)
        if settings.seed_demo_data:
            await seed_demo_tickets(service)
        app.state.ticket_service = service
        logger.info("Ticket service ready using %s store", settings.store_backend)
        yield
    finally:
        if postgres is not None:
            await postgres.close()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    return app


app = create_app()
