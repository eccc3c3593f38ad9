import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ticketgate.api.routes import router
from ticketgate.config import Settings, settings as default_settings
from ticketgate.exceptions import StoreUnavailableError, TicketIdCollisionError
from ticketgate.infrastructure.database import create_engine, create_session_maker, create_tables
from ticketgate.infrastructure.repositories.ticket_repository import (
    InMemoryTicketRepository,
    SqlTicketRepository,
    TicketStore,
)
from ticketgate.services.ticket_ids import generate_ticket_id
from ticketgate.services.ticket_lifecycle import TicketLifecycle

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_lifecycle(store: TicketStore, settings: Settings) -> TicketLifecycle:
    return TicketLifecycle(
        store,
        id_factory=partial(
            generate_ticket_id, settings.ticket_id_prefix, settings.ticket_id_length
        ),
        issue_max_attempts=settings.issue_max_attempts,
        redeem_retry_attempts=settings.redeem_retry_attempts,
        redeem_retry_backoff=settings.redeem_retry_backoff,
    )


def create_app(settings: Optional[Settings] = None, store: Optional[TicketStore] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        ticket_store = store
        if ticket_store is None:
            if settings.store_backend == "sql":
                engine = create_engine(settings.database_url)
                await create_tables(engine)
                logger.info("Database tables created")
                ticket_store = SqlTicketRepository(create_session_maker(engine))
            else:
                ticket_store = InMemoryTicketRepository()
        logger.info("Ticket store ready: %s", type(ticket_store).__name__)

        app.state.settings = settings
        app.state.lifecycle = build_lifecycle(ticket_store, settings)

        yield

        if engine is not None:
            await engine.dispose()
            logger.info("Database engine disposed")

    app = FastAPI(
        title="Ticket Gate",
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Store unavailable while handling %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Ticket store unavailable"},
        )

    @app.exception_handler(TicketIdCollisionError)
    async def id_collision_handler(request: Request, exc: TicketIdCollisionError) -> JSONResponse:
        logger.error("Could not allocate ticket id: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Failed to create ticket"},
        )

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
