from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from site_allocation.core.db import AsyncSessionLocal, init_models
from site_allocation.core.logging import setup_logging
from site_allocation.exceptions import allocation_exception_handler
from site_allocation.routers import allocation, health, metrics
from site_allocation.services.exceptions import AllocationDomainError
from site_allocation.services.location import LocationService
from site_allocation.services.orchestrator import AllocationOrchestrator
from site_allocation.services.sessions import OperatorSessions
from site_allocation.services.store import EntityStore, SqlAlchemyEntityStore

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[EntityStore] = None,
    location_service: Optional[LocationService] = None,
) -> FastAPI:
    """Builds the API. Without a store the default database is used and its tables created."""
    use_default_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if use_default_store:
            await init_models()
        logger.info("Site allocation API started")
        try:
            yield
        finally:
            # sessions hold snapshots only; nothing to flush
            app.state.sessions.clear()

    app = FastAPI(title="Site Allocation API", lifespan=lifespan)

    app.state.store = store or SqlAlchemyEntityStore(AsyncSessionLocal)
    app.state.location_service = location_service
    app.state.sessions = OperatorSessions(
        lambda operator_id: AllocationOrchestrator(
            store=app.state.store,
            operator_id=operator_id,
            location_service=app.state.location_service,
        )
    )

    app.add_exception_handler(AllocationDomainError, allocation_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(allocation.router)
    return app


app = create_app()
