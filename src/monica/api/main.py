"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from monica.config import VERSION
from monica.db.engine import get_engine, init_db
from monica.api.routes import records, sync as sync_routes


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables and apply migrations on startup (idempotent)
        init_db(get_engine())
        yield

    app = FastAPI(
        title="Monica Client API",
        description="Local sync queue for a Monica CRM instance",
        version=VERSION,
        lifespan=lifespan,
    )

    app.include_router(records.router, prefix="/records", tags=["records"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
