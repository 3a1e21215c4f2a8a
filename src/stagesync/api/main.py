"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from stagesync.api.routes import sync as sync_routes
from stagesync.staging.synchronizer import Synchronizer


def create_app(synchronizer: Optional[Synchronizer] = None) -> FastAPI:
    """Build and return the FastAPI app.

    Args:
        synchronizer: Synchronizer to serve. Built from settings on startup
            when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Engines (and the log tables) are created lazily here, not at import
        app.state.synchronizer = synchronizer or Synchronizer.from_settings()
        yield

    app = FastAPI(
        title="stagesync",
        description="Staging → production change-log replication",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
