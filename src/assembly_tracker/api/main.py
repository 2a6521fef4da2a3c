"""FastAPI application factory."""
from fastapi import FastAPI

from assembly_tracker.api.routes import parts, statistics, status


def create_app() -> FastAPI:
    """Build and return the FastAPI app.

    The database engine is created lazily by the first request that needs it
    (see api.deps.get_sync_service).
    """
    app = FastAPI(
        title="Assembly Tracker API",
        description="Installation, delivery and bolting status of model assembly parts",
        version="0.1.0",
    )

    app.include_router(parts.router, prefix="/parts", tags=["parts"])
    app.include_router(status.router, prefix="/status", tags=["status"])
    app.include_router(statistics.router, prefix="/statistics", tags=["statistics"])

    return app


# Module-level app instance for uvicorn
app = create_app()
