"""versiongate API.

Mounts the client-version gate ahead of the protected routes and serves the
app-config endpoints that outdated clients use to discover updates.

Protected business routers are supplied by the host application through
``create_app(extra_routers=...)``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .. import __version__, config
from ..gate.config_provider import ConfigProvider
from .database import engine, init_db
from .middleware import GateRoute, VersionGateMiddleware
from .routes_app_config import router as app_config_router
from .schemas import HealthResponse
from .store import SqlPolicyStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    try:
        await init_db(app.state.engine)
    except Exception as e:
        # The gate still works from environment defaults while the store is down
        logger.error(f"Database initialisation failed: {e}")
    logger.info("versiongate API started")
    yield
    await app.state.engine.dispose()
    logger.info("versiongate API shutting down")


def create_app(
    db_engine: Optional[AsyncEngine] = None,
    gate_routes: Optional[Iterable[GateRoute]] = None,
    extra_routers: Iterable[APIRouter] = (),
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="versiongate API",
        description="Client version admission gate with force-update responses",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.engine = db_engine or engine
    session_factory = async_sessionmaker(app.state.engine, class_=AsyncSession, expire_on_commit=False)
    app.state.store = SqlPolicyStore(session_factory)
    app.state.provider = ConfigProvider(app.state.store)

    # Gate first so CORS (added last, outermost) also decorates block responses
    app.add_middleware(
        VersionGateMiddleware,
        provider=app.state.provider,
        routes=gate_routes,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(app_config_router)
    for router in extra_routers:
        app.include_router(router)

    # Favicon
    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    # Health check
    @app.get("/health", response_model=HealthResponse, tags=["health"])
    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(version=__version__)

    return app


def run():
    """Run the server."""
    import uvicorn
    uvicorn.run(
        "versiongate.api.main:create_app",
        factory=True,
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.API_RELOAD,
    )


if __name__ == "__main__":
    run()
