"""
Application factory for the registry API.
"""

from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from phytoreq.logging_config import get_logger
from phytoreq.middleware import CorrelationIdMiddleware, ErrorBoundaryMiddleware
from phytoreq.models.database import init_db
from phytoreq.registry import RegistryServices, create_services
from phytoreq.registry.routes import build_registry_routes

logger = get_logger(__name__)


async def health(request):
    return JSONResponse({"status": "ok"})


def create_app(
    db_path: str | None = None,
    services: RegistryServices | None = None,
    blob_store=None,
) -> Starlette:
    """Build the Starlette app.

    Args:
        db_path: SQLite path; defaults to PHYTOREQ_DB_PATH or config.
        services: Pre-wired services (tests pass fakes through here).
        blob_store: Blob store used when services are not given; defaults to S3.
    """
    if services is None:
        services = create_services(db_path=db_path, blob_store=blob_store)

    @asynccontextmanager
    async def lifespan(app):
        init_db(db_path)
        logger.info("Application startup complete")
        yield

    routes = [
        Route("/api/health", health),
        *build_registry_routes(services),
    ]

    middleware = [
        Middleware(CorrelationIdMiddleware),
        Middleware(ErrorBoundaryMiddleware),
    ]

    return Starlette(
        debug=False,
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )
