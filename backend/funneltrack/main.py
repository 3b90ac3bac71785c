"""FastAPI application entrypoint.

Configures CORS, includes routers, and exposes a healthcheck endpoint.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .telemetry import init_sentry
from .database import init_db
from .deps import get_settings
from .routers import tracking as tracking_router
from .routers import webhooks as webhooks_router  # Order webhooks (session correlation)
from .routers import checkout_events as checkout_events_router
from .routers import query_complexity as query_complexity_router
from . import schemas
from . import __version__


def _parse_origins(value: str) -> list:
    # BACKEND_CORS_ORIGINS can be "*" or a comma-separated list
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def create_app() -> FastAPI:
    # Call before creating the FastAPI app so the integration hooks the app
    init_sentry()

    app = FastAPI(
        title="funneltrack API",
        description="""
        funneltrack attributes storefront revenue to on-site search.

        This API provides endpoints for:
        - Recording add-to-cart and checkout events from the storefront script
        - Recording product clicks on search results
        - Receiving order-created webhooks and correlating them to search sessions
        - Reading correlated checkout events with a revenue summary
        - Reading query complexity analytics

        ## Authentication

        Storefront and read endpoints require the store's `X-API-Key` header.
        Webhooks are authenticated with the platform's HMAC signature.
        """,
        version=__version__,
    )

    settings = get_settings()

    allowed_origins = _parse_origins(settings.BACKEND_CORS_ORIGINS)
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    # Storefront scripts do not send cookies; credentials stay off so "*" is valid
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(tracking_router.router)
    app.include_router(webhooks_router.router)
    app.include_router(checkout_events_router.router)
    app.include_router(query_complexity_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.

        Does not require authentication and can be used for load balancer checks.
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    @app.on_event("startup")
    async def startup_event():
        """Create missing tables when AUTO_CREATE_TABLES is enabled."""
        if settings.AUTO_CREATE_TABLES:
            init_db()
            logger.info("[STARTUP] Database tables ensured")
        else:
            logger.info("[STARTUP] AUTO_CREATE_TABLES disabled - expecting existing schema")

    return app


app = create_app()
