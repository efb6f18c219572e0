"""
Incident Service - Main FastAPI Application

Geofenced incident registry with location checks and webhook notifications:
- PostgreSQL/PostGIS storage of incidents and checks
- Redis cache of active incidents
- Redis-queued webhook delivery with retries and backoff
- Prometheus metrics and structured logging
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.endpoints.health import router as health_router
from .api.endpoints.incidents import router as incidents_router
from .api.endpoints.location import router as location_router
from .api.endpoints.webhooks import router as webhooks_router
from .constants import API_PREFIX, APP_NAME, APP_VERSION
from .core.config import Settings, get_settings
from .core.correlation import CorrelationIdMiddleware
from .core.database import DatabaseManager
from .core.errors import ErrorClassifier, register_exception_handlers
from .core.logging import configure_logging
from .infrastructure.redis.connection_factory import RedisConnectionFactory
from .infrastructure.repositories.cache_repository import RedisIncidentCache
from .infrastructure.repositories.queue_repository import RedisWebhookQueue
from .monitoring.health_checker import HealthChecker
from .services.incidents import IncidentService
from .services.webhooks.manager import WebhookManager

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect backing stores and start the delivery worker; tear down in reverse."""
    settings: Settings = app.state.settings or get_settings()
    configure_logging(settings)
    app.state.error_classifier.log_user_errors = settings.LOG_USER_ERRORS
    logger.info(
        "Starting Incident Service",
        version=APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    database = DatabaseManager(settings)
    redis_factory = RedisConnectionFactory(settings)
    webhook_manager: Optional[WebhookManager] = None

    try:
        await database.initialize()
        redis_client = await redis_factory.initialize()

        queue = RedisWebhookQueue(redis_client)
        cache = RedisIncidentCache(
            redis_client, ttl_seconds=settings.REDIS_CACHE_TTL_SECONDS
        )
        webhook_manager = WebhookManager.from_settings(settings, queue)

        app.state.incident_service = IncidentService(
            database=database,
            cache=cache,
            webhook_sender=webhook_manager,
            settings=settings,
        )
        app.state.health_checker = HealthChecker([database, queue, cache])

        await webhook_manager.start()
    except Exception:
        logger.exception("Failed to initialize application")
        if webhook_manager is not None:
            await webhook_manager.aclose()
        await redis_factory.close()
        await database.close()
        raise

    logger.info("Incident Service started", port=settings.API_PORT)

    yield

    logger.info("Shutting down Incident Service")
    await webhook_manager.aclose()
    await redis_factory.close()
    await database.close()
    logger.info("Incident Service stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; settings are resolved lazily when not given."""
    app = FastAPI(
        title=APP_NAME,
        description="Geofenced incidents with location checks and webhook alerts",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    classifier = ErrorClassifier()
    if settings is not None:
        classifier.log_user_errors = settings.LOG_USER_ERRORS
    app.state.error_classifier = classifier
    register_exception_handlers(app, classifier)

    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(location_router, prefix=API_PREFIX)
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(incidents_router, prefix=API_PREFIX)
    app.include_router(webhooks_router, prefix=API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
