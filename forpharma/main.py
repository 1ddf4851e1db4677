"""Main FastAPI application entry point"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from forpharma.api.errors import register_error_handlers
from forpharma.api.health import router as health_router
from forpharma.api.identity import router as identity_router
from forpharma.api.organizations import router as organizations_router
from forpharma.config import Settings, get_settings
from forpharma.services.auth_service import AuthService
from forpharma.services.redis_service import RedisService
from forpharma.services.tenant_resolver import TenantResolver
from forpharma.tenancy.registry import TenantRegistry

logger = logging.getLogger(__name__)

API_TITLE = "ForPharma Backend API"
API_VERSION = "1.0.0"


async def shutdown_registry(registry: TenantRegistry):
    """Tear down tenant handles, then the control plane, then redis"""
    try:
        await registry.close_all_connections()
    finally:
        try:
            await registry.dispose()
        finally:
            await RedisService.close()
    logger.info("Connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Two-phase boot: every tenant schema is migrated before the app accepts
    traffic. A migration failure propagates so the server never binds.
    """
    registry: TenantRegistry = app.state.registry

    # Startup
    logger.info(f"Starting {API_TITLE} ({app.state.settings.environment})")
    try:
        migrated = await registry.initialize_migrations()
    except Exception:
        logger.error("Tenant schema migration failed; refusing to start", exc_info=True)
        await shutdown_registry(registry)
        raise

    applied = sum(len(versions) for versions in migrated.values())
    logger.info(f"{len(migrated)} tenant schemas current ({applied} migrations applied)")

    yield

    # Shutdown
    logger.info("Shutting down service...")
    await shutdown_registry(registry)


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[TenantRegistry] = None,
    resolver: Optional[TenantResolver] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (loaded from the environment when omitted)
        registry: Tenant registry (built from settings when omitted)
        resolver: Tenant resolver (built over the registry when omitted)

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    registry = registry or TenantRegistry.from_settings(settings)
    if resolver is None:
        revoked_tokens = RedisService(settings.redis_url) if settings.token_revocation_enabled else None
        resolver = TenantResolver(registry, AuthService(settings), revoked_tokens)

    app = FastAPI(
        title=API_TITLE,
        description="Multi-tenant backend for pharmaceutical field-force management",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.resolver = resolver

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    register_error_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(organizations_router)
    app.include_router(identity_router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": API_TITLE,
            "version": API_VERSION,
            "status": "running",
        }

    return app
