"""Health check endpoints"""

from fastapi import APIRouter, Depends, Request, status
from datetime import datetime, timezone
from sqlalchemy import text

from forpharma.api.dependencies import get_registry
from forpharma.services.redis_service import RedisService
from forpharma.tenancy.registry import TenantRegistry

router = APIRouter(tags=["Health"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", status_code=status.HTTP_200_OK)
async def basic_health_check():
    """
    Basic health check endpoint (no authentication required)

    Returns simple health status and timestamp
    """
    return {
        "status": "healthy",
        "timestamp": _timestamp()
    }


@router.get("/api/v1/health", status_code=status.HTTP_200_OK)
async def detailed_health_check(
    request: Request,
    registry: TenantRegistry = Depends(get_registry),
):
    """
    Detailed health check with service dependency status (no authentication required)

    Checks connectivity to:
    - Control-plane database
    - Redis (when token revocation is enabled)

    Also reports the tenant handle cache occupancy.
    """
    services = {}
    overall_status = "healthy"

    # Check control-plane connectivity
    try:
        async with registry.control_plane.session() as db:
            result = await db.execute(text("SELECT 1"))
            result.scalar_one()
        services["database"] = "connected"
    except Exception as e:
        services["database"] = f"disconnected: {str(e)}"
        overall_status = "degraded"

    # Check Redis connectivity
    settings = request.app.state.settings
    if settings.token_revocation_enabled:
        try:
            await RedisService(settings.redis_url).ping()
            services["redis"] = "connected"
        except Exception as e:
            services["redis"] = f"disconnected: {str(e)}"
            overall_status = "degraded"
    else:
        services["redis"] = "disabled"

    return {
        "status": overall_status,
        "version": request.app.version,
        "timestamp": _timestamp(),
        "services": services,
        "tenants": registry.stats(),
    }
