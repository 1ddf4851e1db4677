"""API dependencies for tenant resolution and database sessions"""

from typing import AsyncGenerator, Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from forpharma.exceptions import AuthError
from forpharma.schemas.tenant import CurrentUser
from forpharma.services.tenant_resolver import TenantContext, TenantResolver
from forpharma.tenancy.registry import TenantRegistry


def get_registry(request: Request) -> TenantRegistry:
    return request.app.state.registry


def get_resolver(request: Request) -> TenantResolver:
    return request.app.state.resolver


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    Args:
        authorization: Raw header value

    Returns:
        Token string, or None when the header is absent

    Raises:
        AuthError: If the header is present but not "Bearer <token>"
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Invalid authorization header format")
    return parts[1]


async def get_tenant_context(
    request: Request,
    authorization: Optional[str] = Header(None),
    resolver: TenantResolver = Depends(get_resolver),
) -> AsyncGenerator[TenantContext, None]:
    """
    Resolve the caller's identity and tenant handle.

    On success the identity is attached as request.state.user and the
    tenant handle as request.state.tenant_db; on failure nothing is attached.
    The handle stays borrowed until the request finishes.

    Raises:
        TenancyError: Any resolution failure, rendered by the error handler
    """
    token = extract_bearer_token(authorization)
    context = await resolver.resolve(token)

    request.state.user = context.identity
    request.state.tenant_db = context.tenant
    try:
        yield context
    finally:
        await context.release()


async def get_current_user(
    context: TenantContext = Depends(get_tenant_context),
) -> CurrentUser:
    return context.identity


async def get_tenant_session(
    context: TenantContext = Depends(get_tenant_context),
) -> AsyncGenerator[AsyncSession, None]:
    """Session on the caller's tenant schema"""
    async with context.tenant.session() as session:
        yield session


async def get_control_db(
    registry: TenantRegistry = Depends(get_registry),
) -> AsyncGenerator[AsyncSession, None]:
    """Session on the control-plane database"""
    async with registry.control_plane.session() as session:
        yield session
