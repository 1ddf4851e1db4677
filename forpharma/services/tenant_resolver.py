"""Request-time tenant resolution: bearer credential to identity plus tenant handle"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from redis.exceptions import RedisError

from forpharma.database import is_disconnect_error
from forpharma.exceptions import (
    AuthError,
    DatabaseConnectionError,
    NotFoundError,
    ProvisioningError,
    TenancyError,
    TenantInactiveError,
    ValidationError,
)
from forpharma.schemas.tenant import CurrentUser
from forpharma.services.auth_service import AuthService
from forpharma.services.organization_service import OrganizationService
from forpharma.tenancy.handles import TenantClient
from forpharma.tenancy.registry import TenantRegistry

logger = logging.getLogger(__name__)


class RevokedTokenStore(Protocol):
    async def is_token_blacklisted(self, token: str) -> bool:
        ...


@dataclass(frozen=True)
class TenantContext:
    """Resolved identity and the live handle for its tenant schema"""
    identity: CurrentUser
    tenant: TenantClient

    async def release(self):
        """Return the borrowed tenant handle to the registry"""
        await self.tenant.release()


class TenantResolver:
    """
    Turns one bearer credential into a TenantContext.

    Steps run strictly in order and stop at the first failure with a typed
    error; nothing is attached to the request unless every step succeeds.
    The only writes that can happen are the registry's own provisioning or
    migration work when a tenant handle is opened for the first time.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        auth_service: AuthService,
        revoked_tokens: Optional[RevokedTokenStore] = None,
    ):
        self.registry = registry
        self.auth_service = auth_service
        self.revoked_tokens = revoked_tokens

    async def resolve(self, token: Optional[str]) -> TenantContext:
        """
        Resolve a bearer credential.

        The returned context holds a borrow on its tenant handle; callers
        await context.release() once the request is finished.

        Args:
            token: Raw bearer token (without the "Bearer " prefix)

        Returns:
            TenantContext

        Raises:
            AuthError: Missing, revoked, invalid or expired token, or no email claim
            NotFoundError: No user for the email, or no tenant employee row
            ValidationError: User not associated with an organization
            TenantInactiveError: Organization deactivated
            ProvisioningError: Organization schema not configured or not migratable
            DatabaseConnectionError: A store is unreachable
        """
        # 1. Verify the credential
        payload = await self._verify(token)

        # 2. Email claim
        email = payload.get("email")
        if not email:
            raise AuthError("No email found in token")

        # 3. User joined with organization
        user = await self._load_user(email)
        if user is None:
            raise NotFoundError("User not found")

        # 4. Organization association
        if not user.organization_id:
            raise ValidationError("User not associated with any organization")

        # 5. Active organization
        org = user.organization
        if org is None or not org.is_active:
            raise TenantInactiveError("Organization is not active")

        # 6. Provisioned schema
        if not org.schema_name:
            raise ProvisioningError("Organization schema not configured")

        # 7. Tenant handle, borrowed until the context is released
        try:
            tenant = await self.registry.borrow_tenant_client(org.schema_name)
        except ValueError as e:
            raise ProvisioningError(f"Organization schema is invalid: {e}") from e

        try:
            # 8. Tenant-local identity
            employee_id = await self._load_employee_id(tenant, email)
            if employee_id is None:
                raise NotFoundError("Employee not found in organization")
        except BaseException:
            await tenant.release()
            raise

        # 9. Identity
        identity = CurrentUser(
            id=employee_id,
            email=user.email,
            employee_id=user.id,
            organization_id=user.organization_id,
            organization_name=org.name,
            role=user.role,
        )
        logger.debug(f"Resolved {identity.email} to tenant schema '{tenant.schema_name}'")
        return TenantContext(identity=identity, tenant=tenant)

    async def _verify(self, token: Optional[str]) -> dict:
        if not token:
            raise AuthError("No token provided")

        if self.revoked_tokens is not None:
            try:
                revoked = await self.revoked_tokens.is_token_blacklisted(token)
            except RedisError as e:
                raise DatabaseConnectionError("Token revocation store unreachable") from e
            if revoked:
                raise AuthError("Token has been revoked")

        payload = self.auth_service.validate_token(token, token_type="access")
        if not payload:
            raise AuthError("Invalid or expired token")
        return payload

    async def _load_user(self, email: str):
        try:
            async with self.registry.control_plane.session() as db:
                return await OrganizationService.get_user_with_organization(db, email)
        except TenancyError:
            raise
        except Exception as e:
            if is_disconnect_error(e):
                raise DatabaseConnectionError("Control-plane database unreachable") from e
            raise

    async def _load_employee_id(self, tenant: TenantClient, email: str):
        try:
            async with tenant.session() as tenant_db:
                return await OrganizationService.get_employee_id(tenant_db, email)
        except TenancyError:
            raise
        except Exception as e:
            if is_disconnect_error(e):
                raise DatabaseConnectionError(
                    f"Tenant schema '{tenant.schema_name}' unreachable"
                ) from e
            raise
