"""Services package"""

from .auth_service import AuthService
from .organization_service import OrganizationService
from .redis_service import RedisService
from .tenant_resolver import TenantContext, TenantResolver

__all__ = [
    "AuthService",
    "OrganizationService",
    "RedisService",
    "TenantContext",
    "TenantResolver",
]
