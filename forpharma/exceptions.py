"""Typed errors raised by tenant resolution and the tenant registry"""

from fastapi import status


class TenancyError(Exception):
    """Base class; carries the HTTP status rendered by the API error handler"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal Server Error"
    error_type: str = "internal_server_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AuthError(TenancyError):
    """Bearer credential missing, malformed, revoked or expired"""

    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Unauthorized"
    error_type = "unauthorized"


class ValidationError(TenancyError):
    """Request cannot be processed as sent"""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Validation Error"
    error_type = "validation_error"


class NotFoundError(TenancyError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not Found"
    error_type = "not_found"


class ConflictError(TenancyError):
    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"
    error_type = "conflict"


class TenantInactiveError(TenancyError):
    """Organization has been deactivated"""

    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"
    error_type = "tenant_inactive"


class ProvisioningError(TenancyError):
    """Tenant schema is unset or cannot be brought to the current version"""

    error_type = "provisioning_error"


class DatabaseConnectionError(TenancyError, ConnectionError):
    """Database unreachable, or the registry has already been shut down"""

    error_type = "database_unavailable"
