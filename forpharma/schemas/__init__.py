"""API schemas package"""

from .tenant import (
    CurrentUser,
    OrganizationCreate,
    OrganizationResponse,
    ProvisionRequest,
)

__all__ = [
    "CurrentUser",
    "OrganizationCreate",
    "OrganizationResponse",
    "ProvisionRequest",
]
