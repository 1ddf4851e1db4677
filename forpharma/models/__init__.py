"""Database models package"""

from forpharma.models.base import BaseModel, TenantModel
from forpharma.models.organization import Organization
from forpharma.models.user import User
from forpharma.models.employee import Employee

# Export all models
__all__ = [
    "BaseModel",
    "TenantModel",
    "Organization",
    "User",
    "Employee",
]
