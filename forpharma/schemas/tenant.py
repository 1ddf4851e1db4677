"""Tenant identity and organization onboarding schemas"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from forpharma.tenancy.state import schema_name


class CurrentUser(BaseModel):
    """Identity attached to a request by tenant resolution"""
    id: UUID = Field(..., description="Tenant-local employee UUID")
    email: str = Field(..., description="User email")
    employee_id: UUID = Field(..., description="Control-plane user UUID")
    organization_id: UUID = Field(..., description="Organization UUID")
    organization_name: Optional[str] = Field(None, description="Organization name")
    role: str = Field(..., description="User role")


class OrganizationCreate(BaseModel):
    """Organization onboarding request"""
    name: str = Field(..., min_length=1, max_length=255, description="Unique organization name")
    schema_name: Optional[str] = Field(
        None, description="Tenant schema name (derived from the name when omitted)"
    )

    @field_validator("schema_name")
    @classmethod
    def validate_schema_name(cls, v):
        """Validate schema name is a safe identifier"""
        if v is None:
            return v
        return schema_name(v)


class OrganizationResponse(BaseModel):
    """Organization response schema"""
    id: UUID
    name: str
    schema_name: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class ProvisionRequest(BaseModel):
    """Provisioning retry request"""
    schema_name: Optional[str] = Field(
        None, description="Tenant schema name (existing or derived when omitted)"
    )

    @field_validator("schema_name")
    @classmethod
    def validate_schema_name(cls, v):
        if v is None:
            return v
        return schema_name(v)
