"""Organization onboarding endpoints"""

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from forpharma.api.dependencies import get_control_db, get_registry
from forpharma.exceptions import NotFoundError, ValidationError
from forpharma.schemas.tenant import OrganizationCreate, OrganizationResponse, ProvisionRequest
from forpharma.services.organization_service import OrganizationService
from forpharma.tenancy.registry import TenantRegistry
from forpharma.tenancy.state import schema_name_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations", tags=["Organizations"])


def _derive_schema_name(organization_name: str) -> str:
    try:
        return schema_name_for(organization_name)
    except ValueError as e:
        raise ValidationError(str(e)) from e


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreate,
    db: AsyncSession = Depends(get_control_db),
    registry: TenantRegistry = Depends(get_registry),
):
    """
    Create an organization and provision its tenant schema

    The schema name is derived from the organization name when not given.
    If provisioning fails the organization is kept without a schema and can
    be retried through the provision endpoint.
    """
    target = body.schema_name or _derive_schema_name(body.name)

    org = await OrganizationService.create_organization(db, body.name)
    await registry.provision_schema(org.id, target)

    return OrganizationResponse(
        id=org.id,
        name=org.name,
        schema_name=target,
        is_active=org.is_active,
    )


@router.post(
    "/{organization_id}/provision",
    response_model=OrganizationResponse,
    status_code=status.HTTP_200_OK,
)
async def provision_organization(
    organization_id: UUID,
    body: Optional[ProvisionRequest] = Body(None),
    db: AsyncSession = Depends(get_control_db),
    registry: TenantRegistry = Depends(get_registry),
):
    """
    Provision (or re-provision after a failure) an organization's tenant schema

    Idempotent: an organization already provisioned with the requested
    schema is returned unchanged.
    """
    org = await OrganizationService.get_organization(db, organization_id)
    if org is None:
        raise NotFoundError(f"Organization {organization_id} not found")

    requested = body.schema_name if body else None
    target = requested or org.schema_name or _derive_schema_name(org.name)

    await registry.provision_schema(org.id, target)

    return OrganizationResponse(
        id=org.id,
        name=org.name,
        schema_name=target,
        is_active=org.is_active,
    )
