"""Organization, user and employee lookups"""

import logging
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from forpharma.exceptions import ConflictError
from forpharma.models import Employee, Organization, User

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service for control-plane organization/user queries and tenant identity lookups"""

    @staticmethod
    async def get_user_with_organization(db: AsyncSession, email: str) -> Optional[User]:
        """
        Look up a login user by email with its organization loaded.

        Args:
            db: Control-plane session
            email: User email

        Returns:
            User with .organization populated (may be None), or None
        """
        result = await db.execute(
            select(User)
            .options(joinedload(User.organization))
            .where(User.email == email)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_organization(db: AsyncSession, organization_id: UUID) -> Optional[Organization]:
        result = await db.execute(
            select(Organization).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_organization(db: AsyncSession, name: str) -> Organization:
        """
        Create an organization row with no schema assigned.

        Args:
            db: Control-plane session
            name: Unique organization name

        Returns:
            Created Organization

        Raises:
            ConflictError: If the name is taken
        """
        existing = await db.execute(select(Organization.id).where(Organization.name == name))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Organization '{name}' already exists")

        org = Organization(name=name, is_active=True)
        db.add(org)
        await db.commit()
        await db.refresh(org)

        logger.info(f"Created organization {org.id} ({name})")
        return org

    @staticmethod
    async def get_employee_id(tenant_db: AsyncSession, email: str) -> Optional[UUID]:
        """Tenant-local employee id for an email, or None"""
        result = await tenant_db.execute(
            select(Employee.id).where(Employee.email == email)
        )
        return result.scalar_one_or_none()
