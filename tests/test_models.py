"""
Integration tests for database models.
"""

import io
from pathlib import Path

import pytest
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.exc import IntegrityError

from forpharma.models import Organization, User
from forpharma.services.organization_service import OrganizationService

from conftest import create_organization, create_user


class TestOrganizationModel:
    """Tests for Organization model"""

    @pytest.mark.asyncio
    async def test_create_organization(self, registry):
        """Test a new organization starts active and unprovisioned"""
        org = await create_organization(registry, "Acme Pharma")

        assert org.id is not None
        assert org.schema_name is None
        assert org.is_active is True
        assert org.created_at is not None

    @pytest.mark.asyncio
    async def test_organization_unique_name(self, registry):
        await create_organization(registry, "Unique Pharma")

        with pytest.raises(IntegrityError):
            await create_organization(registry, "Unique Pharma")

    @pytest.mark.asyncio
    async def test_schema_name_unique(self, registry):
        """Test two organizations cannot point at one schema"""
        await create_organization(registry, "Acme Pharma", schema_name="org_acme")

        with pytest.raises(IntegrityError):
            await create_organization(registry, "Other Pharma", schema_name="org_acme")


class TestUserModel:
    """Tests for User model"""

    @pytest.mark.asyncio
    async def test_user_defaults(self, registry):
        user = await create_user(registry, "user@example.com")

        assert user.organization_id is None
        assert user.is_active is True

    @pytest.mark.asyncio
    async def test_user_loaded_with_organization(self, registry):
        """Test the resolution lookup joins the organization"""
        org = await create_organization(registry, "Acme Pharma", schema_name="org_acme")
        await create_user(registry, "rep@acme.example", org.id, role="SALES_MANAGER")

        async with registry.control_plane.session() as db:
            user = await OrganizationService.get_user_with_organization(db, "rep@acme.example")

        assert isinstance(user, User)
        assert user.role == "SALES_MANAGER"
        assert isinstance(user.organization, Organization)
        assert user.organization.schema_name == "org_acme"

    @pytest.mark.asyncio
    async def test_unknown_email(self, registry):
        async with registry.control_plane.session() as db:
            assert await OrganizationService.get_user_with_organization(db, "x@y.z") is None


class TestControlPlaneRevision:
    """Test the alembic revision matches the ORM models"""

    def _render_upgrade(self) -> str:
        scripts = ScriptDirectory(str(Path(__file__).resolve().parent.parent / "alembic"))
        revision = scripts.get_revision("3f7a2c91b0d4")
        buffer = io.StringIO()
        context = MigrationContext.configure(
            dialect_name="postgresql", opts={"as_sql": True, "output_buffer": buffer}
        )
        with Operations.context(context):
            revision.module.upgrade()
        return buffer.getvalue()

    def test_user_email_index_is_unique(self):
        sql = self._render_upgrade()

        assert "CREATE UNIQUE INDEX ix_users_email ON users (email)" in sql
        index = next(i for i in User.__table__.indexes if i.name == "ix_users_email")
        assert index.unique

    def test_schema_name_is_unique(self):
        sql = self._render_upgrade()

        assert "UNIQUE (schema_name)" in sql
        assert Organization.__table__.c.schema_name.unique
