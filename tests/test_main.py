"""Tests for application startup and shutdown"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from forpharma.exceptions import DatabaseConnectionError, ProvisioningError
from forpharma.main import create_app
from forpharma.services.redis_service import RedisService
from forpharma.services.tenant_resolver import TenantResolver
from forpharma.tenancy.manifest import TenantMigration
from forpharma.tenancy.migrator import TenantMigrator
from forpharma.tenancy.registry import TenantRegistry

from conftest import create_organization


@pytest.mark.asyncio
async def test_create_app_wires_dependencies(settings, registry):
    app = create_app(settings, registry=registry)

    assert app.state.registry is registry
    assert isinstance(app.state.resolver, TenantResolver)
    assert app.state.resolver.registry is registry
    assert app.state.resolver.revoked_tokens is None


@pytest.mark.asyncio
async def test_revocation_store_enabled(settings, registry):
    settings.token_revocation_enabled = True

    app = create_app(settings, registry=registry)

    assert isinstance(app.state.resolver.revoked_tokens, RedisService)


@pytest.mark.asyncio
class TestLifespan:
    """Test the two-phase boot and ordered shutdown"""

    async def test_startup_migrates_known_tenants(self, settings, registry, migrator):
        await create_organization(registry, "Acme Pharma", schema_name="org_acme")
        app = create_app(settings, registry=registry)

        async with app.router.lifespan_context(app):
            assert migrator.upgrades == ["org_acme"]

        with pytest.raises(DatabaseConnectionError):
            await registry.get_tenant_client("org_acme")

    async def test_startup_failure_propagates(self, settings, control_engine, engine_factory):
        """Test a migration failure aborts startup and releases connections"""
        def explode(op):
            raise RuntimeError("bad migration")

        registry = TenantRegistry(
            control_engine, engine_factory, TenantMigrator((TenantMigration(1, "explode", explode),))
        )
        await create_organization(registry, "Acme Pharma", schema_name="org_acme")
        app = create_app(settings, registry=registry)
        entered = False

        with pytest.raises(ProvisioningError):
            async with app.router.lifespan_context(app):
                entered = True

        assert not entered
        with pytest.raises(DatabaseConnectionError):
            registry.control_plane.session()

    async def test_shutdown_order(self, settings, monkeypatch):
        """Test tenant handles close before the control plane, then redis"""
        events = []
        registry = MagicMock()
        registry.initialize_migrations = AsyncMock(return_value={})
        registry.close_all_connections = AsyncMock(
            side_effect=lambda: events.append("close_all_connections")
        )
        registry.dispose = AsyncMock(side_effect=lambda: events.append("dispose"))
        monkeypatch.setattr(
            RedisService, "close", AsyncMock(side_effect=lambda: events.append("redis"))
        )
        app = create_app(settings, registry=registry, resolver=MagicMock())

        async with app.router.lifespan_context(app):
            assert events == []

        assert events == ["close_all_connections", "dispose", "redis"]

    async def test_shutdown_continues_after_close_error(self, settings, monkeypatch):
        """Test dispose and redis close still run when closing tenants fails"""
        events = []
        registry = MagicMock()
        registry.initialize_migrations = AsyncMock(return_value={})
        registry.close_all_connections = AsyncMock(side_effect=RuntimeError("close failed"))
        registry.dispose = AsyncMock(side_effect=lambda: events.append("dispose"))
        monkeypatch.setattr(
            RedisService, "close", AsyncMock(side_effect=lambda: events.append("redis"))
        )
        app = create_app(settings, registry=registry, resolver=MagicMock())

        with pytest.raises(RuntimeError):
            async with app.router.lifespan_context(app):
                pass

        assert events == ["dispose", "redis"]
