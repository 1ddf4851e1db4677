"""Pytest configuration and shared fixtures

Tests run against SQLite files through aiosqlite: one file for the control
plane and one file per tenant schema (via the tenant URL template), so no
PostgreSQL server is needed.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from forpharma.config import Settings
from forpharma.database import Base
from forpharma.models import Employee, Organization, User
from forpharma.tenancy.handles import TenantClient
from forpharma.tenancy.migrator import TenantMigrator
from forpharma.tenancy.registry import TenantRegistry, default_engine_factory


TEST_SECRET = "test-secret-key"


class CountingEngineFactory:
    """Engine factory that records every schema it builds a pool for"""

    def __init__(self, settings: Settings):
        self._factory = default_engine_factory(settings)
        self.calls: List[str] = []

    def __call__(self, schema_name) -> AsyncEngine:
        self.calls.append(schema_name)
        return self._factory(schema_name)


class CountingMigrator(TenantMigrator):
    """Migrator that counts upgrade passes per schema"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.upgrades: List[str] = []

    async def upgrade(self, engine, schema_name, create_namespace=False, on_begin=None):
        self.upgrades.append(schema_name)
        return await super().upgrade(
            engine, schema_name, create_namespace=create_namespace, on_begin=on_begin
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at SQLite files under a per-test directory"""
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/control.db",
        tenant_database_url_template=f"sqlite+aiosqlite:///{tmp_path}/{{schema_name}}.db",
        tenant_cache_capacity=8,
        token_revocation_enabled=False,
        secret_key=TEST_SECRET,
        cors_origins="http://localhost:3000",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def control_engine(settings: Settings):
    """Control-plane engine with organizations and users tables"""
    engine = create_async_engine(settings.database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def engine_factory(settings: Settings) -> CountingEngineFactory:
    return CountingEngineFactory(settings)


@pytest.fixture
def migrator() -> CountingMigrator:
    return CountingMigrator()


@pytest_asyncio.fixture
async def registry(control_engine, engine_factory, migrator, settings):
    """Registry over the SQLite control plane; disposed after the test"""
    registry = TenantRegistry(
        control_engine=control_engine,
        engine_factory=engine_factory,
        migrator=migrator,
        capacity=settings.tenant_cache_capacity,
    )

    yield registry

    await registry.dispose()


async def create_organization(
    registry: TenantRegistry,
    name: str,
    schema_name: Optional[str] = None,
    is_active: bool = True,
) -> Organization:
    """Insert an organization row directly"""
    async with registry.control_plane.session() as db:
        org = Organization(name=name, schema_name=schema_name, is_active=is_active)
        db.add(org)
        await db.commit()
        await db.refresh(org)
        return org


async def create_user(
    registry: TenantRegistry,
    email: str,
    organization_id: Optional[UUID] = None,
    role: str = "MEDICAL_REPRESENTATIVE",
) -> User:
    """Insert a control-plane user"""
    async with registry.control_plane.session() as db:
        user = User(
            email=email,
            password_hash="not-a-real-hash",
            role=role,
            organization_id=organization_id,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user


async def create_employee(
    tenant: TenantClient,
    email: str,
    organization_id: UUID,
    role: str = "MEDICAL_REPRESENTATIVE",
) -> Employee:
    """Insert an employee row into a tenant schema"""
    async with tenant.session() as db:
        employee = Employee(
            organization_id=organization_id,
            email=email,
            first_name="Test",
            last_name="Employee",
            role=role,
        )
        db.add(employee)
        await db.commit()
        await db.refresh(employee)
        return employee


def make_token(
    secret: str = TEST_SECRET,
    expires_in: timedelta = timedelta(minutes=15),
    **claims,
) -> str:
    """Sign an access token the way the login service does"""
    payload = {
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_in,
        "iat": datetime.now(timezone.utc),
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")
