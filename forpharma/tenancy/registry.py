"""Tenant connection registry: provisioning, migration, caching and teardown
of per-organization schema connections"""

import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from forpharma.config import Settings
from forpharma.database import create_pooled_engine, is_disconnect_error
from forpharma.exceptions import (
    ConflictError,
    DatabaseConnectionError,
    NotFoundError,
    ProvisioningError,
    TenancyError,
)
from forpharma.models import Organization
from forpharma.monitoring.metrics import TenancyMetrics
from forpharma.tenancy.handles import ControlPlane, TenantClient
from forpharma.tenancy.migrator import TenantMigrator
from forpharma.tenancy.state import SchemaName, SchemaState, schema_name as validate_schema_name

logger = logging.getLogger(__name__)

EngineFactory = Callable[[SchemaName], AsyncEngine]


def default_engine_factory(settings: Settings) -> EngineFactory:
    """Build tenant engines from the configured URL template"""
    def factory(schema_name: SchemaName) -> AsyncEngine:
        return create_pooled_engine(
            settings.tenant_database_url(schema_name),
            pool_size=settings.tenant_pool_size,
            max_overflow=settings.tenant_max_overflow,
            search_path=schema_name,
        )
    return factory


class TenantRegistry:
    """
    Single authority for tenant connection handles.

    Owns the control-plane handle and a bounded LRU cache mapping schema name
    to TenantClient. Concurrent first accesses to one schema share a single
    in-flight open task, so exactly one pool and one migration pass result.
    All cache and pending-map mutations happen on the event loop thread with
    no await between the check and the insert.
    """

    def __init__(
        self,
        control_engine: AsyncEngine,
        engine_factory: EngineFactory,
        migrator: Optional[TenantMigrator] = None,
        capacity: int = 128,
        metrics: Optional[TenancyMetrics] = None,
    ):
        """
        Initialize the registry.

        Args:
            control_engine: Engine for the shared organizations/users database
            engine_factory: Creates a pooled engine bound to one schema
            migrator: Tenant migrator (defaults to the full manifest)
            capacity: Maximum cached tenant handles; 0 disables the bound
            metrics: Metrics recorder
        """
        self._control_plane = ControlPlane(control_engine)
        self._engine_factory = engine_factory
        self.migrator = migrator or TenantMigrator()
        self.capacity = capacity
        self.metrics = metrics or TenancyMetrics()

        self._clients: "OrderedDict[SchemaName, TenantClient]" = OrderedDict()
        self._pending: Dict[SchemaName, asyncio.Task] = {}
        self._states: Dict[SchemaName, SchemaState] = {}
        self._disposed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "TenantRegistry":
        """Build the production registry from application settings"""
        control_engine = create_pooled_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.environment == "development",
        )
        return cls(
            control_engine=control_engine,
            engine_factory=default_engine_factory(settings),
            capacity=settings.tenant_cache_capacity,
        )

    # ------------------------------------------------------------------
    # Control plane
    # ------------------------------------------------------------------

    @property
    def control_plane(self) -> ControlPlane:
        self._ensure_open()
        return self._control_plane

    def control_plane_handle(self) -> ControlPlane:
        """Shared long-lived handle for Organization/User queries"""
        return self.control_plane

    # ------------------------------------------------------------------
    # Tenant handles
    # ------------------------------------------------------------------

    async def get_tenant_client(self, schema_name: str) -> TenantClient:
        """
        Return the live handle for a tenant schema, opening it on first use.

        Args:
            schema_name: Tenant schema identifier

        Returns:
            TenantClient bound to the schema, at the current manifest version

        Raises:
            ValueError: If schema_name is not a valid identifier
            ProvisioningError: If the schema cannot be brought current
            DatabaseConnectionError: If the database is unreachable or the
                registry has been disposed
        """
        key = validate_schema_name(schema_name)
        return await self._lookup(key)

    async def borrow_tenant_client(self, schema_name: str) -> TenantClient:
        """
        Return the live handle for a tenant schema with a borrow registered.

        A borrowed handle stays open if it is evicted while in use; the
        caller must await client.release() when done. Raises the same
        errors as get_tenant_client.
        """
        key = validate_schema_name(schema_name)
        while True:
            client = await self._lookup(key)
            # Evicted between the open finishing and this caller resuming
            if not client.closed:
                client.acquire()
                return client

    async def _lookup(self, key: SchemaName) -> TenantClient:
        self._ensure_open()

        client = self._clients.get(key)
        if client is not None:
            self._clients.move_to_end(key)
            self.metrics.record_cache_hit()
            logger.debug(f"Tenant cache hit for schema '{key}'")
            return client

        task = self._pending.get(key)
        if task is None:
            # Installed before the first await so concurrent callers join it
            task = asyncio.get_running_loop().create_task(self._open(key))
            self._pending[key] = task

        # Shielded so one cancelled caller cannot abort the shared open
        return await asyncio.shield(task)

    async def _open(self, key: SchemaName) -> TenantClient:
        try:
            return await self._open_client(key, provisioning=False)
        finally:
            self._pending.pop(key, None)

    async def _open_client(self, key: SchemaName, provisioning: bool) -> TenantClient:
        operation = "provision" if provisioning else "open"
        engine = self._engine_factory(key)
        client = TenantClient(key, engine)
        try:
            with self.metrics.timer(operation):
                await self._bring_current(client, provisioning=provisioning)
        except BaseException as e:
            self._states[key] = SchemaState.FAILED
            self.metrics.record_open("failed")
            await client.close()
            if isinstance(e, Exception):
                logger.error(f"Failed to {operation} tenant schema '{key}': {e}", exc_info=True)
            raise

        self.metrics.record_open("succeeded")
        await self._cache(key, client)
        logger.info(f"Opened tenant connection for schema '{key}'")
        return client

    async def _bring_current(self, client: TenantClient, provisioning: bool = False) -> List[int]:
        key = client.schema_name
        head = self.migrator.head
        current = await self.migrator.current_version(client.engine, key)

        if current == head:
            self._states[key] = SchemaState.CURRENT
            return []
        if current > head:
            raise ProvisioningError(
                f"Tenant schema '{key}' is at version {current}, newer than {head}"
            )

        if current == 0:
            if not provisioning:
                logger.warning(f"Tenant schema '{key}' has no recorded version; provisioning it")
            self._states[key] = SchemaState.PROVISIONING
        else:
            self._states[key] = SchemaState.STALE
            logger.info(f"Tenant schema '{key}' is at version {current}, migrating to {head}")

        def mark_migrating():
            self._states[key] = SchemaState.MIGRATING

        applied = await self.migrator.upgrade(
            client.engine,
            key,
            create_namespace=current == 0,
            on_begin=mark_migrating if current > 0 else None,
        )
        self.metrics.record_migrations(len(applied))
        self._states[key] = SchemaState.CURRENT
        if applied:
            logger.info(f"Applied tenant migrations {applied} to schema '{key}'")
        return applied

    async def _cache(self, key: SchemaName, client: TenantClient):
        self._clients[key] = client
        self._clients.move_to_end(key)

        evicted: List[TenantClient] = []
        if self.capacity > 0:
            while len(self._clients) > self.capacity:
                _, old_client = self._clients.popitem(last=False)
                evicted.append(old_client)
        self.metrics.set_cached(len(self._clients))

        for old_client in evicted:
            self.metrics.record_eviction()
            logger.info(f"Evicting tenant connection for schema '{old_client.schema_name}'")
            await old_client.retire()

    async def _settle(self, key: SchemaName):
        """Wait for an in-flight open of this schema without joining its outcome"""
        task = self._pending.get(key)
        if task is not None:
            await asyncio.wait([task])

    # ------------------------------------------------------------------
    # Provisioning and migration
    # ------------------------------------------------------------------

    async def provision_schema(self, organization_id: UUID, schema_name: str) -> TenantClient:
        """
        Create and migrate a new tenant schema, then assign it to the organization.

        The organization's schema_name is written only after the schema is at
        the current version, so no observer sees it pointing at a schema that
        is not provisioned. Namespace creation is IF NOT EXISTS and migrations
        are version-checked, so a failed attempt can simply be retried.

        Args:
            organization_id: Organization to onboard
            schema_name: Schema to create for it

        Returns:
            Cached TenantClient for the new schema

        Raises:
            NotFoundError: If the organization does not exist
            ConflictError: If the organization already has a different
                schema, or the name is taken or being provisioned
            ProvisioningError: If migration fails
            DatabaseConnectionError: If a database is unreachable
        """
        key = validate_schema_name(schema_name)
        self._ensure_open()
        await self._settle(key)

        org = await self._load_organization(organization_id)
        if org.schema_name == key:
            logger.info(f"Organization {organization_id} already provisioned as '{key}'")
            return await self.get_tenant_client(key)
        if org.schema_name is not None:
            raise ConflictError(
                f"Organization {organization_id} already uses schema '{org.schema_name}'"
            )
        await self._ensure_schema_unclaimed(organization_id, key)

        await self._settle(key)
        if key in self._pending:
            raise ConflictError(f"Schema '{key}' is being provisioned concurrently")
        stale = self._clients.pop(key, None)
        if stale is not None:
            self.metrics.set_cached(len(self._clients))

        logger.info(f"Provisioning tenant schema '{key}' for organization {organization_id}")
        task = asyncio.get_running_loop().create_task(
            self._provision(organization_id, key, stale)
        )
        self._pending[key] = task
        return await asyncio.shield(task)

    async def _provision(
        self, organization_id: UUID, key: SchemaName, stale: Optional[TenantClient]
    ) -> TenantClient:
        try:
            if stale is not None:
                await stale.retire()
            client = await self._open_client(key, provisioning=True)
            try:
                await self._assign_schema(organization_id, key)
            except BaseException:
                # Schema is current but unassigned; drop the handle so nothing
                # serves it until the assignment succeeds on retry.
                if self._clients.get(key) is client:
                    del self._clients[key]
                self._states.pop(key, None)
                self.metrics.set_cached(len(self._clients))
                await client.close()
                raise
            logger.info(f"Provisioned tenant schema '{key}' for organization {organization_id}")
            return client
        finally:
            self._pending.pop(key, None)

    async def _load_organization(self, organization_id: UUID) -> Organization:
        try:
            async with self._control_plane.session() as db:
                result = await db.execute(
                    select(Organization).where(Organization.id == organization_id)
                )
                org = result.scalar_one_or_none()
        except TenancyError:
            raise
        except Exception as e:
            raise self._control_plane_error(e, "load organization") from e

        if org is None:
            raise NotFoundError(f"Organization {organization_id} not found")
        return org

    async def _ensure_schema_unclaimed(self, organization_id: UUID, key: SchemaName):
        try:
            async with self._control_plane.session() as db:
                result = await db.execute(
                    select(Organization.id).where(
                        Organization.schema_name == key,
                        Organization.id != organization_id,
                    )
                )
                owner = result.scalar_one_or_none()
        except TenancyError:
            raise
        except Exception as e:
            raise self._control_plane_error(e, "check schema ownership") from e

        if owner is not None:
            raise ConflictError(f"Schema '{key}' is already assigned to another organization")

    async def _assign_schema(self, organization_id: UUID, key: SchemaName):
        try:
            async with self._control_plane.session() as db:
                async with db.begin():
                    result = await db.execute(
                        update(Organization)
                        .where(
                            Organization.id == organization_id,
                            Organization.schema_name.is_(None),
                        )
                        .values(schema_name=key)
                    )
                    assigned = result.rowcount
        except TenancyError:
            raise
        except Exception as e:
            raise self._control_plane_error(e, "assign schema") from e

        if assigned != 1:
            raise ConflictError(
                f"Organization {organization_id} was assigned a schema concurrently"
            )

    async def initialize_migrations(self) -> Dict[str, List[int]]:
        """
        Bring every provisioned tenant schema to the current version.

        Must complete before the HTTP listener accepts connections. Stops at
        the first schema that cannot be migrated and raises, so startup fails
        instead of serving traffic against a stale schema.

        Returns:
            Mapping of schema name to the versions applied (empty when current)
        """
        try:
            async with self.control_plane.session() as db:
                result = await db.execute(
                    select(Organization.schema_name)
                    .where(Organization.schema_name.is_not(None))
                    .order_by(Organization.schema_name)
                )
                schema_names = list(result.scalars().all())
        except TenancyError:
            raise
        except Exception as e:
            raise self._control_plane_error(e, "list tenant schemas") from e

        logger.info(f"Checking {len(schema_names)} tenant schemas for pending migrations")
        report: Dict[str, List[int]] = {}
        for name in schema_names:
            try:
                key = validate_schema_name(name)
            except ValueError as e:
                raise ProvisioningError(f"Organization has an invalid schema name: {e}") from e

            await self._settle(key)
            client = self._clients.get(key)
            temporary = client is None
            if temporary:
                client = TenantClient(key, self._engine_factory(key))
            try:
                report[key] = await self._bring_current(client)
            except BaseException:
                self._states[key] = SchemaState.FAILED
                logger.error(f"Migration of tenant schema '{key}' failed; aborting startup")
                raise
            finally:
                if temporary:
                    await client.close()

        applied = sum(len(v) for v in report.values())
        logger.info(f"Tenant migrations complete: {applied} steps applied across {len(report)} schemas")
        return report

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close_all_connections(self):
        """
        Close every cached tenant handle and empty the cache.

        In-flight opens are allowed to settle first so none of them repopulates
        the cache afterwards. The control plane stays open; a later
        get_tenant_client opens a fresh handle.
        """
        if self._pending:
            await asyncio.wait(list(self._pending.values()))

        clients = list(self._clients.values())
        self._clients.clear()
        self.metrics.set_cached(0)

        for client in clients:
            try:
                await client.close()
            except Exception as e:
                logger.error(f"Error closing tenant schema '{client.schema_name}': {e}", exc_info=True)
        logger.info(f"Closed {len(clients)} tenant connections")

    async def dispose(self):
        """Close remaining tenant handles, then the control plane; final shutdown step"""
        if self._disposed:
            return
        await self.close_all_connections()
        self._disposed = True
        await self._control_plane.close()
        logger.info("Control-plane connection closed")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def state_of(self, schema_name: str) -> SchemaState:
        key = validate_schema_name(schema_name)
        return self._states.get(key, SchemaState.UNPROVISIONED)

    def is_cached(self, schema_name: str) -> bool:
        return validate_schema_name(schema_name) in self._clients

    def stats(self) -> Dict[str, int]:
        return {
            "cached": len(self._clients),
            "pending": len(self._pending),
            "capacity": self.capacity,
        }

    def _ensure_open(self):
        if self._disposed:
            raise DatabaseConnectionError("Tenant registry has been shut down")

    @staticmethod
    def _control_plane_error(exc: Exception, action: str) -> TenancyError:
        if is_disconnect_error(exc):
            return DatabaseConnectionError(f"Control-plane database unreachable ({action})")
        return ProvisioningError(f"Control-plane query failed ({action}): {exc}")
