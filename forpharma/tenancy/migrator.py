"""Applies the tenant migration manifest to one tenant schema"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import sqlalchemy as sa
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from forpharma.database import is_disconnect_error
from forpharma.exceptions import DatabaseConnectionError, ProvisioningError
from forpharma.tenancy.manifest import MANIFEST, TenantMigration

logger = logging.getLogger(__name__)

VERSION_TABLE = "tenant_schema_versions"

_version_metadata = sa.MetaData()
schema_versions = sa.Table(
    VERSION_TABLE,
    _version_metadata,
    sa.Column("version", sa.Integer(), primary_key=True, autoincrement=False),
    sa.Column("description", sa.String(255), nullable=False),
    sa.Column("applied_at", sa.DateTime(), nullable=False),
)


class TenantMigrator:
    """
    Brings a tenant schema to the latest manifest version.

    Pending steps run in version order inside a single transaction, so a
    failing step leaves the schema at its previous version. A schema that is
    already current only sees read queries.
    """

    def __init__(self, manifest: Sequence[TenantMigration] = MANIFEST):
        versions = [m.version for m in manifest]
        if versions != list(range(1, len(versions) + 1)):
            raise ValueError(f"Manifest versions must be 1..N in order, got {versions}")
        self.manifest = tuple(manifest)

    @property
    def head(self) -> int:
        """Latest version in the manifest"""
        return self.manifest[-1].version if self.manifest else 0

    def read_version(self, connection: Connection) -> int:
        """Recorded schema version; 0 for a schema with no version table"""
        if not sa.inspect(connection).has_table(VERSION_TABLE):
            return 0
        version = connection.execute(sa.select(sa.func.max(schema_versions.c.version))).scalar()
        return version or 0

    def pending(self, connection: Connection) -> List[TenantMigration]:
        """Manifest steps not yet recorded in the schema, in version order"""
        current = self.read_version(connection)
        return [m for m in self.manifest if m.version > current]

    def _prepare(self, connection: Connection, schema_name: str, create_namespace: bool):
        if connection.dialect.name != "postgresql":
            return
        # Serialize concurrent migrators (other processes) on the same schema
        connection.execute(
            sa.text("SELECT pg_advisory_xact_lock(hashtext(:name))"), {"name": schema_name}
        )
        if create_namespace:
            connection.execute(sa.text(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"'))
        connection.execute(sa.text(f'SET LOCAL search_path TO "{schema_name}"'))

    def _upgrade(
        self,
        connection: Connection,
        schema_name: str,
        create_namespace: bool,
        on_begin: Optional[Callable[[], None]] = None,
    ) -> List[int]:
        self._prepare(connection, schema_name, create_namespace)

        current = self.read_version(connection)
        if current > self.head:
            raise ProvisioningError(
                f"Schema '{schema_name}' is at version {current}, "
                f"newer than the latest known version {self.head}"
            )

        pending = [m for m in self.manifest if m.version > current]
        if not pending:
            return []

        if on_begin is not None:
            on_begin()
        schema_versions.create(connection, checkfirst=True)
        op = Operations(MigrationContext.configure(connection))
        for migration in pending:
            logger.info(
                f"Applying tenant migration {migration.version} "
                f"({migration.description}) to schema '{schema_name}'"
            )
            migration.upgrade(op)
            connection.execute(
                schema_versions.insert().values(
                    version=migration.version,
                    description=migration.description,
                    applied_at=datetime.utcnow(),
                )
            )
        return [m.version for m in pending]

    async def upgrade(
        self,
        engine: AsyncEngine,
        schema_name: str,
        create_namespace: bool = False,
        on_begin: Optional[Callable[[], None]] = None,
    ) -> List[int]:
        """
        Apply every pending manifest step to a schema.

        Args:
            engine: Engine whose connections are bound to the schema
            schema_name: Tenant schema name (validated identifier)
            create_namespace: Create the schema itself first (provisioning)
            on_begin: Called once the schema is locked and steps are about to run

        Returns:
            Versions applied by this call; empty when already current

        Raises:
            DatabaseConnectionError: If the database cannot be reached
            ProvisioningError: If any step fails
        """
        try:
            async with engine.begin() as conn:
                return await conn.run_sync(self._upgrade, schema_name, create_namespace, on_begin)
        except ProvisioningError:
            raise
        except Exception as e:
            if is_disconnect_error(e):
                raise DatabaseConnectionError(
                    f"Database unreachable while migrating schema '{schema_name}'"
                ) from e
            raise ProvisioningError(
                f"Failed to migrate tenant schema '{schema_name}': {e}"
            ) from e

    async def current_version(self, engine: AsyncEngine, schema_name: str) -> int:
        """
        Read the recorded version of a schema without changing it.

        Raises:
            DatabaseConnectionError: If the database cannot be reached
            ProvisioningError: If the version table cannot be read
        """
        def _read(connection: Connection) -> int:
            if connection.dialect.name == "postgresql":
                connection.execute(sa.text(f'SET LOCAL search_path TO "{schema_name}"'))
            return self.read_version(connection)

        try:
            async with engine.begin() as conn:
                return await conn.run_sync(_read)
        except Exception as e:
            if is_disconnect_error(e):
                raise DatabaseConnectionError(
                    f"Database unreachable while reading schema '{schema_name}'"
                ) from e
            raise ProvisioningError(
                f"Failed to read version of tenant schema '{schema_name}': {e}"
            ) from e
