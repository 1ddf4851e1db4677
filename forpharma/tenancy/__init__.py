"""Multi-tenant schema and connection management"""

from .handles import ControlPlane, TenantClient
from .manifest import MANIFEST, TenantMigration
from .migrator import TenantMigrator
from .registry import TenantRegistry, default_engine_factory
from .state import OrganizationId, SchemaName, SchemaState, schema_name, schema_name_for

__all__ = [
    "ControlPlane",
    "TenantClient",
    "MANIFEST",
    "TenantMigration",
    "TenantMigrator",
    "TenantRegistry",
    "default_engine_factory",
    "OrganizationId",
    "SchemaName",
    "SchemaState",
    "schema_name",
    "schema_name_for",
]
