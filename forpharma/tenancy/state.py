"""Tenant schema identifiers and lifecycle states"""

import enum
import re
from typing import NewType
from uuid import UUID

OrganizationId = NewType("OrganizationId", UUID)
SchemaName = NewType("SchemaName", str)

# PostgreSQL identifiers are limited to 63 bytes; lowercase only so the name
# never needs quoting.
_SCHEMA_NAME_RE = re.compile(r"^[a-z][a-z0-9_]{0,62}$")
_RESERVED = {"public", "information_schema"}


class SchemaState(str, enum.Enum):
    """Lifecycle of one tenant schema as seen by this process"""
    UNPROVISIONED = "unprovisioned"
    PROVISIONING = "provisioning"
    CURRENT = "current"
    STALE = "stale"
    MIGRATING = "migrating"
    FAILED = "failed"


def schema_name(value: str) -> SchemaName:
    """
    Validate a tenant schema identifier.

    Args:
        value: Candidate schema name

    Returns:
        The same value typed as SchemaName

    Raises:
        ValueError: If the value is empty, too long, reserved or contains
            characters other than lowercase letters, digits and underscores
    """
    if not isinstance(value, str) or not _SCHEMA_NAME_RE.match(value):
        raise ValueError(f"Invalid tenant schema name: {value!r}")
    if value in _RESERVED or value.startswith("pg_"):
        raise ValueError(f"Reserved schema name: {value!r}")
    return SchemaName(value)


def schema_name_for(organization_name: str) -> SchemaName:
    """Derive a schema name such as "org_acme_pharma" from an organization name"""
    slug = re.sub(r"[^a-z0-9]+", "_", organization_name.lower()).strip("_")
    if not slug:
        raise ValueError(f"Cannot derive a schema name from {organization_name!r}")
    return schema_name(f"org_{slug}"[:63].rstrip("_"))
