"""Tests for tenant schema identifiers"""

import pytest

from forpharma.schemas.tenant import OrganizationCreate
from forpharma.tenancy.state import SchemaState, schema_name, schema_name_for


class TestSchemaName:
    """Test identifier validation"""

    @pytest.mark.parametrize("value", ["org_acme", "a", "org_2024", "x" * 63])
    def test_valid_names(self, value):
        assert schema_name(value) == value

    @pytest.mark.parametrize("value", [
        "",
        "x" * 64,
        "Org_Acme",
        "org-acme",
        "1org",
        "_org",
        "org acme",
        'org"; DROP SCHEMA public; --',
    ])
    def test_invalid_names(self, value):
        with pytest.raises(ValueError):
            schema_name(value)

    @pytest.mark.parametrize("value", ["public", "information_schema", "pg_catalog", "pg_toast"])
    def test_reserved_names(self, value):
        with pytest.raises(ValueError):
            schema_name(value)

    def test_non_string_rejected(self):
        with pytest.raises(ValueError):
            schema_name(None)


class TestSchemaNameFor:
    """Test deriving schema names from organization names"""

    def test_slug(self):
        assert schema_name_for("Acme Pharma") == "org_acme_pharma"

    def test_punctuation_collapsed(self):
        assert schema_name_for("  Sun & Moon Labs, Inc. ") == "org_sun_moon_labs_inc"

    def test_long_names_truncated(self):
        derived = schema_name_for("Very Long Organization Name " * 5)

        assert len(derived) <= 63
        assert not derived.endswith("_")

    def test_unusable_name(self):
        with pytest.raises(ValueError):
            schema_name_for("!!!")


class TestOrganizationCreate:
    """Test onboarding request validation"""

    def test_schema_name_optional(self):
        assert OrganizationCreate(name="Acme Pharma").schema_name is None

    def test_invalid_schema_name(self):
        with pytest.raises(ValueError):
            OrganizationCreate(name="Acme Pharma", schema_name="public")


def test_schema_state_values():
    assert SchemaState("current") is SchemaState.CURRENT
    assert SchemaState.FAILED.value == "failed"
