"""Tests for registry metrics"""

import pytest
from prometheus_client import REGISTRY

from forpharma.monitoring.metrics import MetricsTimer
from forpharma.tenancy.registry import TenantRegistry


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsTimer:
    """Test the provisioning duration timer"""

    def test_records_completed(self):
        before = _sample(
            "tenant_provisioning_duration_seconds_count",
            {"operation": "test_ok", "status": "completed"},
        )

        with MetricsTimer("test_ok"):
            pass

        after = _sample(
            "tenant_provisioning_duration_seconds_count",
            {"operation": "test_ok", "status": "completed"},
        )
        assert after == before + 1

    def test_records_failed_and_reraises(self):
        with pytest.raises(RuntimeError):
            with MetricsTimer("test_fail"):
                raise RuntimeError("boom")

        assert _sample(
            "tenant_provisioning_duration_seconds_count",
            {"operation": "test_fail", "status": "failed"},
        ) >= 1


@pytest.mark.asyncio
class TestRegistryMetrics:
    """Test the registry reports opens, hits and evictions"""

    async def test_open_and_cache_hit(self, registry):
        opens = _sample("tenant_client_opens_total", {"status": "succeeded"})
        hits = _sample("tenant_cache_hits_total")
        migrations = _sample("tenant_migrations_applied_total")

        await registry.get_tenant_client("org_acme")
        await registry.get_tenant_client("org_acme")

        assert _sample("tenant_client_opens_total", {"status": "succeeded"}) == opens + 1
        assert _sample("tenant_cache_hits_total") == hits + 1
        assert _sample("tenant_migrations_applied_total") == migrations + registry.migrator.head
        assert _sample("tenant_clients_cached") == 1

    async def test_eviction_counted(self, control_engine, engine_factory, migrator):
        registry = TenantRegistry(control_engine, engine_factory, migrator, capacity=1)
        try:
            evictions = _sample("tenant_cache_evictions_total")

            await registry.get_tenant_client("org_a")
            await registry.get_tenant_client("org_b")

            assert _sample("tenant_cache_evictions_total") == evictions + 1
        finally:
            await registry.dispose()
