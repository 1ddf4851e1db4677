"""Prometheus metrics for the tenant registry"""

import time
import logging
from prometheus_client import Counter, Histogram, Gauge

logger = logging.getLogger(__name__)


# Tenant client metrics
tenant_client_opens_total = Counter(
    'tenant_client_opens_total',
    'Tenant connection handles opened',
    ['status']
)

tenant_cache_hits_total = Counter(
    'tenant_cache_hits_total',
    'Tenant lookups served from the handle cache'
)

tenant_cache_evictions_total = Counter(
    'tenant_cache_evictions_total',
    'Tenant handles evicted from the cache'
)

tenant_clients_cached = Gauge(
    'tenant_clients_cached',
    'Tenant connection handles currently cached'
)

# Migration metrics
tenant_migrations_applied_total = Counter(
    'tenant_migrations_applied_total',
    'Tenant schema migration steps applied'
)

tenant_provisioning_duration_seconds = Histogram(
    'tenant_provisioning_duration_seconds',
    'Time spent opening and migrating a tenant schema',
    ['operation', 'status'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)


class TenancyMetrics:
    """Thin recorder over the module-level instruments"""

    def record_open(self, status: str):
        tenant_client_opens_total.labels(status=status).inc()

    def record_cache_hit(self):
        tenant_cache_hits_total.inc()

    def record_eviction(self):
        tenant_cache_evictions_total.inc()

    def set_cached(self, count: int):
        tenant_clients_cached.set(count)

    def record_migrations(self, applied: int):
        if applied:
            tenant_migrations_applied_total.inc(applied)

    def timer(self, operation: str) -> "MetricsTimer":
        return MetricsTimer(operation)


class MetricsTimer:
    """
    Context manager timing a provisioning operation.

    Usage:
        with metrics.timer("open"):
            await open_schema()
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        status = "failed" if exc_type else "completed"
        tenant_provisioning_duration_seconds.labels(
            operation=self.operation,
            status=status
        ).observe(duration)
        if exc_type:
            logger.debug(f"{self.operation} failed after {duration:.3f}s")
        return False
