import logging
from prometheus_client import Counter, Histogram, Gauge, Info, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

# Prometheus Registry
REGISTRY = CollectorRegistry()

allocation_commands_total = Counter(
    'site_allocation_commands_total',
    'Total orchestrator commands',
    ['status', 'service', 'method'],
    registry=REGISTRY
)

allocation_command_duration_seconds = Histogram(
    'site_allocation_command_duration_seconds',
    'Orchestrator command duration in seconds',
    ['service', 'method'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
    registry=REGISTRY
)

available_sites_gauge = Gauge(
    'site_allocation_available_sites',
    'Sites with no allocated, in-progress or completed work',
    registry=REGISTRY
)

available_engineers_gauge = Gauge(
    'site_allocation_available_engineers',
    'Engineers that are effectively available',
    registry=REGISTRY
)

pending_allocations_gauge = Gauge(
    'site_allocation_pending_allocations',
    'Sites with no engineer bound',
    registry=REGISTRY
)

system_info = Info(
    'site_allocation_info',
    'System information',
    registry=REGISTRY
)


class PrometheusMetricsCollector:
    """Records orchestrator command outcomes and the latest allocation counters"""

    def __init__(self):
        system_info.info({
            'version': '1.0.0',
            'service': 'site-allocation'
        })

    def record_command(
        self,
        service_name: str,
        method_name: str,
        duration_seconds: float,
        status: str,
    ):
        """Record one command; status is success, rejected or error"""
        allocation_commands_total.labels(
            status=status,
            service=service_name,
            method=method_name
        ).inc()

        allocation_command_duration_seconds.labels(
            service=service_name,
            method=method_name
        ).observe(duration_seconds)

    def update_allocation_stats(self, available_sites: int, available_engineers: int, pending_allocations: int):
        available_sites_gauge.set(available_sites)
        available_engineers_gauge.set(available_engineers)
        pending_allocations_gauge.set(pending_allocations)

    def get_prometheus_metrics(self) -> bytes:
        """Get Prometheus metrics in text format"""
        return generate_latest(REGISTRY)


# Global instance
prometheus_collector = PrometheusMetricsCollector()
