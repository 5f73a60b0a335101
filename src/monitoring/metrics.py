"""
Metrics Collection
Prometheus metrics for sandbox renders, the component tree and persistence
"""

import time

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class MetricsCollector:
    """
    Collects and exposes Prometheus metrics for the artifact service.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        # Sandbox metrics
        self.sandbox_requests_total = Counter(
            "artifact_sandbox_requests_total",
            "Total number of sandbox render requests",
            ["status"],
            registry=self.registry,
        )
        self.sandbox_duration = Histogram(
            "artifact_sandbox_duration_seconds",
            "Sandbox round-trip duration in seconds",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )
        self.sandbox_contexts = Gauge(
            "artifact_sandbox_contexts",
            "Number of running isolated contexts",
            registry=self.registry,
        )

        # Render cache metrics
        self.cache_hits = Counter(
            "artifact_cache_hits_total",
            "Total number of cache hits",
            ["cache_type"],
            registry=self.registry,
        )
        self.cache_misses = Counter(
            "artifact_cache_misses_total",
            "Total number of cache misses",
            ["cache_type"],
            registry=self.registry,
        )

        # Component tree metrics
        self.tree_mutations_total = Counter(
            "artifact_tree_mutations_total",
            "Total number of component tree mutations",
            ["operation", "status"],
            registry=self.registry,
        )

        # Version metrics
        self.versions_total = Counter(
            "artifact_versions_total",
            "Total number of version store operations",
            ["operation"],
            registry=self.registry,
        )
        self.persistence_failures = Counter(
            "artifact_persistence_failures_total",
            "Persistence failures caught at a store boundary",
            ["store", "operation"],
            registry=self.registry,
        )

        # Generation metrics
        self.generation_requests_total = Counter(
            "artifact_generation_requests_total",
            "Total number of generation provider requests",
            ["status"],
            registry=self.registry,
        )
        self.generation_duration = Histogram(
            "artifact_generation_duration_seconds",
            "Generation provider duration in seconds",
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )

        # Error metrics
        self.errors_total = Counter(
            "artifact_errors_total",
            "Total number of errors",
            ["error_type", "component"],
            registry=self.registry,
        )

        # System metrics
        self.uptime = Gauge(
            "artifact_uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )
        self.start_time = time.time()

    def record_sandbox_request(self, status: str, duration: float) -> None:
        """Record a sandbox render round trip."""
        self.sandbox_requests_total.labels(status=status).inc()
        self.sandbox_duration.observe(duration)

    def context_started(self) -> None:
        self.sandbox_contexts.inc()

    def context_stopped(self) -> None:
        self.sandbox_contexts.dec()

    def record_cache_hit(self, cache_type: str) -> None:
        """Record a cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record a cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def record_tree_mutation(self, operation: str, status: str) -> None:
        self.tree_mutations_total.labels(operation=operation, status=status).inc()

    def record_version_operation(self, operation: str) -> None:
        self.versions_total.labels(operation=operation).inc()

    def record_persistence_failure(self, store: str, operation: str) -> None:
        """Record a swallowed-at-boundary persistence failure."""
        self.persistence_failures.labels(store=store, operation=operation).inc()

    def record_generation(self, status: str, duration: float) -> None:
        """Record a generation provider call."""
        self.generation_requests_total.labels(status=status).inc()
        self.generation_duration.observe(duration)

    def record_error(self, error_type: str, component: str) -> None:
        """Record an error."""
        self.errors_total.labels(error_type=error_type, component=component).inc()

    def update_uptime(self) -> None:
        """Update the uptime metric."""
        self.uptime.set(time.time() - self.start_time)

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        self.update_uptime()
        return generate_latest(self.registry)


# Global metrics collector instance
metrics_collector = MetricsCollector()
