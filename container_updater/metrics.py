"""
Prometheus metrics for replacement attempts.

Each app owns its registry so several apps (e.g. in tests) never collide on
metric names.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from container_updater.models import ReplacementOutcome

# Image pulls dominate; buckets stretch to the default request timeout
DURATION_BUCKETS = (0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600)


class UpdaterMetrics:
    """Counters and latencies of replacement attempts by outcome stage."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.replacements = Counter(
            "container_updater_replacements_total",
            "Replacement attempts by outcome (success or failing stage)",
            ["outcome"],
            registry=self.registry,
        )
        self.duration = Histogram(
            "container_updater_replacement_duration_seconds",
            "Duration of replacement attempts by outcome",
            ["outcome"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self.rejections = Counter(
            "container_updater_rejected_requests_total",
            "Requests rejected before the orchestrator ran",
            ["reason"],
            registry=self.registry,
        )
        self.timeouts = Counter(
            "container_updater_timeouts_total",
            "Requests that exceeded the configured deadline",
            registry=self.registry,
        )
        self.in_flight = Gauge(
            "container_updater_in_flight_replacements",
            "Replacements currently running",
            registry=self.registry,
        )

    def observe_outcome(self, outcome: ReplacementOutcome, duration_seconds: float) -> None:
        self.observe_attempt(outcome.label, duration_seconds)

    def observe_attempt(self, label: str, duration_seconds: float) -> None:
        """Record one attempt; label is "success", a failing stage, or "internal"."""
        self.replacements.labels(outcome=label).inc()
        self.duration.labels(outcome=label).observe(duration_seconds)

    def observe_rejection(self, reason: str) -> None:
        self.rejections.labels(reason=reason).inc()

    def observe_timeout(self) -> None:
        self.timeouts.inc()

    def render(self) -> bytes:
        """Current metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)
