"""
Prometheus metrics for provisioning runs.

Only low-cardinality labels are used. Model names, problem titles, paths and
URLs never become label values.
"""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter
from prometheus_client.registry import CollectorRegistry

FORBIDDEN_LABELS = frozenset(
    {
        "model",
        "problem",
        "path",
        "url",
        "source",
        "destination",
        "build_id",
    }
)

FetchFailureReason = Literal["network", "http_status", "size_mismatch", "checksum_mismatch"]
DependencyOutcome = Literal["downloaded", "copied", "failed"]
RunOutcome = Literal["complete", "incomplete", "failed"]


class ProvisioningMetrics:
    """
    Counters for the fetcher and the provisioning pipeline.

    Usage:
        registry = CollectorRegistry()
        metrics = ProvisioningMetrics(registry=registry)
        fetcher = DependencyFetcher(metrics=metrics)
        # generate_latest(registry) -> bytes for a /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._fetch_attempts = Counter(
            "modelforge_fetch_attempts",
            "Remote dependency download attempts",
            registry=self._registry,
        )
        self._fetch_failures = Counter(
            "modelforge_fetch_failures",
            "Failed download attempts by reason",
            ["reason"],
            registry=self._registry,
        )
        self._dependencies = Counter(
            "modelforge_dependencies",
            "Dependencies processed by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._runs = Counter(
            "modelforge_provision_runs",
            "Provisioning runs by terminal outcome",
            ["outcome"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_fetch_attempt(self) -> None:
        self._fetch_attempts.inc()

    def record_fetch_failure(self, reason: FetchFailureReason) -> None:
        self._fetch_failures.labels(reason=reason).inc()

    def record_dependency(self, outcome: DependencyOutcome) -> None:
        self._dependencies.labels(outcome=outcome).inc()

    def record_run(self, outcome: RunOutcome) -> None:
        self._runs.labels(outcome=outcome).inc()
