"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

REGISTRY = CollectorRegistry()

WORKFLOW_OUTCOMES = Counter(
    "vj_workflow_outcomes_total",
    "Workflow results by workflow and outcome code",
    labelnames=("workflow", "outcome"),
    registry=REGISTRY,
)

ENRICHMENT_OUTCOMES = Counter(
    "vj_enrichment_outcomes_total",
    "Background enrichment task results",
    labelnames=("outcome",),
    registry=REGISTRY,
)

ENTRY_COUNT = Gauge(
    "vj_entries",
    "Number of journal entries at the last health check",
    registry=REGISTRY,
)

ORPHANED_FILES = Gauge(
    "vj_orphaned_media_files",
    "Media files referenced by no entry at the last scan",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "WORKFLOW_OUTCOMES",
    "ENRICHMENT_OUTCOMES",
    "ENTRY_COUNT",
    "ORPHANED_FILES",
    "metrics_response",
]
