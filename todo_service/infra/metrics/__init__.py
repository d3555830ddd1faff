"""Metrics infrastructure: Prometheus scrape registry and OTel request instruments."""

from __future__ import annotations

from todo_service.infra.metrics.prometheus import REGISTRY
from todo_service.infra.metrics.requests import RequestMetrics

__all__ = [
    "REGISTRY",
    "RequestMetrics",
]
