"""Prometheus metrics registry and collectors."""

from task_service.infra.metrics.prometheus import REGISTRY

__all__ = ["REGISTRY"]
