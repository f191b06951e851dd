"""Metrics module for observability."""

from budget_engine.metrics.engine_metrics import EngineMetrics, engine_metrics

__all__ = ["EngineMetrics", "engine_metrics"]
