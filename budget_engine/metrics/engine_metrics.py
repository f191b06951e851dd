"""Budget engine custom metrics for Prometheus.

Counts generation outcomes per trigger and transfer outcomes, so a stalled
scheduler or a burst of rejected transfers shows up on the dashboards.
"""

from prometheus_client import Counter, REGISTRY, CollectorRegistry

from budget_engine.logging_config import get_logger

logger = get_logger(__name__)


class EngineMetrics:
    """Custom Prometheus metrics for budget generation and transfers."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize engine metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # -------------------------------------------------------------------------
        # Generation
        # -------------------------------------------------------------------------
        self.budgets_generated = Counter(
            "budget_engine_budgets_generated_total",
            "Budgets materialized from templates",
            labelnames=["trigger"],
            registry=registry,
        )

        self.generation_skipped = Counter(
            "budget_engine_generation_skipped_total",
            "Generations skipped because the period already had a budget",
            labelnames=["trigger"],
            registry=registry,
        )

        self.generation_errors = Counter(
            "budget_engine_generation_errors_total",
            "Generations that failed with an error",
            labelnames=["trigger", "error"],
            registry=registry,
        )

        # -------------------------------------------------------------------------
        # Transfers
        # -------------------------------------------------------------------------
        self.transfers = Counter(
            "budget_engine_transfers_total",
            "Rollover transfers between budget categories",
            labelnames=["status"],
            registry=registry,
        )

        logger.debug("Budget engine metrics registered")


# Global metrics instance
engine_metrics = EngineMetrics()
