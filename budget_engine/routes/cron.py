"""Endpoint called by the external scheduler to run the batch sweep."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from budget_engine.config import settings
from budget_engine.database import AsyncSessionLocal
from budget_engine.dependencies import verify_cron_secret
from budget_engine.logging_config import get_logger
from budget_engine.schemas.generation import GenerationSummaryResponse
from budget_engine.services.batch_scheduler import BatchScheduler

logger = get_logger(__name__)

router = APIRouter()

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def get_batch_scheduler() -> BatchScheduler:
    """Get batch scheduler instance."""
    return BatchScheduler(AsyncSessionLocal)


@router.post(
    "/generate-budgets",
    response_model=GenerationSummaryResponse,
    dependencies=[Depends(verify_cron_secret)],
)
@limiter.limit(f"{settings.bulk_rate_limit_per_minute}/minute")
async def run_budget_generation(
    request: Request,
    reference_date: Optional[date] = Query(None, description="Treat this date as today"),
    scheduler: BatchScheduler = Depends(get_batch_scheduler),
) -> GenerationSummaryResponse:
    """Generate the current-period budget of every auto-generating template.

    Args:
        request: HTTP request (for rate limiting)
        reference_date: Optional "today"
        scheduler: Batch scheduler

    Returns:
        Sweep summary across all families
    """
    logger.info("Scheduled budget generation triggered")
    summary = await scheduler.run(reference_date)
    return GenerationSummaryResponse.model_validate(summary)
