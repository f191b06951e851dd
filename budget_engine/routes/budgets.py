"""Budget API endpoints: budgets, generation, rollover and transfers."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.config import settings
from budget_engine.database import get_db
from budget_engine.dependencies import FamilyContext, FamilyRole, require_role
from budget_engine.exceptions import BudgetEngineError
from budget_engine.logging_config import get_logger
from budget_engine.routes.errors import to_http_exception
from budget_engine.schemas.budget import (
    BudgetCreate,
    BudgetDetailsResponse,
    BudgetResponse,
    BudgetUpdate,
    GenerateBudgetRequest,
)
from budget_engine.schemas.generation import (
    GeneratedBudgetResponse,
    GenerateMissingRequest,
    GenerationSummaryResponse,
    MissingBudgetListResponse,
    MissingBudgetResponse,
    PeriodResponse,
    RolloverSeedResponse,
)
from budget_engine.schemas.rollover import (
    RolloverApplyRequest,
    RolloverPreviewRequest,
    RolloverPreviewResponse,
)
from budget_engine.schemas.transfer import (
    TransferOptionsResponse,
    TransferRequest,
    TransferResponse,
)
from budget_engine.services.budget_generator import BudgetGenerator
from budget_engine.services.budget_service import BudgetService
from budget_engine.services.missing_budget_detector import MissingBudgetDetector
from budget_engine.services.rollover_calculator import RolloverService
from budget_engine.services.transfer_service import TransferService

logger = get_logger(__name__)

router = APIRouter()

# Bulk generation walks every template of a family, so it gets a stricter limit
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

viewer = require_role(FamilyRole.VIEWER)
member = require_role(FamilyRole.MEMBER)
admin = require_role(FamilyRole.ADMIN)


# Dependencies
async def get_budget_service(db: AsyncSession = Depends(get_db)) -> BudgetService:
    """Get budget service instance."""
    return BudgetService(db)


async def get_budget_generator(db: AsyncSession = Depends(get_db)) -> BudgetGenerator:
    """Get budget generator instance."""
    return BudgetGenerator(db)


async def get_missing_budget_detector(
    db: AsyncSession = Depends(get_db),
) -> MissingBudgetDetector:
    """Get missing-budget detector instance."""
    return MissingBudgetDetector(db)


async def get_rollover_service(db: AsyncSession = Depends(get_db)) -> RolloverService:
    """Get rollover service instance."""
    return RolloverService(db)


async def get_transfer_service(db: AsyncSession = Depends(get_db)) -> TransferService:
    """Get transfer service instance."""
    return TransferService(db)


# Endpoints
@router.get("", response_model=list[BudgetResponse])
async def list_budgets(
    active_on: Optional[date] = Query(None, description="Only budgets whose period covers this date"),
    context: FamilyContext = Depends(viewer),
    service: BudgetService = Depends(get_budget_service),
) -> list[BudgetResponse]:
    """List the family's budgets, newest period first.

    Args:
        active_on: Optional date filter
        context: Caller's family context
        service: Budget service

    Returns:
        List of budgets
    """
    budgets = await service.list_budgets(context.family_id, active_on)
    return [BudgetResponse.model_validate(b) for b in budgets]


@router.post("", response_model=BudgetResponse, status_code=201)
async def create_budget(
    budget: BudgetCreate,
    context: FamilyContext = Depends(member),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetResponse:
    """Create a budget by hand.

    Args:
        budget: Budget data
        context: Caller's family context
        service: Budget service

    Returns:
        Created budget

    Raises:
        HTTPException: If creation fails
    """
    try:
        created = await service.create_budget(
            family_id=context.family_id,
            user_id=context.user_id,
            name=budget.name,
            categories=[c.to_allocation() for c in budget.categories],
            period=budget.period,
            alert_threshold=budget.alert_threshold,
            start_date=budget.start_date,
        )
        return BudgetResponse.model_validate(created)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.post("/generate", response_model=GeneratedBudgetResponse, status_code=201)
async def generate_budget(
    request_data: GenerateBudgetRequest,
    context: FamilyContext = Depends(member),
    generator: BudgetGenerator = Depends(get_budget_generator),
) -> GeneratedBudgetResponse:
    """Generate the budget of a template for the period containing the anchor.

    Args:
        request_data: Template and optional anchor date
        context: Caller's family context
        generator: Budget generator

    Returns:
        Generated budget with the rollover that seeded it

    Raises:
        HTTPException: 409 if the period already has a budget
    """
    try:
        generated = await generator.generate(
            request_data.template_id,
            family_id=context.family_id,
            start_date=request_data.start_date,
            created_by=context.user_id,
        )
    except BudgetEngineError as e:
        raise to_http_exception(e)

    return GeneratedBudgetResponse(
        budget_id=generated.budget.id,
        template_id=request_data.template_id,
        name=generated.budget.name,
        total_budget=generated.budget.total_budget,
        period=PeriodResponse.model_validate(generated.period),
        previous_budget_id=generated.previous_budget_id,
        rollover=[RolloverSeedResponse.model_validate(r) for r in generated.rollover.values()],
    )


@router.get("/missing", response_model=MissingBudgetListResponse)
async def list_missing_budgets(
    reference_date: Optional[date] = Query(None, description="Treat this date as today"),
    context: FamilyContext = Depends(viewer),
    detector: MissingBudgetDetector = Depends(get_missing_budget_detector),
) -> MissingBudgetListResponse:
    """List auto-generating templates with no budget for the current period.

    Args:
        reference_date: Optional "today"
        context: Caller's family context
        detector: Missing-budget detector

    Returns:
        Missing budgets and their count
    """
    missing = await detector.find_missing(context.family_id, reference_date)
    return MissingBudgetListResponse(
        missing=[MissingBudgetResponse.model_validate(m) for m in missing],
        count=len(missing),
    )


@router.post("/generate-missing", response_model=GenerationSummaryResponse)
@limiter.limit(f"{settings.bulk_rate_limit_per_minute}/minute")
async def generate_missing_budgets(
    request: Request,
    request_data: Optional[GenerateMissingRequest] = None,
    context: FamilyContext = Depends(member),
    detector: MissingBudgetDetector = Depends(get_missing_budget_detector),
) -> GenerationSummaryResponse:
    """Generate every missing budget of the family, best effort.

    Templates that fail are reported in the summary; the others are still
    generated.

    Args:
        request: HTTP request (for rate limiting)
        request_data: Optional reference date
        context: Caller's family context
        detector: Missing-budget detector

    Returns:
        Generation summary
    """
    reference_date = request_data.reference_date if request_data else None
    summary = await detector.generate_missing(
        context.family_id, user_id=context.user_id, reference_date=reference_date
    )
    return GenerationSummaryResponse.model_validate(summary)


@router.post("/rollover/preview", response_model=RolloverPreviewResponse)
async def preview_rollover(
    request_data: RolloverPreviewRequest,
    context: FamilyContext = Depends(viewer),
    service: RolloverService = Depends(get_rollover_service),
) -> RolloverPreviewResponse:
    """Project what each category of a budget would carry forward.

    Args:
        request_data: Budget and optional month
        context: Caller's family context
        service: Rollover service

    Returns:
        Per-category rollover and totals
    """
    try:
        preview = await service.preview(
            request_data.budget_id, context.family_id, month=request_data.month
        )
        return RolloverPreviewResponse.model_validate(preview)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.post("/rollover/apply", response_model=RolloverPreviewResponse)
async def apply_rollover(
    request_data: RolloverApplyRequest,
    context: FamilyContext = Depends(admin),
    service: RolloverService = Depends(get_rollover_service),
) -> RolloverPreviewResponse:
    """Carry a closed budget's rollover into the following budget.

    Args:
        request_data: Previous and next budget
        context: Caller's family context
        service: Rollover service

    Returns:
        The rollover that was applied
    """
    try:
        applied = await service.apply(
            request_data.budget_id, request_data.next_budget_id, context.family_id
        )
        return RolloverPreviewResponse.model_validate(applied)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.post("/transfer", response_model=TransferResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def transfer_between_categories(
    request: Request,
    request_data: TransferRequest,
    context: FamilyContext = Depends(member),
    service: TransferService = Depends(get_transfer_service),
) -> TransferResponse:
    """Move money from one category of a budget to another.

    Args:
        request: HTTP request (for rate limiting)
        request_data: Source, destination and amount
        context: Caller's family context
        service: Transfer service

    Returns:
        Both categories' new rollover amounts

    Raises:
        HTTPException: 400 with available/requested if the source is short
    """
    try:
        result = await service.transfer(
            request_data.budget_id,
            context.family_id,
            request_data.from_category_id,
            request_data.to_category_id,
            request_data.amount,
            reason=request_data.reason,
        )
        return TransferResponse.model_validate(result)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.get("/transfer/options", response_model=TransferOptionsResponse)
async def get_transfer_options(
    budget_id: UUID = Query(..., description="Budget ID"),
    needing_category_id: Optional[UUID] = Query(None, description="Category that needs funds"),
    context: FamilyContext = Depends(viewer),
    service: TransferService = Depends(get_transfer_service),
) -> TransferOptionsResponse:
    """List categories with money available to give.

    Args:
        budget_id: Budget ID
        needing_category_id: Category excluded from the candidates
        context: Caller's family context
        service: Transfer service

    Returns:
        Candidate categories and total available
    """
    try:
        options = await service.transfer_options(
            budget_id, context.family_id, needing_category_id=needing_category_id
        )
        return TransferOptionsResponse.model_validate(options)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.get("/{budget_id}", response_model=BudgetDetailsResponse)
async def get_budget(
    budget_id: UUID,
    context: FamilyContext = Depends(viewer),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetDetailsResponse:
    """Get a budget with per-category spend, remaining and alert flags.

    Args:
        budget_id: Budget ID
        context: Caller's family context
        service: Budget service

    Returns:
        Budget details

    Raises:
        HTTPException: If budget not found
    """
    try:
        details = await service.get_budget_details(budget_id, context.family_id)
        return BudgetDetailsResponse.model_validate(details)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.put("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: UUID,
    budget: BudgetUpdate,
    context: FamilyContext = Depends(member),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetResponse:
    """Replace a budget's name, threshold and categories. Rollover is reset.

    Args:
        budget_id: Budget ID
        budget: New budget data
        context: Caller's family context
        service: Budget service

    Returns:
        Updated budget
    """
    try:
        updated = await service.update_budget(
            budget_id,
            context.family_id,
            name=budget.name,
            categories=[c.to_allocation() for c in budget.categories],
            alert_threshold=budget.alert_threshold,
        )
        return BudgetResponse.model_validate(updated)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: UUID,
    context: FamilyContext = Depends(admin),
    service: BudgetService = Depends(get_budget_service),
) -> Response:
    """Delete a budget and its categories.

    Args:
        budget_id: Budget ID
        context: Caller's family context
        service: Budget service
    """
    try:
        await service.delete_budget(budget_id, context.family_id)
    except BudgetEngineError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
