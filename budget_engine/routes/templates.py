"""Budget template API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from budget_engine.database import get_db
from budget_engine.dependencies import FamilyContext, FamilyRole, require_role
from budget_engine.exceptions import BudgetEngineError
from budget_engine.routes.errors import to_http_exception
from budget_engine.schemas.template import TemplateCreate, TemplateResponse, TemplateUpdate
from budget_engine.services.template_service import TemplateService

router = APIRouter()

viewer = require_role(FamilyRole.VIEWER)
admin = require_role(FamilyRole.ADMIN)


# Dependencies
async def get_template_service(db: AsyncSession = Depends(get_db)) -> TemplateService:
    """Get template service instance."""
    return TemplateService(db)


# Endpoints
@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    context: FamilyContext = Depends(viewer),
    service: TemplateService = Depends(get_template_service),
) -> list[TemplateResponse]:
    """List the family's active templates, newest first."""
    templates = await service.list_templates(context.family_id)
    return [TemplateResponse.model_validate(t) for t in templates]


@router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    template: TemplateCreate,
    context: FamilyContext = Depends(admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    """Create a budget template.

    Args:
        template: Template data
        context: Caller's family context
        service: Template service

    Returns:
        Created template

    Raises:
        HTTPException: 409 if the name is taken, 404 for unknown categories
    """
    try:
        created = await service.create_template(
            family_id=context.family_id,
            user_id=context.user_id,
            name=template.name,
            categories=[c.to_allocation() for c in template.categories],
            period=template.period,
            alert_threshold=template.alert_threshold,
            auto_generate=template.auto_generate,
        )
        return TemplateResponse.model_validate(created)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: UUID,
    context: FamilyContext = Depends(viewer),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    """Get an active template."""
    try:
        template = await service.get_template(template_id, context.family_id)
        return TemplateResponse.model_validate(template)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: UUID,
    template: TemplateUpdate,
    context: FamilyContext = Depends(admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    """Replace a template's settings and whole category set.

    Budgets already generated from the template keep their categories.
    """
    try:
        updated = await service.update_template(
            template_id,
            context.family_id,
            name=template.name,
            categories=[c.to_allocation() for c in template.categories],
            alert_threshold=template.alert_threshold,
            auto_generate=template.auto_generate,
        )
        return TemplateResponse.model_validate(updated)
    except BudgetEngineError as e:
        raise to_http_exception(e)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    context: FamilyContext = Depends(admin),
    service: TemplateService = Depends(get_template_service),
) -> Response:
    """Deactivate a template. Generated budgets are kept."""
    try:
        await service.deactivate_template(template_id, context.family_id)
    except BudgetEngineError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
