"""Services package."""

from budget_engine.services.batch_scheduler import BatchScheduler
from budget_engine.services.budget_generator import BudgetGenerator
from budget_engine.services.budget_service import BudgetService
from budget_engine.services.missing_budget_detector import MissingBudgetDetector
from budget_engine.services.rollover_calculator import RolloverService, compute_rollover
from budget_engine.services.template_service import TemplateService
from budget_engine.services.transfer_service import TransferService

__all__ = [
    "BatchScheduler",
    "BudgetGenerator",
    "BudgetService",
    "MissingBudgetDetector",
    "RolloverService",
    "TemplateService",
    "TransferService",
    "compute_rollover",
]
