"""SQLAlchemy models."""

from .session import Category, BudgetSession, SessionStatus
from .hierarchy import HierarchyDefinition, SkuData
from .allocation import Allocation
from .period import PeriodBudget

__all__ = [
    'Category',
    'BudgetSession',
    'SessionStatus',
    'HierarchyDefinition',
    'SkuData',
    'Allocation',
    'PeriodBudget',
]
