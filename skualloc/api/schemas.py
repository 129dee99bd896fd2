"""
Pydantic schemas for API requests and responses.

Amounts, budgets and unit prices leave the API as decimal strings so large
currency values survive JSON clients; they are accepted as integers or
digit strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

Money = Union[int, str]


# =============================================================================
# Categories & sessions
# =============================================================================

class CategoryCreate(BaseModel):
    """Request to create a category."""
    name: str = Field(min_length=1, max_length=200)


class CategoryResponse(BaseModel):
    id: int
    name: str
    user_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PeriodResponse(BaseModel):
    """A period with its budget."""
    period: Optional[str]
    display_name: str
    budget: str
    allocation_count: int = 0


class SessionCreate(BaseModel):
    """Request to create a session with its first period."""
    category_id: int
    name: str = Field(min_length=1, max_length=200)
    period: str
    budget: Money


class SessionUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None


class SessionResponse(BaseModel):
    id: int
    category_id: int
    name: str
    status: str
    owner_id: str
    can_edit: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    periods: List[PeriodResponse] = []


class SkuDataResponse(BaseModel):
    id: int
    sku_code: str
    unit_price: str
    hierarchy_values: Dict[str, str] = {}


# =============================================================================
# Allocations
# =============================================================================

class AllocationIn(BaseModel):
    """One allocation row in a full save."""
    hierarchy_path: str
    level: int
    percentage: Decimal
    amount: Money = 0
    quantity: Money = 0
    period: Optional[str] = None


class AllocationSaveRequest(BaseModel):
    allocations: List[AllocationIn]


class AllocationResponse(BaseModel):
    hierarchy_path: str
    level: int
    percentage: Decimal
    amount: str
    quantity: int
    period: Optional[str] = None


class AllocationSaveResponse(BaseModel):
    saved: int
    period: Optional[str] = None


class ApplyRequest(BaseModel):
    """Single-cell edit: one node, one period (null = default)."""
    hierarchy_path: str
    percentage: Decimal
    period: Optional[str] = None


class ApplyResponse(BaseModel):
    allocation: AllocationResponse
    sibling_total: Decimal
    over_limit: bool


class AutoAllocateRequest(BaseModel):
    level: int
    period: Optional[str] = None


class AutoAllocateResponse(BaseModel):
    allocated: int
    percentage: Decimal
    level: int
    period: Optional[str] = None


class SiblingWarning(BaseModel):
    """Parent whose children's percentages exceed 100 in a period."""
    period: Optional[str]
    parent_path: Optional[str]
    total: Decimal


class TreeResponse(BaseModel):
    session_id: int
    hierarchy_columns: List[str]
    periods: List[Optional[str]]
    nodes: List[Dict[str, Any]]
    stale_count: int = 0
    warnings: List[SiblingWarning] = []


# =============================================================================
# Periods
# =============================================================================

class PeriodCreate(BaseModel):
    """Create a period; ``copy_from`` "null" copies the default period."""
    period: str
    budget: Money
    copy_from: Optional[str] = None


class PeriodCreateResponse(BaseModel):
    period: str
    budget: str
    copied: int
    seeded: int


class PeriodRename(BaseModel):
    new_period: str


class PeriodBudgetUpdate(BaseModel):
    budget: Money


class PeriodChangeResponse(BaseModel):
    """Row count affected by a period mutation."""
    period: Optional[str]
    rows: int


# =============================================================================
# Import
# =============================================================================

class ImportRowsRequest(BaseModel):
    rows: List[Dict[str, Any]]


class ImportResponse(BaseModel):
    imported: int
    hierarchy_levels: int
    dropped: int = 0
    removed_allocations: int = 0
    removed_skus: int = 0
