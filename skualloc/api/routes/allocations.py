"""Allocation API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skualloc.api.deps import get_current_user, load_session, service_errors
from skualloc.api.schemas import (
    AllocationResponse,
    AllocationSaveRequest,
    AllocationSaveResponse,
    ApplyRequest,
    ApplyResponse,
    AutoAllocateRequest,
    AutoAllocateResponse,
)
from skualloc.db import get_db
from skualloc.engine import allocations as allocation_service
from skualloc.engine.periods import parse_period_token
from skualloc.engine.store import UNSET

router = APIRouter(prefix="/api/sessions", tags=["Allocations"])


@router.get("/{session_id}/allocations", response_model=List[AllocationResponse])
def list_allocations(
    session_id: int,
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Allocation rows, all periods or one (``null`` = default)."""
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        scope = UNSET if period is None else parse_period_token(period)
        rows = allocation_service.list_allocations(db, session, scope)
        return [AllocationResponse(**row.to_dict()) for row in rows]


@router.put("/{session_id}/allocations", response_model=AllocationSaveResponse)
def save_allocations(
    session_id: int,
    request: AllocationSaveRequest,
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Replace all allocations, or only one period's with ``?period=``.

    In a scoped save, rows that omit ``period`` belong to the scoped period.
    """
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        scope = UNSET if period is None else parse_period_token(period)
        rows = [row.model_dump(exclude_unset=True) for row in request.allocations]
        if scope is not UNSET:
            for row in rows:
                row.setdefault("period", scope)
        saved = allocation_service.save_allocations(db, session, rows, scope)
        return AllocationSaveResponse(saved=saved, period=scope if scope is not UNSET else None)


@router.post("/{session_id}/allocations/apply", response_model=ApplyResponse)
def apply_percentage(
    session_id: int,
    request: ApplyRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Set one node's percentage and resolve its amount and quantity.

    Descendants are not recomputed. ``over_limit`` reports siblings above
    100% as a warning; the edit is still saved.
    """
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        result = allocation_service.apply_percentage(
            db, session, request.hierarchy_path, request.period, request.percentage
        )
        return ApplyResponse(
            allocation=AllocationResponse(
                hierarchy_path=result.hierarchy_path,
                level=result.value.level,
                percentage=result.value.percentage,
                amount=str(result.value.amount),
                quantity=result.value.quantity,
                period=result.period,
            ),
            sibling_total=result.siblings.total,
            over_limit=result.siblings.over_limit,
        )


@router.post("/{session_id}/allocations/auto", response_model=AutoAllocateResponse)
def auto_allocate(
    session_id: int,
    request: AutoAllocateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Split one level evenly across its paths."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        result = allocation_service.auto_allocate(db, session, request.level, request.period)
        return AutoAllocateResponse(
            allocated=result.allocated,
            percentage=result.percentage,
            level=request.level,
            period=request.period,
        )
