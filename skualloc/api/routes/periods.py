"""Period API routes.

In the URL the default period is spelled ``null``.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skualloc.api.deps import get_current_user, load_session, service_errors
from skualloc.api.schemas import (
    PeriodBudgetUpdate,
    PeriodChangeResponse,
    PeriodCreate,
    PeriodCreateResponse,
    PeriodRename,
    PeriodResponse,
)
from skualloc.db import get_db
from skualloc.engine import allocations as allocation_service
from skualloc.engine import periods as period_service
from skualloc.engine.store import UNSET

router = APIRouter(prefix="/api/sessions", tags=["Periods"])


@router.get("/{session_id}/periods", response_model=List[PeriodResponse])
def list_periods(
    session_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Periods with budgets; the default period first, then by name."""
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        return [
            PeriodResponse(
                period=row.period,
                display_name=row.display_name,
                budget=str(row.budget),
                allocation_count=period_service.count_allocations(db, session, row.period),
            )
            for row in period_service.list_period_budgets(db, session)
        ]


@router.post("/{session_id}/periods", response_model=PeriodCreateResponse, status_code=201)
def create_period(
    session_id: int,
    request: PeriodCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Create a period, copying another period's rows or seeding placeholders."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        copy_from = UNSET
        if request.copy_from is not None:
            copy_from = period_service.parse_period_token(request.copy_from)
        result = period_service.create_period(db, session, request.period, request.budget, copy_from)
        return PeriodCreateResponse(
            period=result.period,
            budget=str(result.budget),
            copied=result.copied,
            seeded=result.seeded,
        )


@router.put("/{session_id}/periods/{period}", response_model=PeriodChangeResponse)
def rename_period(
    session_id: int,
    period: str,
    request: PeriodRename,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Rename a period; its budget and every allocation row move together."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        old = period_service.parse_period_token(period)
        moved = period_service.rename_period(db, session, old, request.new_period)
        return PeriodChangeResponse(period=request.new_period.strip(), rows=moved)


@router.delete("/{session_id}/periods/{period}", response_model=PeriodChangeResponse)
def delete_period(
    session_id: int,
    period: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Delete a period and its allocations; returns the removed row count."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        target = period_service.parse_period_token(period)
        removed = period_service.delete_period(db, session, target)
        return PeriodChangeResponse(period=target, rows=removed)


@router.put("/{session_id}/periods/{period}/budget", response_model=PeriodChangeResponse)
def update_period_budget(
    session_id: int,
    period: str,
    request: PeriodBudgetUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Change a period's budget and recompute that period's amounts."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        target = period_service.parse_period_token(period)
        changed = allocation_service.update_period_budget(db, session, target, request.budget)
        return PeriodChangeResponse(period=target, rows=changed)


@router.post("/{session_id}/periods/{period}/recompute", response_model=PeriodChangeResponse)
def recompute_period(
    session_id: int,
    period: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Re-derive every amount and quantity of a period from its percentages."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        target = period_service.parse_period_token(period)
        changed = allocation_service.recompute(db, session, target)
        return PeriodChangeResponse(period=target, rows=changed)
