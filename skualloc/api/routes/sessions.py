"""Budget session API routes.

Provides session lifecycle and read views:
- List/create/update/delete sessions
- SKU data of a session
- Derived hierarchy tree with per-period values, stale flags and
  sibling-total warnings
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from skualloc.api.deps import get_current_user, load_session, service_errors
from skualloc.api.schemas import (
    PeriodResponse,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
    SiblingWarning,
    SkuDataResponse,
    TreeResponse,
)
from skualloc.db import get_db
from skualloc.engine import sessions as session_service
from skualloc.engine.allocations import get_tree
from skualloc.engine.errors import AuthorizationError, NotFoundError
from skualloc.engine.periods import count_allocations, list_period_budgets, parse_period_token
from skualloc.models import BudgetSession

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


def session_response(db: Session, session: BudgetSession, user_id: str) -> SessionResponse:
    periods = [
        PeriodResponse(
            period=row.period,
            display_name=row.display_name,
            budget=str(row.budget),
            allocation_count=count_allocations(db, session, row.period),
        )
        for row in list_period_budgets(db, session)
    ]
    return SessionResponse(
        id=session.id,
        category_id=session.category_id,
        name=session.name,
        status=session.status,
        owner_id=session.owner_id,
        can_edit=session_service.can_edit(user_id, session),
        created_at=session.created_at,
        updated_at=session.updated_at,
        periods=periods,
    )


@router.get("", response_model=List[SessionResponse])
def list_sessions(
    category_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Published sessions plus the caller's own drafts."""
    with service_errors(db):
        sessions = session_service.list_sessions(db, user_id, category_id)
        return [session_response(db, s, user_id) for s in sessions]


@router.post("", response_model=SessionResponse, status_code=201)
def create_session(
    request: SessionCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Create a draft session with its first period budget."""
    with service_errors(db):
        category = session_service.get_category(db, request.category_id)
        if category.user_id != user_id:
            raise AuthorizationError("Only the category owner can add sessions")
        session = session_service.create_session(
            db, category, request.name, request.period, request.budget
        )
        return session_response(db, session, user_id)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session_detail(
    session_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        return session_response(db, session, user_id)


@router.put("/{session_id}", response_model=SessionResponse)
def update_session(
    session_id: int,
    request: SessionUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Rename a session or change its status."""
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        session = session_service.update_session(db, session, name=request.name, status=request.status)
        return session_response(db, session, user_id)


@router.delete("/{session_id}")
def delete_session(
    session_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    with service_errors(db):
        session = load_session(db, session_id, user_id, edit=True)
        session_service.delete_session(db, session)
        return {"success": True, "deleted": session_id}


@router.get("/{session_id}/sku-data", response_model=List[SkuDataResponse])
def get_sku_data(
    session_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """SKU rows in import order."""
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        return [
            SkuDataResponse(
                id=sku.id,
                sku_code=sku.sku_code,
                unit_price=str(sku.unit_price),
                hierarchy_values=sku.hierarchy_values or {},
            )
            for sku in session_service.get_sku_data(db, session)
        ]


@router.get("/{session_id}/tree", response_model=TreeResponse)
def get_session_tree(
    session_id: int,
    period: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Hierarchy tree rebuilt from SKU data, with per-period allocation values.

    Repeat ``period`` to restrict the periods shown; ``null`` is the default
    period.
    """
    with service_errors(db):
        session = load_session(db, session_id, user_id)
        workspace = get_tree(db, session)

        if period:
            periods = [parse_period_token(p) for p in period]
            for p in periods:
                if p not in workspace.budgets:
                    raise NotFoundError(f"Period not found: {p if p is not None else 'default'}")
        else:
            periods = workspace.periods

        warnings = []
        for p in periods:
            for parent, total in workspace.cascade.over_limit_parents(p).items():
                warnings.append(SiblingWarning(period=p, parent_path=parent, total=total))

        stale_count = sum(
            1
            for node in workspace.tree.walk()
            for p, value in node.per_period.items()
            if p in periods and value.stale
        )

        return TreeResponse(
            session_id=session.id,
            hierarchy_columns=[d.column_name for d in workspace.definitions],
            periods=periods,
            nodes=[root.to_dict(periods) for root in workspace.tree.roots],
            stale_count=stale_count,
            warnings=warnings,
        )
