"""Categories, budget sessions and the capability checks that gate them.

Who the caller is comes from outside (an auth gateway); these functions
only decide what that user may do with a given session:
- the category owner may view and edit the session
- anyone may view a confirmed or archived session
- nobody else may view a draft
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from skualloc.db.postgres import transaction
from skualloc.models import BudgetSession, Category, PeriodBudget, SessionStatus, SkuData
from .errors import AuthorizationError, NotFoundError, ValidationError
from .periods import normalize_period_name, validate_budget

logger = logging.getLogger(__name__)

MAX_NAME = 200


def _validate_name(name, label: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{label} name is required")
    name = name.strip()
    if len(name) > MAX_NAME:
        raise ValidationError(f"{label} name must be at most {MAX_NAME} characters")
    return name


# =============================================================================
# Capability checks
# =============================================================================

def can_view(user_id: Optional[str], session: BudgetSession) -> bool:
    if user_id is not None and session.owner_id == user_id:
        return True
    return session.status in (SessionStatus.CONFIRMED.value, SessionStatus.ARCHIVED.value)


def can_edit(user_id: Optional[str], session: BudgetSession) -> bool:
    return user_id is not None and session.owner_id == user_id


def require_view(user_id: Optional[str], session: BudgetSession) -> None:
    if not can_view(user_id, session):
        raise AuthorizationError("This session is a draft being edited by its owner")


def require_edit(user_id: Optional[str], session: BudgetSession) -> None:
    if not can_edit(user_id, session):
        raise AuthorizationError("Only the owner can modify this session")


# =============================================================================
# Categories
# =============================================================================

def create_category(db: Session, user_id: str, name: str) -> Category:
    name = _validate_name(name, "Category")
    category = Category(name=name, user_id=user_id)
    with transaction(db):
        db.add(category)
    db.refresh(category)
    logger.info(f"Created category {category.id} '{name}' for user {user_id}")
    return category


def list_categories(db: Session, user_id: str) -> List[Category]:
    return db.query(Category).filter(
        Category.user_id == user_id
    ).order_by(Category.created_at.desc(), Category.id.desc()).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def delete_category(db: Session, user_id: str, category_id: int) -> None:
    """Delete a category and, through cascades, all of its sessions."""
    category = get_category(db, category_id)
    if category.user_id != user_id:
        raise AuthorizationError("Only the owner can delete this category")
    with transaction(db):
        db.delete(category)
    logger.info(f"Deleted category {category_id}")


# =============================================================================
# Sessions
# =============================================================================

def get_budget_session(db: Session, session_id: int) -> BudgetSession:
    session = db.query(BudgetSession).filter(BudgetSession.id == session_id).first()
    if session is None:
        raise NotFoundError("Session not found")
    return session


def create_session(
    db: Session,
    category: Category,
    name: str,
    first_period: str,
    budget,
) -> BudgetSession:
    """Create a draft session with its first period budget."""
    name = _validate_name(name, "Session")
    period = normalize_period_name(first_period)
    amount = validate_budget(budget)

    session = BudgetSession(category_id=category.id, name=name, status=SessionStatus.DRAFT.value)
    with transaction(db):
        db.add(session)
        db.flush()
        db.add(PeriodBudget(session_id=session.id, period=period, budget=amount))
    db.refresh(session)
    logger.info(f"Created session {session.id} '{name}' with period '{period}' budget {amount}")
    return session


def list_sessions(db: Session, user_id: str, category_id: Optional[int] = None) -> List[BudgetSession]:
    """Published sessions of anyone plus the caller's own drafts, newest first."""
    query = db.query(BudgetSession).join(Category)
    if category_id is not None:
        query = query.filter(BudgetSession.category_id == category_id)
    sessions = query.order_by(BudgetSession.created_at.desc(), BudgetSession.id.desc()).all()
    return [s for s in sessions if can_view(user_id, s)]


def update_session(
    db: Session,
    session: BudgetSession,
    name: Optional[str] = None,
    status: Optional[str] = None,
) -> BudgetSession:
    """Rename a session and/or move it through draft/confirmed/archived."""
    if name is not None:
        name = _validate_name(name, "Session")
    if status is not None:
        valid = [s.value for s in SessionStatus]
        if status not in valid:
            raise ValidationError(f"Invalid status '{status}', expected one of {valid}")

    with transaction(db):
        if name is not None:
            session.name = name
        if status is not None:
            session.status = status
    db.refresh(session)
    return session


def delete_session(db: Session, session: BudgetSession) -> None:
    """Delete a session with everything it owns."""
    session_id = session.id
    with transaction(db):
        db.delete(session)
    logger.info(f"Deleted session {session_id}")


def get_sku_data(db: Session, session: BudgetSession) -> List[SkuData]:
    """SKU rows in import order."""
    return db.query(SkuData).filter(SkuData.session_id == session.id).order_by(SkuData.id).all()
