"""Shared dependencies for the API routes."""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from skualloc.config import Config
from skualloc.engine.errors import AllocationError
from skualloc.engine.sessions import get_budget_session, require_edit, require_view
from skualloc.models import BudgetSession

logger = logging.getLogger(__name__)


def get_current_user(user_id: Optional[str] = Header(None, alias=Config.USER_HEADER)) -> str:
    """Caller identity, set by the upstream auth gateway."""
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id.strip()


def http_error(error: AllocationError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))


@contextmanager
def service_errors(db: Session):
    """Translate engine errors to HTTP errors; anything else is a 500."""
    try:
        yield
    except HTTPException:
        raise
    except AllocationError as e:
        raise http_error(e)
    except Exception as e:
        db.rollback()
        logger.exception(f"Unhandled error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def load_session(db: Session, session_id: int, user_id: str, edit: bool = False) -> BudgetSession:
    """Fetch a session and check the caller may view (or edit) it."""
    session = get_budget_session(db, session_id)
    if edit:
        require_edit(user_id, session)
    else:
        require_view(user_id, session)
    return session
