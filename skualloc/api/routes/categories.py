"""Category API routes."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skualloc.api.deps import get_current_user, service_errors
from skualloc.api.schemas import CategoryCreate, CategoryResponse
from skualloc.db import get_db
from skualloc.engine import sessions as session_service

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get("", response_model=List[CategoryResponse])
def list_categories(db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    """Categories owned by the caller, newest first."""
    return session_service.list_categories(db, user_id)


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    request: CategoryCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    with service_errors(db):
        return session_service.create_category(db, user_id, request.name)


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Delete a category together with all of its sessions."""
    with service_errors(db):
        session_service.delete_category(db, user_id, category_id)
        return {"success": True, "deleted": category_id}
