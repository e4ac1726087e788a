# storefront/routers/categories.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import get_current_user, require_admin
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import category_service as service
from storefront.schemas.category import (
    CategoryCreate,
    CategoryNode,
    CategoryRead,
    CategoryUpdate,
)
from storefront.schemas.common import ApiResponse, ok

router = APIRouter(prefix="/categories", tags=["Categories"])


def _is_admin(user: User | None) -> bool:
    return user is not None and user.role == "admin"


# -------- Public endpoints --------


@router.get("", response_model=ApiResponse[list[CategoryRead]])
def list_categories(
    level: int | None = Query(default=None, ge=0, le=3),
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    categories = service.list_categories(
        session, include_inactive=_is_admin(current_user), level=level
    )
    return ok(categories, "Categories retrieved")


@router.get("/hierarchy", response_model=ApiResponse[list[CategoryNode]])
def category_hierarchy(
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Category tree: root categories with their sub-categories nested.
    """
    tree = service.hierarchy(session, include_inactive=_is_admin(current_user))
    return ok(tree, "Category hierarchy retrieved")


@router.get("/{ref}", response_model=ApiResponse[CategoryRead])
def get_category(
    ref: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Get a category by id or slug.
    """
    category = service.get_category(session, ref, include_inactive=_is_admin(current_user))
    return ok(category, "Category retrieved")


# -------- Admin endpoints --------


@router.post("", response_model=ApiResponse[CategoryRead], status_code=201)
def create_category(
    payload: CategoryCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return ok(service.create_category(session, payload), "Category created")


@router.put("/{category_id}", response_model=ApiResponse[CategoryRead])
def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return ok(service.update_category(session, category_id, payload), "Category updated")


@router.delete("/{category_id}", response_model=ApiResponse[None])
def delete_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    """
    Delete an empty category: one with no sub-categories and no products.
    """
    service.delete_category(session, category_id)
    return ok(None, "Category deleted")
