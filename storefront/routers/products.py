# storefront/routers/products.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import get_current_user, require_admin
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import product_service as service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.product import (
    ProductCreate,
    ProductPage,
    ProductRead,
    ProductStatus,
    ProductUpdate,
)

router = APIRouter(prefix="/products", tags=["Products"])


def _is_admin(user: User | None) -> bool:
    return user is not None and user.role == "admin"


# -------- Public endpoints --------


@router.get("", response_model=ApiResponse[ProductPage])
def list_products(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    status: ProductStatus | None = None,
    category: str | None = Query(default=None, description="Category id or slug"),
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    List products.

    - guests / customers: purchasable products only (active + public)
    - admins: every product, optionally filtered by status
    - `category` also matches products of its sub-categories
    """
    page = service.list_products(
        session,
        skip=skip,
        limit=limit,
        include_unlisted=_is_admin(current_user),
        status=status,
        category=category,
    )
    return ok(page, "Products retrieved")


@router.get("/{ref}", response_model=ApiResponse[ProductRead])
def get_product(
    ref: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Get a product by id or slug.
    """
    product = service.get_public(session, ref, include_unlisted=_is_admin(current_user))
    return ok(product, "Product retrieved")


# -------- Admin endpoints --------


@router.post("", response_model=ApiResponse[ProductRead], status_code=201)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return ok(service.create_product(session, payload), "Product created")


@router.patch("/{product_id}", response_model=ApiResponse[ProductRead])
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return ok(service.update_product(session, product_id, payload), "Product updated")


@router.delete("/{product_id}", response_model=ApiResponse[None])
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    service.delete_product(session, product_id)
    return ok(None, "Product deleted")
