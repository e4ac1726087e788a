# storefront/routers/cart.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import get_cart_owner, require_admin, require_auth
from storefront.database import get_session
from storefront.models.cart import CartOwner
from storefront.models.user import User
from storefront.routers.deps import get_cart_service
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartMergeRequest,
    CartMergeResult,
    CartRead,
    CartSummary,
    CartSweepResult,
    CartValidation,
    CouponApply,
)
from storefront.schemas.common import ApiResponse, ok
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=ApiResponse[CartRead])
def get_my_cart(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    """
    Get the caller's cart (created empty on first access).

    Auth:
      - Bearer token => the user's cart
      - otherwise X-Session-Id => the guest cart
    """
    return ok(service.get_cart(session, owner), "Cart retrieved")


@router.get("/summary", response_model=ApiResponse[CartSummary])
def get_cart_summary(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    return ok(service.summary(session, owner), "Cart summary retrieved")


@router.post("/items", response_model=ApiResponse[CartRead], status_code=201)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    """
    Add product to the cart.

    Returns the updated cart.
    """
    return ok(service.add_item(session, owner, payload), "Item added to cart")


@router.put("/items/{item_id}", response_model=ApiResponse[CartRead])
def update_cart_item(
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    """
    Update quantity of a cart line (0 removes it).

    Returns the updated cart.
    """
    return ok(service.update_item(session, owner, item_id, payload), "Cart item updated")


@router.delete("/items/{item_id}", response_model=ApiResponse[CartRead])
def remove_cart_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    return ok(service.remove_item(session, owner, item_id), "Item removed from cart")


@router.delete("/clear", response_model=ApiResponse[CartRead])
def clear_cart(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    """
    Clear the entire cart (items and coupon).
    """
    return ok(service.clear(session, owner), "Cart cleared")


@router.post("/coupon", response_model=ApiResponse[CartRead])
def apply_coupon(
    payload: CouponApply,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    return ok(service.apply_coupon(session, owner, payload.code), "Coupon applied")


@router.delete("/coupon", response_model=ApiResponse[CartRead])
def remove_coupon(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    return ok(service.remove_coupon(session, owner), "Coupon removed")


@router.post("/validate", response_model=ApiResponse[CartValidation])
def validate_cart(
    fix: bool = Query(default=False, description="Auto-correct the issues found"),
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
):
    """
    Re-check the cart against live products.

    - fix=false: report issues only, nothing changes
    - fix=true: drop unavailable lines, clamp to stock, refresh prices,
      remove an ineligible coupon; returns what was fixed
    """
    if fix:
        return ok(service.reconcile(session, owner), "Cart reconciled")
    result = service.validate(session, owner)
    message = "Cart is valid" if result.is_valid else "Cart has issues"
    return ok(result, message)


@router.post("/merge", response_model=ApiResponse[CartMergeResult])
def merge_guest_cart(
    payload: CartMergeRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: CartService = Depends(get_cart_service),
):
    """
    Fold a guest cart into the authenticated user's cart.
    """
    result = service.merge(session, current_user.id, payload.session_id, payload.policy)
    return ok(result, "Cart merged")


@router.post("/sweep", response_model=ApiResponse[CartSweepResult])
def sweep_carts(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
    service: CartService = Depends(get_cart_service),
):
    """
    Maintenance: mark idle carts abandoned, delete expired ones (admin only).
    """
    return ok(service.sweep(session), "Cart sweep completed")
