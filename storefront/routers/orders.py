# storefront/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import require_admin, require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import get_order_service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderPage,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatusUpdate,
)
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=ApiResponse[OrderDetailRead], status_code=201)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
):
    """
    Create an order from the current user's cart.

    Auth:
      - Registered users only; guests merge their cart at login first.
    """
    return ok(service.checkout(session, current_user, payload), "Order placed")


@router.get("", response_model=ApiResponse[OrderPage])
def list_orders(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    status: OrderStatus | None = None,
    user_id: uuid.UUID | None = None,
    order_number: str | None = Query(default=None, max_length=40),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
):
    """
    List orders (without items), newest first.

    - customers: their own orders
    - admins: all orders, filterable by user_id / order_number
    """
    page = service.list_orders(
        session,
        current_user,
        skip=skip,
        limit=limit,
        status=status,
        user_id=user_id,
        order_number=order_number,
    )
    return ok(page, "Orders retrieved")


@router.get("/{order_ref}", response_model=ApiResponse[OrderDetailRead])
def get_order(
    order_ref: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
):
    """
    Get a single order (with items and history) by id or order number.
    """
    return ok(service.get_order(session, current_user, order_ref), "Order retrieved")


@router.patch("/{order_ref}/status", response_model=ApiResponse[OrderDetailRead])
def update_order_status(
    order_ref: str,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: OrderService = Depends(get_order_service),
):
    """
    Move an order through its state machine.

    Admins: any allowed transition. Customers: cancel their own order.
    """
    order = service.update_status(session, current_user, order_ref, payload)
    return ok(order, "Order status updated")


@router.patch("/{order_ref}/payment", response_model=ApiResponse[OrderDetailRead])
def update_payment_status(
    order_ref: str,
    payload: PaymentStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_payment(session, current_user, order_ref, payload)
    return ok(order, "Payment status updated")
