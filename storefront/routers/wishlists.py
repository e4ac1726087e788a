# storefront/routers/wishlists.py
import uuid

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from storefront.core.auth import require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import get_wishlist_service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.wishlist import (
    MoveToCartRequest,
    MoveToCartResult,
    SharedWishlistRead,
    WishlistAddResult,
    WishlistCreate,
    WishlistItemAdd,
    WishlistRead,
    WishlistShareRequest,
    WishlistShareResult,
    WishlistUpdate,
)
from storefront.services.wishlist_service import WishlistService

router = APIRouter(prefix="/wishlists", tags=["Wishlists"])

# `wishlist_id` path params accept a UUID or the alias "default".


@router.get("", response_model=ApiResponse[list[WishlistRead]])
def list_wishlists(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    return ok(service.list_wishlists(session, current_user), "Wishlists retrieved")


@router.post("", response_model=ApiResponse[WishlistRead], status_code=201)
def create_wishlist(
    payload: WishlistCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    return ok(service.create_wishlist(session, current_user, payload), "Wishlist created")


@router.get("/shared/{token}", response_model=ApiResponse[SharedWishlistRead])
def get_shared_wishlist(
    token: str,
    session: Session = Depends(get_session),
    service: WishlistService = Depends(get_wishlist_service),
):
    """
    Public view of a shared wishlist. No authentication.
    """
    return ok(service.get_shared(session, token), "Wishlist retrieved")


@router.get("/{wishlist_id}", response_model=ApiResponse[WishlistRead])
def get_wishlist(
    wishlist_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    return ok(service.get_wishlist(session, current_user, wishlist_id), "Wishlist retrieved")


@router.put("/{wishlist_id}", response_model=ApiResponse[WishlistRead])
def update_wishlist(
    wishlist_id: str,
    payload: WishlistUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    wishlist = service.update_wishlist(session, current_user, wishlist_id, payload)
    return ok(wishlist, "Wishlist updated")


@router.delete("/{wishlist_id}", response_model=ApiResponse[None])
def delete_wishlist(
    wishlist_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    """
    Delete a wishlist. The default wishlist cannot be deleted (409).
    """
    service.delete_wishlist(session, current_user, wishlist_id)
    return ok(None, "Wishlist deleted")


@router.post(
    "/{wishlist_id}/products/{product_id}",
    response_model=ApiResponse[WishlistAddResult],
)
def add_product_to_wishlist(
    wishlist_id: str,
    product_id: uuid.UUID,
    payload: WishlistItemAdd | None = Body(default=None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    """
    Add a product. Already present => 200 with a notice, not an error.
    """
    result = service.add_product(session, current_user, wishlist_id, product_id, payload)
    return ok(result, result.notice or "Product added to wishlist")


@router.delete(
    "/{wishlist_id}/products/{product_id}",
    response_model=ApiResponse[WishlistRead],
)
def remove_product_from_wishlist(
    wishlist_id: str,
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    wishlist = service.remove_product(session, current_user, wishlist_id, product_id)
    return ok(wishlist, "Product removed from wishlist")


@router.delete("/{wishlist_id}/items", response_model=ApiResponse[WishlistRead])
def clear_wishlist(
    wishlist_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    return ok(service.clear(session, current_user, wishlist_id), "Wishlist cleared")


@router.post("/{wishlist_id}/move-to-cart", response_model=ApiResponse[MoveToCartResult])
def move_to_cart(
    wishlist_id: str,
    payload: MoveToCartRequest | None = Body(default=None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    """
    Move selected (or all) items into the cart. Per-item failures are
    reported in `failed` and do not stop the others.
    """
    result = service.move_to_cart(
        session, current_user, wishlist_id, payload or MoveToCartRequest()
    )
    message = f"{len(result.moved)} item(s) moved to cart"
    if result.failed:
        message += f", {len(result.failed)} failed"
    return ok(result, message)


@router.post("/{wishlist_id}/share", response_model=ApiResponse[WishlistShareResult])
def share_wishlist(
    wishlist_id: str,
    payload: WishlistShareRequest | None = Body(default=None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: WishlistService = Depends(get_wishlist_service),
):
    result = service.share(
        session, current_user, wishlist_id, payload or WishlistShareRequest()
    )
    return ok(result, "Wishlist shared")
