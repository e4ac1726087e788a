# storefront/routers/reviews.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import require_admin, require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import review_service as service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.review import (
    ReviewCreate,
    ReviewPage,
    ReviewRead,
    ReviewSort,
    ReviewStatusUpdate,
    ReviewUpdate,
)

router = APIRouter(tags=["Reviews"])


# -------- Reviews of a product --------


@router.get("/products/{product_id}/reviews", response_model=ApiResponse[ReviewPage])
def list_product_reviews(
    product_id: uuid.UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=10, ge=1, le=50),
    rating: int | None = Query(default=None, ge=1, le=5),
    verified: bool = False,
    sort: ReviewSort = "newest",
    session: Session = Depends(get_session),
):
    page = service.list_reviews(
        session,
        product_id,
        skip=skip,
        limit=limit,
        rating=rating,
        verified_only=verified,
        sort=sort,
    )
    return ok(page, "Reviews retrieved")


@router.post(
    "/products/{product_id}/reviews",
    response_model=ApiResponse[ReviewRead],
    status_code=201,
)
def create_review(
    product_id: uuid.UUID,
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Review a product (one review per user per product).
    """
    review = service.create_review(session, current_user, product_id, payload)
    return ok(review, "Review created")


# -------- Single review --------


@router.get("/reviews/{review_id}", response_model=ApiResponse[ReviewRead])
def get_review(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return ok(service.get_review(session, review_id), "Review retrieved")


@router.put("/reviews/{review_id}", response_model=ApiResponse[ReviewRead])
def update_review(
    review_id: uuid.UUID,
    payload: ReviewUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    review = service.update_review(session, current_user, review_id, payload)
    return ok(review, "Review updated")


@router.delete("/reviews/{review_id}", response_model=ApiResponse[None])
def delete_review(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    service.delete_review(session, current_user, review_id)
    return ok(None, "Review deleted")


@router.patch("/reviews/{review_id}/status", response_model=ApiResponse[ReviewRead])
def moderate_review(
    review_id: uuid.UUID,
    payload: ReviewStatusUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return ok(service.moderate_review(session, review_id, payload), "Review status updated")
