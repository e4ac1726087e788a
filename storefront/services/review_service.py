# storefront/services/review_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.errors import AuthorizationError, ConflictError, NotFoundError
from storefront.core.timeutils import utcnow
from storefront.models.product import Product
from storefront.models.review import Review
from storefront.models.user import User
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.schemas.review import (
    ReviewCreate,
    ReviewPage,
    ReviewRead,
    ReviewStatusUpdate,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Business logic for product reviews.

    Responsibilities:
      - one review per user per product
      - verified flag from the author's delivered orders
      - authors edit their own reviews; authors or admins delete them
      - product.rating_average / rating_count follow the approved reviews
    """

    def __init__(
        self,
        repo: ReviewRepository,
        product_repo: ProductRepository,
        order_repo: OrderRepository,
    ):
        self.repo = repo
        self.product_repo = product_repo
        self.order_repo = order_repo

    # ---- internal helpers ----

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None or not product.is_purchasable:
            raise NotFoundError("Product not found")
        return product

    def _get(self, session: Session, review_id: uuid.UUID) -> Review:
        review = self.repo.get_by_id(session, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        return review

    def _refresh_rating(self, session: Session, product_id: uuid.UUID) -> None:
        """Recompute the product's rating aggregate; no-op for a deleted product."""
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            return
        average, count = self.repo.rating_stats(session, product_id)
        product.rating_average = round(float(average), 1) if count else 0.0
        product.rating_count = count
        self.product_repo.save(session, product)

    @staticmethod
    def _to_read(review: Review, author: User) -> ReviewRead:
        return ReviewRead(**review.model_dump(), author_name=author.full_name)

    # ---- reads ----

    def list_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10,
        rating: int | None = None,
        verified_only: bool = False,
        sort: str = "newest",
    ) -> ReviewPage:
        """Approved reviews of a purchasable product."""
        product = self._get_product(session, product_id)
        rows, total = self.repo.list_for_product(
            session,
            product_id,
            skip=skip,
            limit=limit,
            rating=rating,
            verified_only=verified_only,
            sort=sort,
        )
        return ReviewPage(
            items=[self._to_read(review, author) for review, author in rows],
            total=total,
            skip=skip,
            limit=limit,
            rating_average=product.rating_average,
            rating_count=product.rating_count,
        )

    def get_review(self, session: Session, review_id: uuid.UUID) -> ReviewRead:
        review = self._get(session, review_id)
        return self._to_read(review, session.get(User, review.user_id))

    # ---- writes ----

    def create_review(
        self,
        session: Session,
        user: User,
        product_id: uuid.UUID,
        payload: ReviewCreate,
    ) -> ReviewRead:
        self._get_product(session, product_id)
        if self.repo.get_for_user(session, product_id, user.id) is not None:
            raise ConflictError("You have already reviewed this product")

        now = utcnow()
        try:
            review = self.repo.save(
                session,
                Review(
                    **payload.model_dump(),
                    product_id=product_id,
                    user_id=user.id,
                    verified=self.order_repo.has_delivered_item(
                        session, user.id, product_id
                    ),
                    created_at=now,
                    updated_at=now,
                ),
            )
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError("You have already reviewed this product") from exc

        self._refresh_rating(session, product_id)
        session.commit()
        session.refresh(review)
        logger.info("Review %s added to product %s", review.id, product_id)
        return self._to_read(review, user)

    def update_review(
        self,
        session: Session,
        user: User,
        review_id: uuid.UUID,
        payload: ReviewUpdate,
    ) -> ReviewRead:
        review = self._get(session, review_id)
        if review.user_id != user.id:
            raise AuthorizationError("You can only update your own reviews")

        for field, value in payload.model_dump(exclude_none=True).items():
            setattr(review, field, value)
        review.updated_at = utcnow()
        self.repo.save(session, review)

        self._refresh_rating(session, review.product_id)
        session.commit()
        session.refresh(review)
        return self._to_read(review, user)

    def delete_review(self, session: Session, user: User, review_id: uuid.UUID) -> None:
        review = self._get(session, review_id)
        if review.user_id != user.id and user.role != "admin":
            raise AuthorizationError("You can only delete your own reviews")

        product_id = review.product_id
        self.repo.delete(session, review)
        self._refresh_rating(session, product_id)
        session.commit()
        logger.info("Review %s deleted by %s", review_id, user.id)

    def moderate_review(
        self,
        session: Session,
        review_id: uuid.UUID,
        payload: ReviewStatusUpdate,
    ) -> ReviewRead:
        """Admin: change a review's status; only approved reviews are rated."""
        review = self._get(session, review_id)
        review.status = payload.status
        review.moderation_reason = payload.moderation_reason
        review.updated_at = utcnow()
        self.repo.save(session, review)

        self._refresh_rating(session, review.product_id)
        session.commit()
        session.refresh(review)
        return self._to_read(review, session.get(User, review.user_id))
