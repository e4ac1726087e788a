# storefront/repositories/review_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.models.review import Review
from storefront.models.user import User

# sort key -> ORDER BY clause
REVIEW_SORTS = {
    "newest": (col(Review.created_at).desc(),),
    "oldest": (col(Review.created_at).asc(),),
    "highest-rating": (col(Review.rating).desc(), col(Review.created_at).desc()),
    "lowest-rating": (col(Review.rating).asc(), col(Review.created_at).desc()),
}


class ReviewRepository:
    """
    Data access layer for product reviews.

    Writes flush; ReviewService commits and maintains the product's rating.
    """

    def get_by_id(self, session: Session, review_id: uuid.UUID) -> Review | None:
        return session.get(Review, review_id)

    def get_for_user(
        self, session: Session, product_id: uuid.UUID, user_id: uuid.UUID
    ) -> Review | None:
        stmt = select(Review).where(
            Review.product_id == product_id,
            Review.user_id == user_id,
        )
        return session.exec(stmt).first()

    def list_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10,
        rating: int | None = None,
        verified_only: bool = False,
        sort: str = "newest",
        status: str | None = "approved",
    ) -> tuple[list[tuple[Review, User]], int]:
        """(review, author) pairs plus the total count for the filter."""
        filters = [Review.product_id == product_id]
        if status is not None:
            filters.append(Review.status == status)
        if rating is not None:
            filters.append(Review.rating == rating)
        if verified_only:
            filters.append(Review.verified == True)  # noqa: E712

        stmt = select(Review, User).join(User, User.id == Review.user_id)
        count_stmt = select(func.count()).select_from(Review)
        for f in filters:
            stmt = stmt.where(f)
            count_stmt = count_stmt.where(f)

        stmt = stmt.order_by(*REVIEW_SORTS[sort]).offset(skip).limit(limit)
        return session.exec(stmt).all(), session.exec(count_stmt).one()

    def rating_stats(self, session: Session, product_id: uuid.UUID) -> tuple[float | None, int]:
        """Average rating and count over the product's approved reviews."""
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.product_id == product_id,
            Review.status == "approved",
        )
        average, count = session.exec(stmt).one()
        return average, count

    def save(self, session: Session, review: Review) -> Review:
        session.add(review)
        session.flush()
        return review

    def delete(self, session: Session, review: Review) -> None:
        session.delete(review)
        session.flush()
