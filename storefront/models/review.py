# storefront/models/review.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

REVIEW_STATUSES = ("pending", "approved", "rejected", "flagged")


class Review(SQLModel, table=True):
    """
    A customer's rating and comment on a product, one per user per product.

    Only approved reviews count towards the product's rating aggregate.
    `verified` is set at creation when the author has a delivered order
    containing the product.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("product_id", "user_id", name="uq_reviews_product_user"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # No FK, as for cart and order lines: reviews of a deleted product are
    # unreachable through the product routes.
    product_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    rating: int = Field(ge=1, le=5)
    title: str = Field(max_length=100)
    comment: str = Field(max_length=1000)

    verified: bool = Field(default=False)
    status: str = Field(
        default="approved",
        index=True,
        description="pending | approved | rejected | flagged",
    )
    moderation_reason: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
