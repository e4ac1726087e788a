# storefront/schemas/review.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, model_validator
from sqlmodel import SQLModel, Field

ReviewSort = Literal["newest", "oldest", "highest-rating", "lowest-rating"]
ReviewStatus = Literal["pending", "approved", "rejected", "flagged"]


class ReviewCreate(SQLModel):
    """
    Payload for reviewing a product. Text fields are trimmed before the
    length checks.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    rating: int = Field(ge=1, le=5)
    title: str = Field(min_length=3, max_length=100)
    comment: str = Field(min_length=10, max_length=1000)


class ReviewUpdate(SQLModel):
    """Partial update by the author; at least one field must be sent."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(default=None, min_length=3, max_length=100)
    comment: str | None = Field(default=None, min_length=10, max_length=1000)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.rating is None and self.title is None and self.comment is None:
            raise ValueError("at least one of rating, title or comment is required")
        return self


class ReviewStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: ReviewStatus
    moderation_reason: str | None = Field(default=None, max_length=500)


class ReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    author_name: str
    rating: int
    title: str
    comment: str
    verified: bool
    status: str
    created_at: datetime
    updated_at: datetime


class ReviewPage(SQLModel):
    """
    One page of a product's reviews, with the product's rating aggregate.
    """

    items: list[ReviewRead]
    total: int
    skip: int
    limit: int
    rating_average: float
    rating_count: int
