# storefront/schemas/category.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


def _strip_required(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


class CategoryCreate(SQLModel):
    """
    Payload for creating a category.

    - slug is optional: if omitted, generated from `name`.
    - parent_id nests the category one level below its parent.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=100)
    slug: str | None = Field(default=None, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    parent_id: uuid.UUID | None = None
    is_active: bool = True
    sort_order: int = 0

    @field_validator("name", "slug")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        return _strip_required(v)


class CategoryUpdate(SQLModel):
    """
    Partial update. Sending parent_id moves the category (and its subtree);
    set move_to_root to detach it from its parent.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=2, max_length=100)
    slug: str | None = Field(default=None, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    parent_id: uuid.UUID | None = None
    move_to_root: bool = False
    is_active: bool | None = None
    sort_order: int | None = None

    @field_validator("name", "slug")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        return _strip_required(v)


class CategoryRead(SQLModel):
    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    parent_id: uuid.UUID | None = None
    level: int
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime


class CategoryNode(CategoryRead):
    """A category with its sub-categories, for the hierarchy view."""

    children: list["CategoryNode"] = Field(default_factory=list)


CategoryNode.model_rebuild()
