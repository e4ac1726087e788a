# storefront/schemas/address.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from storefront.schemas.order import AddressIn


class AddressCreate(AddressIn):
    """
    New address-book entry.

    The user's first address becomes the default whatever is_default says.
    """

    label: str | None = Field(default=None, max_length=50)
    is_default: bool = False


class AddressUpdate(SQLModel):
    """
    Partial update. is_default=True moves the default flag here;
    is_default=False is ignored (the flag only moves, it is never dropped).
    """

    model_config = ConfigDict(extra="forbid")

    label: str | None = Field(default=None, max_length=50)
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    company: str | None = Field(default=None, max_length=100)
    address_line1: str | None = Field(default=None, min_length=5, max_length=100)
    address_line2: str | None = Field(default=None, max_length=100)
    city: str | None = Field(default=None, min_length=2, max_length=50)
    state: str | None = Field(default=None, min_length=2, max_length=50)
    postal_code: str | None = Field(default=None, min_length=3, max_length=20)
    country: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    is_default: bool | None = None

    @field_validator(
        "first_name",
        "last_name",
        "address_line1",
        "city",
        "state",
        "postal_code",
        "country",
    )
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class AddressRead(SQLModel):
    id: uuid.UUID
    label: str | None = None
    first_name: str
    last_name: str
    company: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str | None = None
    is_default: bool
    created_at: datetime
    updated_at: datetime
