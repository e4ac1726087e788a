# storefront/schemas/user.py
import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from storefront.schemas.cart import MergePolicy

# App-level roles. Guests have no account, so they are not listed here.
Role = Literal["customer", "admin"]

# bcrypt only looks at the first 72 bytes of a password
PASSWORD_MAX_LENGTH = 72

_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
    (re.compile(r"[@$!%*?&]"), "one special character (@$!%*?&)"),
)
_PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")


def _check_password(v: str) -> str:
    missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(v)]
    if missing:
        raise ValueError("password must contain at least " + ", ".join(missing))
    if len(v.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"password cannot exceed {PASSWORD_MAX_LENGTH} bytes")
    return v


class RegisterRequest(SQLModel):
    """
    Payload for account creation.

    Validation rules:
      - email must be a valid EmailStr (stored lower-cased)
      - names 2..50 chars after trimming
      - password 8..72 chars with lower, upper, digit and special character
      - confirm_password must match
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=8, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    phone: str | None = Field(default=None, max_length=30)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not _PHONE_RE.match(v):
            raise ValueError("please provide a valid phone number")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("passwords do not match")
        return self


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class RefreshRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("passwords do not match")
        return self


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    phone: str | None = None
    role: Role
    last_login_at: datetime | None = None
    created_at: datetime


class TokenPair(SQLModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")


class CartMergeSummary(SQLModel):
    policy: MergePolicy
    merged: int
    replaced: int
    kept: int
    skipped: int


class AuthResult(SQLModel):
    user: UserRead
    tokens: TokenPair
    cart_merge: CartMergeSummary | None = None


class ForgotPasswordResult(SQLModel):
    # Only populated when EXPOSE_RESET_TOKEN is enabled (no email delivery)
    reset_token: str | None = None
    expires_at: datetime | None = None
