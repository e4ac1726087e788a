# storefront/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Registered account.

    Role:
      - "customer" | "admin"
      - guests have no row; they are identified by the X-Session-Id header.

    token_version is embedded in every issued JWT; bumping it (logout,
    password reset) invalidates refresh tokens issued before the bump.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="Lower-cased login email",
    )

    password_hash: str = Field(description="bcrypt hash")

    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    phone: str | None = Field(default=None, max_length=30)

    role: str = Field(
        default="customer",
        index=True,
        description="Application role: customer | admin",
    )

    is_active: bool = Field(default=True)

    # Brute-force protection
    login_attempts: int = Field(default=0, ge=0)
    lock_until: datetime | None = None

    token_version: int = Field(default=0, ge=0)

    # sha256 of the emailed reset token; the raw token is never stored
    password_reset_token_hash: str | None = Field(default=None, index=True)
    password_reset_expires: datetime | None = None

    last_login_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
