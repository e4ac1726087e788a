# storefront/core/auth.py
import uuid
from datetime import timedelta
from typing import Any

import bcrypt
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from storefront.core.config import Settings, get_app_settings
from storefront.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ValidationError,
)
from storefront.core.timeutils import utcnow
from storefront.database import get_session
from storefront.models.cart import CartOwner, SessionOwner, UserOwner
from storefront.models.user import User

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS = "access"
REFRESH = "refresh"


# ----- Passwords -----


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


# ----- Tokens -----


def _create_token(user: User, token_type: str, settings: Settings) -> str:
    now = utcnow()
    if token_type == ACCESS:
        lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        secret = settings.JWT_SECRET
    else:
        lifetime = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        secret = settings.refresh_secret

    claims = {
        "sub": str(user.id),
        "type": token_type,
        "ver": user.token_version,
        "role": user.role,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, secret, algorithm=settings.JWT_ALG)


def create_access_token(user: User, settings: Settings) -> str:
    return _create_token(user, ACCESS, settings)


def create_refresh_token(user: User, settings: Settings) -> str:
    return _create_token(user, REFRESH, settings)


def decode_token(token: str, token_type: str, settings: Settings) -> dict[str, Any]:
    """
    Decode and verify one of our JWTs.

    Verification:
      - signature (JWT_SECRET for access, JWT_REFRESH_SECRET for refresh)
      - expiration time (exp)
      - issuer and audience
      - `type` claim matches the expected token type

    Raises:
        AuthenticationError(401): if token is invalid/expired/of the wrong type.
    """
    secret = settings.JWT_SECRET if token_type == ACCESS else settings.refresh_secret
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALG],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

    if payload.get("type") != token_type:
        raise AuthenticationError("Invalid token type")
    return payload


def user_from_claims(session: Session, payload: dict[str, Any]) -> User:
    """
    Load the account a verified token belongs to.

    Tokens issued before the user's token_version was bumped (logout,
    password reset) are rejected.
    """
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Invalid sub in token")

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Account not found or disabled")
    if payload.get("ver") != user.token_version:
        raise AuthenticationError("Token has been revoked")
    return user


# ----- Dependencies -----


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> User | None:
    """
    Resolve the current user from a Bearer access token.

    Returns:
        User instance if authenticated, else None for guests.

    Raises:
        AuthenticationError(401): if a token is present but not valid.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_token(credentials.credentials, ACCESS, settings)
    return user_from_claims(session, payload)


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    If attached to a route, guests (missing JWT) will be rejected with 401.
    """
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        AuthorizationError(403): if role is not admin.
    """
    if user.role != "admin":
        raise AuthorizationError("Admin access required")
    return user


def get_session_id(
    x_session_id: str | None = Header(default=None, alias="X-Session-Id"),
) -> str | None:
    if x_session_id is None:
        return None
    x_session_id = x_session_id.strip()
    if not x_session_id:
        return None
    if not 10 <= len(x_session_id) <= 128:
        raise ValidationError("X-Session-Id must be 10 to 128 characters")
    return x_session_id


def get_cart_owner(
    user: User | None = Depends(get_current_user),
    session_id: str | None = Depends(get_session_id),
) -> CartOwner:
    """
    Whose cart this request works on.

    Authenticated callers always use their own cart; guests are identified by
    the client-generated X-Session-Id header.
    """
    if user is not None:
        return UserOwner(user.id)
    if session_id is None:
        raise ValidationError("X-Session-Id header is required for guest carts")
    return SessionOwner(session_id)
