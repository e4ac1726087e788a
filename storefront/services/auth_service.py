# storefront/services/auth_service.py
import hashlib
import logging
import secrets
from datetime import timedelta

from sqlmodel import Session

from storefront.core.auth import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    user_from_claims,
    verify_password,
)
from storefront.core.config import Settings
from storefront.core.errors import AuthenticationError, ConflictError, ValidationError
from storefront.core.timeutils import as_utc, utcnow
from storefront.models.user import User
from storefront.repositories.user_repo import UserRepository
from storefront.schemas.user import (
    AuthResult,
    CartMergeSummary,
    ForgotPasswordRequest,
    ForgotPasswordResult,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UserRead,
)
from storefront.services.cart_service import CartService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _reset_hash(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def to_user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


class AuthService:
    """
    Business logic for accounts and tokens.

    Responsibilities:
      - registration with bcrypt-hashed passwords
      - login with lockout after repeated failures
      - access / refresh token issue and rotation
      - logout = token_version bump (revokes outstanding tokens)
      - password reset via a one-time token (only its hash is stored)
      - guest cart merge on login
    """

    def __init__(self, repo: UserRepository, cart_service: CartService, settings: Settings):
        self.repo = repo
        self.cart_service = cart_service
        self.settings = settings

    def _tokens(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=create_access_token(user, self.settings),
            refresh_token=create_refresh_token(user, self.settings),
            expires_in=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    # ----- Registration / login -----

    def register(self, session: Session, payload: RegisterRequest) -> AuthResult:
        if self.repo.get_by_email(session, payload.email) is not None:
            raise ConflictError("An account with this email already exists")

        user = self.repo.save(
            session,
            User(
                email=payload.email,
                password_hash=hash_password(payload.password, self.settings.BCRYPT_ROUNDS),
                first_name=payload.first_name,
                last_name=payload.last_name,
                phone=payload.phone,
                role="customer",
            ),
        )
        logger.info("User registered: %s", user.id)
        return AuthResult(user=to_user_read(user), tokens=self._tokens(user))

    def login(
        self,
        session: Session,
        payload: LoginRequest,
        session_id: str | None = None,
    ) -> AuthResult:
        """
        Verify credentials and issue a token pair.

        After MAX_LOGIN_ATTEMPTS consecutive failures the account is locked
        for LOCKOUT_MINUTES. A guest cart identified by `session_id` is
        merged into the user's cart.
        """
        user = self.repo.get_by_email(session, payload.email)
        if user is None:
            logger.info("Failed login for unknown email")
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = utcnow()
        lock_until = as_utc(user.lock_until)
        if lock_until is not None and lock_until > now:
            logger.warning("Login attempt on locked account %s", user.id)
            raise AuthenticationError(
                "Account is temporarily locked due to too many failed login attempts",
                details={"lock_until": lock_until.isoformat()},
            )
        if lock_until is not None:
            # lock expired: start counting again
            user.lock_until = None
            user.login_attempts = 0

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        if not verify_password(payload.password, user.password_hash):
            user.login_attempts += 1
            if user.login_attempts >= self.settings.MAX_LOGIN_ATTEMPTS:
                user.lock_until = now + timedelta(minutes=self.settings.LOCKOUT_MINUTES)
                logger.warning(
                    "Account %s locked after %d failed logins", user.id, user.login_attempts
                )
            else:
                logger.info("Failed login for user %s (%d)", user.id, user.login_attempts)
            self.repo.save(session, user)
            raise AuthenticationError(INVALID_CREDENTIALS)

        user.login_attempts = 0
        user.lock_until = None
        user.last_login_at = now
        user = self.repo.save(session, user)
        logger.info("User logged in: %s", user.id)

        merge_summary = None
        if session_id:
            merged = self.cart_service.merge(session, user.id, session_id, "merge")
            merge_summary = CartMergeSummary(
                policy=merged.policy,
                merged=merged.merged,
                replaced=merged.replaced,
                kept=merged.kept,
                skipped=merged.skipped,
            )
            session.refresh(user)

        return AuthResult(
            user=to_user_read(user),
            tokens=self._tokens(user),
            cart_merge=merge_summary,
        )

    def logout(self, session: Session, user: User) -> None:
        """Revoke every token issued so far."""
        user.token_version += 1
        self.repo.save(session, user)
        logger.info("User logged out: %s", user.id)

    def refresh(self, session: Session, refresh_token: str) -> TokenPair:
        """Exchange a valid refresh token for a new pair."""
        payload = decode_token(refresh_token, REFRESH, self.settings)
        user = user_from_claims(session, payload)
        return self._tokens(user)

    # ----- Password reset -----

    def forgot_password(
        self, session: Session, payload: ForgotPasswordRequest
    ) -> ForgotPasswordResult:
        """
        Start a password reset.

        The response is the same whether or not the email exists. The raw
        token would be emailed; it is only returned when EXPOSE_RESET_TOKEN
        is enabled.
        """
        user = self.repo.get_by_email(session, payload.email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown email")
            return ForgotPasswordResult()

        token = secrets.token_hex(32)
        expires_at = utcnow() + timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)
        user.password_reset_token_hash = _reset_hash(token)
        user.password_reset_expires = expires_at
        self.repo.save(session, user)
        logger.info("Password reset requested for user %s", user.id)

        if not self.settings.EXPOSE_RESET_TOKEN:
            return ForgotPasswordResult()
        return ForgotPasswordResult(reset_token=token, expires_at=expires_at)

    def reset_password(self, session: Session, payload: ResetPasswordRequest) -> None:
        user = self.repo.get_by_reset_hash(session, _reset_hash(payload.token))
        expires = as_utc(user.password_reset_expires) if user else None
        if user is None or expires is None or expires <= utcnow():
            raise ValidationError("Invalid or expired reset token")

        user.password_hash = hash_password(payload.password, self.settings.BCRYPT_ROUNDS)
        user.password_reset_token_hash = None
        user.password_reset_expires = None
        user.login_attempts = 0
        user.lock_until = None
        user.token_version += 1
        self.repo.save(session, user)
        logger.info("Password reset completed for user %s", user.id)
