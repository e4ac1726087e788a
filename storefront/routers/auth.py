# storefront/routers/auth.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.auth import get_session_id, require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.routers.deps import get_auth_service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.user import (
    AuthResult,
    ForgotPasswordRequest,
    ForgotPasswordResult,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UserRead,
)
from storefront.services.auth_service import AuthService, to_user_read

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=ApiResponse[AuthResult], status_code=201)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    return ok(service.register(session, payload), "Registration successful")


@router.post("/login", response_model=ApiResponse[AuthResult])
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    session_id: str | None = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
):
    """
    Exchange credentials for an access + refresh token pair.

    If the request carries X-Session-Id, that guest cart is merged into the
    user's cart (policy "merge") and the counts are returned.
    """
    return ok(service.login(session, payload, session_id), "Login successful")


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
):
    """
    Revoke every token issued to the caller so far.
    """
    service.logout(session, current_user)
    return ok(None, "Logout successful")


@router.post("/refresh", response_model=ApiResponse[TokenPair])
def refresh(
    payload: RefreshRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    return ok(service.refresh(session, payload.refresh_token), "Token refreshed")


@router.post("/forgot-password", response_model=ApiResponse[ForgotPasswordResult])
def forgot_password(
    payload: ForgotPasswordRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    """
    Always answers the same way so that registered emails cannot be discovered.
    """
    return ok(
        service.forgot_password(session, payload),
        "If an account exists for this email, a reset link has been sent",
    )


@router.post("/reset-password", response_model=ApiResponse[None])
def reset_password(
    payload: ResetPasswordRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    service.reset_password(session, payload)
    return ok(None, "Password has been reset, please log in again")


@router.get("/me", response_model=ApiResponse[UserRead])
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.
    """
    return ok(to_user_read(current_user), "Profile retrieved")
