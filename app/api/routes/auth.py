"""Authentication endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse

from app.core.dependencies import Accounts, CurrentAuth, RefreshAuth
from app.core.rate_limiter import check_rate_limit
from app.schemas.auth import (
    ConfirmEmailRequest,
    ForgetPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    SocialLoginRequest,
    TokenPairResponse,
)
from app.schemas.common import Envelope
from app.schemas.user import UserResponse
from app.services.auth_service import GoogleIdentityVerifier
from app.services.token_service import TokenPair

logger = logging.getLogger(__name__)
router = APIRouter()


def get_identity_verifier() -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier()


def _tokens(pair: TokenPair) -> dict:
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token).model_dump()


# ─────────────────────────────────────────────
# Signup
# ─────────────────────────────────────────────

@router.post("/signup", response_model=Envelope, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, accounts: Accounts):
    """
    Register a new account.
    Sends a confirmation OTP, plus a verification link when requested.
    """
    user, method = await accounts.signup(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        role=body.role,
        verification_method=body.verification_method,
        age=body.age,
    )
    return Envelope(
        message="User added successfully.",
        data={
            "user": UserResponse.model_validate(user).model_dump(mode="json"),
            "verification_method": method.value,
        },
    )


# ─────────────────────────────────────────────
# Email confirmation
# ─────────────────────────────────────────────

@router.patch("/confirm-email", response_model=Envelope)
async def confirm_email(body: ConfirmEmailRequest, request: Request, accounts: Accounts):
    """
    Confirm an email address with either the OTP code or the link token.

    Rate limited per IP and per email.
    """
    check_rate_limit(request, "confirm_email", body.email)
    await accounts.confirm_email(body.email, otp=body.otp, token=body.token)
    return Envelope(message="Email confirmed successfully")


@router.get("/verify-email", response_class=HTMLResponse)
async def verify_email(
    accounts: Accounts,
    token: Annotated[str, Query()] = "",
    email: Annotated[str, Query()] = "",
):
    """Landing page for the link in the confirmation email."""
    return HTMLResponse(await accounts.verify_email_via_token(email, token))


# ─────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────

@router.post("/login", response_model=Envelope)
async def login(body: LoginRequest, accounts: Accounts):
    """
    Authenticate a confirmed account.
    Returns access and refresh tokens sharing one session id.
    """
    pair = await accounts.login(body.email, body.password)
    return Envelope(message="User logged in successfully", data=_tokens(pair))


@router.post("/social-login", response_model=Envelope)
async def social_login(
    body: SocialLoginRequest,
    accounts: Accounts,
    verifier: Annotated[GoogleIdentityVerifier, Depends(get_identity_verifier)],
):
    """Sign in (or sign up) with a Google ID token."""
    identity = await verifier.verify(body.id_token)
    pair, created = await accounts.login_with_external_identity(identity)
    message = "User created successfully" if created else "User logged in successfully"
    return Envelope(message=message, data=_tokens(pair))


@router.post("/logout", response_model=Envelope, status_code=status.HTTP_201_CREATED)
async def logout(auth: CurrentAuth, accounts: Accounts):
    """Revoke the session of the presented access token (and its refresh token)."""
    await accounts.logout(auth.user, auth.claims)
    return Envelope(message="User logged out successfully")


@router.post("/refresh-token", response_model=Envelope)
async def refresh_token(auth: RefreshAuth, accounts: Accounts):
    """Mint a new token pair from a valid refresh token."""
    pair = await accounts.refresh_token(auth.user)
    return Envelope(message="New Credentials Generated successfully", data=_tokens(pair))


# ─────────────────────────────────────────────
# Password reset
# ─────────────────────────────────────────────

@router.patch("/forget-password", response_model=Envelope)
async def forget_password(body: ForgetPasswordRequest, request: Request, accounts: Accounts):
    """
    Send a password reset OTP (and link, when requested).

    Rate limited: 5 requests per 15 minutes per IP, 3 per hour per email.
    """
    check_rate_limit(request, "forget_password", body.email)
    await accounts.forget_password(body.email, body.verification_method)
    return Envelope(message="Check your email for reset password OTP")


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_form(
    accounts: Accounts,
    token: Annotated[str, Query()] = "",
    email: Annotated[str, Query()] = "",
):
    """Landing page for the link in the reset email. Does not consume the token."""
    return HTMLResponse(await accounts.reset_password_page(email, token))


@router.patch("/reset-password", response_model=Envelope)
async def reset_password(body: ResetPasswordRequest, request: Request, accounts: Accounts):
    """
    Set a new password using the OTP code or the link token.

    Rate limited per IP and per email.
    """
    check_rate_limit(request, "reset_password", body.email)
    await accounts.reset_password(body.email, body.password, code=body.code, token=body.token)
    return Envelope(message="Password reset successfully")
