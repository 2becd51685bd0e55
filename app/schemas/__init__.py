"""Pydantic schemas for API request/response validation."""

from app.schemas.auth import (
    SignupRequest,
    LoginRequest,
    SocialLoginRequest,
    ConfirmEmailRequest,
    ForgetPasswordRequest,
    ResetPasswordRequest,
    TokenPairResponse,
)
from app.schemas.common import Envelope, ErrorEnvelope
from app.schemas.user import UserResponse, ProfileResponse, PasswordUpdate

__all__ = [
    "SignupRequest",
    "LoginRequest",
    "SocialLoginRequest",
    "ConfirmEmailRequest",
    "ForgetPasswordRequest",
    "ResetPasswordRequest",
    "TokenPairResponse",
    "Envelope",
    "ErrorEnvelope",
    "UserResponse",
    "ProfileResponse",
    "PasswordUpdate",
]
