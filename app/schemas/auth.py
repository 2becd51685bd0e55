"""Request/response schemas for the auth endpoints."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.user import UserRole
from app.models.verification_token import VerificationMethod


class SignupRequest(BaseModel):
    """Schema for account registration."""
    first_name: str = Field(min_length=3, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)
    phone: str = Field(min_length=1, max_length=30)
    age: Optional[int] = Field(None, ge=1, le=150)
    role: UserRole = UserRole.USER
    verification_method: VerificationMethod = VerificationMethod.OTP


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SocialLoginRequest(BaseModel):
    """Google ID token obtained by the client."""
    id_token: str = Field(min_length=1)


class ConfirmEmailRequest(BaseModel):
    """Exactly one of ``otp`` or ``token`` is expected; the service enforces it."""
    email: EmailStr
    otp: Optional[str] = Field(None, max_length=10)
    token: Optional[str] = Field(None, max_length=64)


class ForgetPasswordRequest(BaseModel):
    email: EmailStr
    verification_method: VerificationMethod = VerificationMethod.OTP


class ResetPasswordRequest(BaseModel):
    """Schema for completing a password reset with an OTP code or a link token."""
    email: EmailStr
    code: Optional[str] = Field(None, max_length=10)
    token: Optional[str] = Field(None, max_length=64)
    password: str = Field(min_length=6, max_length=100)
    confirm_password: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("confirm_password must match password")
        return self


class TokenPairResponse(BaseModel):
    """Access + refresh tokens sharing one session id."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
