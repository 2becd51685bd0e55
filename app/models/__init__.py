"""Database models."""

from app.models.user import User, UserRole, AuthProvider
from app.models.revoked_token import RevokedToken
from app.models.verification_token import VerificationMethod, VerificationToken, VerificationTokenType

__all__ = [
    "User",
    "UserRole",
    "AuthProvider",
    "RevokedToken",
    "VerificationToken",
    "VerificationTokenType",
    "VerificationMethod",
]
