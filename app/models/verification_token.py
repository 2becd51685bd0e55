"""Verification token model for email confirmation and password reset links."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, utcnow


class VerificationTokenType(str, Enum):
    """What a verification token unlocks."""
    CONFIRM_EMAIL = "confirm_email"
    RESET_PASSWORD = "reset_password"


class VerificationMethod(str, Enum):
    """How a user proves ownership of an email address."""
    OTP = "otp"
    TOKEN = "token"


class VerificationToken(Base):
    """
    Opaque single-use token sent by email.

    Security features:
    - 64-character random value, unique across the table
    - Time-limited expiration
    - Single-use enforcement via ``used``
    - At most one active token per (email, type)
    """

    __tablename__ = "verification_tokens"
    __table_args__ = (
        Index("ix_verification_tokens_email_type", "email", "type"),
        Index("ix_verification_tokens_token_used", "token", "used"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<VerificationToken(id={self.id}, type={self.type}, used={self.used})>"

    def is_valid(self) -> bool:
        """Check if the token is still usable (not expired, not used)."""
        return not self.used and self.expires_at > utcnow()
