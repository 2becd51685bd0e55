"""User model for authentication."""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, utcnow


class UserRole(str, Enum):
    """Roles understood by the authorization gate."""
    ADMIN = "admin"
    USER = "user"


class AuthProvider(str, Enum):
    """Origin of the account's identity."""
    SYSTEM = "system"
    GOOGLE = "google"
    LOCAL = "local"


class User(Base):
    """User account: credentials, confirmation and freeze state, profile media."""

    __tablename__ = "users"
    __table_args__ = (
        # A password hash exists exactly for system-issued credentials
        CheckConstraint(
            "(provider = 'system' AND password IS NOT NULL) "
            "OR (provider != 'system' AND password IS NULL)",
            name="ck_users_password_provider",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Identity
    first_name: Mapped[str] = mapped_column(String(50))
    last_name: Mapped[str] = mapped_column(String(50))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)  # encrypted
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    provider: Mapped[str] = mapped_column(String(20), default=AuthProvider.SYSTEM.value)

    # Credentials
    password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_history: Mapped[List[str]] = mapped_column(JSON, default=list)

    # Email confirmation
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    confirm_email_otp: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    forget_password_otp: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Freeze state
    frozen_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    frozen_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    unfrozen_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    unfrozen_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Media
    profile_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cover_images: Mapped[List[str]] = mapped_column(JSON, default=list)

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None

    @property
    def is_frozen(self) -> bool:
        return self.frozen_at is not None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
