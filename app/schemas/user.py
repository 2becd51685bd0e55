"""User schemas for API validation."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class UserResponse(BaseModel):
    """Redacted account view: never carries hashes, OTPs or the raw phone cipher text."""
    id: str
    first_name: str
    last_name: str
    email: str
    age: Optional[int] = None
    role: str
    provider: str
    confirmed_at: Optional[datetime] = None
    frozen_at: Optional[datetime] = None
    profile_image: Optional[str] = None
    cover_images: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    """Own profile, including the decrypted phone number."""
    phone: Optional[str] = None


class PasswordUpdate(BaseModel):
    """Schema for changing the password while signed in."""
    old_password: str
    password: str = Field(min_length=6, max_length=100)
    confirm_password: Optional[str] = None

    @model_validator(mode="after")
    def check_passwords(self) -> "PasswordUpdate":
        if self.password == self.old_password:
            raise ValueError("New password must be different from old password")
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("confirm_password must match password")
        return self
