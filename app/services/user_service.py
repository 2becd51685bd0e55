"""Profile, password and account-state operations for signed-in users."""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import BadRequestException, ForbiddenException, UnauthorizedException
from app.core.security import FieldCipher, PasswordHasher, get_field_cipher, get_password_hasher
from app.db.session import utcnow
from app.models.user import User
from app.services.auth_service import ensure_password_not_reused, rotate_password
from app.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

# (content, declared MIME type, original filename)
Upload = Tuple[bytes, str, Optional[str]]


class UserService:
    """Self-service and admin operations on user accounts."""

    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageService] = None,
        settings: Optional[Settings] = None,
        hasher: Optional[PasswordHasher] = None,
        cipher: Optional[FieldCipher] = None,
    ):
        self.db = db
        self.storage = storage or get_storage_service()
        self.settings = settings or get_settings()
        self.hasher = hasher or get_password_hasher()
        self.cipher = cipher or get_field_cipher()

    async def _get(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    # ─── Profile ─────────────────────────────────
    def get_profile(self, user: User) -> dict:
        """Profile fields with the phone number decrypted."""
        return {
            "id": user.id,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "email": user.email,
            "phone": self.cipher.decrypt(user.phone) if user.phone else None,
            "age": user.age,
            "role": user.role,
            "provider": user.provider,
            "confirmed_at": user.confirmed_at,
            "frozen_at": user.frozen_at,
            "profile_image": user.profile_image,
            "cover_images": list(user.cover_images or []),
            "created_at": user.created_at,
        }

    async def update_profile_image(self, user: User, upload: Upload) -> User:
        content, mime_type, filename = upload
        user.profile_image = await self.storage.save(
            user.id, content, mime_type, filename, folder="profile"
        )
        await self.db.flush()
        return user

    async def update_cover_images(self, user: User, uploads: Sequence[Upload]) -> User:
        if not uploads:
            raise BadRequestException("No image file provided")
        if len(uploads) > self.settings.max_cover_images:
            raise BadRequestException(f"At most {self.settings.max_cover_images} cover images are allowed")

        # Validate everything first so a bad file does not leave partial writes
        for content, mime_type, _ in uploads:
            self.storage.validate(content, mime_type)

        paths: List[str] = []
        for content, mime_type, filename in uploads:
            paths.append(await self.storage.save(user.id, content, mime_type, filename, folder="cover"))

        user.cover_images = paths
        await self.db.flush()
        return user

    # ─── Password ────────────────────────────────
    async def update_password(self, user: User, old_password: str, new_password: str) -> User:
        if not await self.hasher.verify(old_password, user.password):
            raise BadRequestException("Invalid old password")

        await ensure_password_not_reused(self.hasher, user, new_password)

        rotate_password(user, await self.hasher.hash(new_password), self.settings.password_history_limit)
        await self.db.flush()
        logger.info(f"Password updated for user {user.id[:8]}...")
        return user

    # ─── Freeze / unfreeze / delete ──────────────
    async def freeze_account(self, actor: User, user_id: Optional[str] = None) -> User:
        if user_id and user_id != actor.id and not actor.is_admin:
            raise ForbiddenException("Invalid Access")

        target = actor if not user_id or user_id == actor.id else await self._get(user_id)
        if target is None:
            raise UnauthorizedException("Invalid Access")
        if target.is_frozen:
            raise BadRequestException("Account is already frozen")

        target.frozen_at = utcnow()
        target.frozen_by = actor.id
        target.unfrozen_at = None
        target.unfrozen_by = None
        await self.db.flush()
        logger.info(f"User {target.id[:8]}... frozen by {actor.id[:8]}...")
        return target

    async def unfreeze_account(self, actor: User, user_id: str) -> User:
        if not actor.is_admin:
            raise ForbiddenException("Invalid Access")

        target = await self._get(user_id)
        if target is None:
            raise UnauthorizedException("Invalid Access")
        if not target.is_frozen:
            raise BadRequestException("Account is not frozen")

        target.unfrozen_at = utcnow()
        target.unfrozen_by = actor.id
        target.frozen_at = None
        target.frozen_by = None
        await self.db.flush()
        logger.info(f"User {target.id[:8]}... unfrozen by {actor.id[:8]}...")
        return target

    async def delete_account(self, actor: User, user_id: str) -> None:
        if not actor.is_admin:
            raise ForbiddenException("Invalid Access")

        target = await self._get(user_id)
        if target is None or target.is_frozen:
            raise UnauthorizedException("Invalid Access")

        await self.db.delete(target)
        await self.db.flush()
        logger.info(f"User {user_id[:8]}... deleted by {actor.id[:8]}...")
