"""
Verification Token Service.

Backs email-confirmation and password-reset links with opaque, single-use,
time-limited tokens.

Security features:
- 64-character tokens drawn from the CSPRNG
- One active token per (email, type): creating a new one invalidates the rest
- Consumption is a conditional UPDATE, so a token can only be used once even
  under concurrent requests
- A single generic failure message that never tells "wrong" from "expired"
"""

import logging
import secrets
import string
from datetime import timedelta
from typing import Optional
from urllib.parse import quote

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import BadRequestException
from app.db.session import utcnow
from app.models.verification_token import VerificationToken, VerificationTokenType

logger = logging.getLogger(__name__)
settings = get_settings()

TOKEN_LENGTH = 64
TOKEN_ALPHABET = string.ascii_letters + string.digits
DEFAULT_EXPIRATION_HOURS = 24
USED_TOKEN_RETENTION_DAYS = 7

INVALID_TOKEN_MESSAGE = "Invalid or expired verification token"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class VerificationTokenService:
    """Persistent store for single-use verification tokens."""

    @staticmethod
    def generate_token() -> str:
        """Generate a 64-character unguessable token."""
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))

    # ─────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    async def create(
        db: AsyncSession,
        email: str,
        token_type: VerificationTokenType,
        expiration_hours: int = DEFAULT_EXPIRATION_HOURS,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Create a verification token, invalidating earlier unused ones.

        Both statements run in the caller's transaction, so the new token only
        becomes visible together with the invalidation of its predecessors.

        Returns:
            The plain token (to be sent via email - NEVER logged)
        """
        email = _normalize_email(email)

        await db.execute(
            update(VerificationToken)
            .where(
                and_(
                    VerificationToken.email == email,
                    VerificationToken.type == token_type.value,
                    VerificationToken.used == False,  # noqa: E712
                )
            )
            .values(used=True)
        )

        token = VerificationTokenService.generate_token()
        db.add(
            VerificationToken(
                token=token,
                email=email,
                type=token_type.value,
                expires_at=utcnow() + timedelta(hours=expiration_hours),
                user_id=user_id,
            )
        )
        await db.flush()

        logger.info(f"Verification token ({token_type.value}) created for {email[:3]}***")
        return token

    # ─────────────────────────────────────────────────────────────
    # Verify
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    async def verify(
        db: AsyncSession,
        token: str,
        email: str,
        token_type: VerificationTokenType,
        mark_used: bool = True,
    ) -> VerificationToken:
        """
        Verify a token for (email, type).

        Raises:
            BadRequestException: for any mismatch, use or expiry.
        """
        email = _normalize_email(email)
        active = and_(
            VerificationToken.token == token,
            VerificationToken.email == email,
            VerificationToken.type == token_type.value,
            VerificationToken.used == False,  # noqa: E712
            VerificationToken.expires_at > utcnow(),
        )

        result = await db.execute(select(VerificationToken).where(active))
        record = result.scalar_one_or_none()
        if record is None:
            raise BadRequestException(INVALID_TOKEN_MESSAGE)

        if mark_used:
            consumed = await db.execute(
                update(VerificationToken)
                .where(and_(VerificationToken.id == record.id, VerificationToken.used == False))  # noqa: E712
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            if consumed.rowcount != 1:
                # Lost the race against a concurrent verification
                raise BadRequestException(INVALID_TOKEN_MESSAGE)
            await db.refresh(record)

        return record

    @staticmethod
    async def is_valid(
        db: AsyncSession,
        token: str,
        email: str,
        token_type: VerificationTokenType,
    ) -> bool:
        """Check a token without consuming it."""
        try:
            await VerificationTokenService.verify(db, token, email, token_type, mark_used=False)
            return True
        except BadRequestException:
            return False

    # ─────────────────────────────────────────────────────────────
    # Cleanup
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    async def cleanup(db: AsyncSession) -> int:
        """Delete expired tokens and used tokens older than 7 days. Call periodically."""
        now = utcnow()
        stale_before = now - timedelta(days=USED_TOKEN_RETENTION_DAYS)
        result = await db.execute(
            delete(VerificationToken).where(
                or_(
                    VerificationToken.expires_at < now,
                    and_(
                        VerificationToken.used == True,  # noqa: E712
                        VerificationToken.created_at < stale_before,
                    ),
                )
            )
        )
        count = result.rowcount or 0
        if count > 0:
            logger.info(f"Cleaned up {count} expired or used verification tokens")
        return count

    # ─────────────────────────────────────────────────────────────
    # Links
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def build_verification_url(token: str, token_type: VerificationTokenType, email: str) -> str:
        """
        Build the link embedded in the notification email.

        Reset links go to ``PASSWORD_RESET_URL`` when a frontend handles them,
        otherwise to the form served by this API.
        """
        query = f"token={token}&email={quote(_normalize_email(email), safe='')}"
        base_url = f"{settings.effective_app_url}/api/v1/auth"
        if token_type == VerificationTokenType.CONFIRM_EMAIL:
            return f"{base_url}/verify-email?{query}"
        if settings.password_reset_url:
            return f"{settings.password_reset_url}?{query}"
        return f"{base_url}/reset-password?{query}"
