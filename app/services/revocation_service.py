"""Session revocation list keyed by JWT ID."""

import logging
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import utcnow
from app.models.revoked_token import RevokedToken

logger = logging.getLogger(__name__)


class RevocationService:
    """Append-only store of revoked session IDs."""

    @staticmethod
    async def is_revoked(db: AsyncSession, jti: str) -> bool:
        result = await db.execute(select(RevokedToken.id).where(RevokedToken.jti == jti))
        return result.first() is not None

    @staticmethod
    async def revoke(db: AsyncSession, jti: str, user_id: str, expires_in_ms: int) -> None:
        """
        Record a session as revoked.

        Revoking the same jti twice is a no-op. The insert runs in a savepoint
        so a concurrent duplicate only rolls back itself, not the caller's
        transaction.
        """
        if await RevocationService.is_revoked(db, jti):
            return

        expires_in_ms = max(0, int(expires_in_ms))
        now = utcnow()
        try:
            async with db.begin_nested():
                db.add(
                    RevokedToken(
                        jti=jti,
                        user_id=user_id,
                        expires_in=expires_in_ms,
                        expires_at=now + timedelta(milliseconds=expires_in_ms),
                        revoked_at=now,
                    )
                )
        except IntegrityError:
            logger.debug(f"Session {jti[:8]}... already revoked concurrently")
            return

        logger.info(f"Session {jti[:8]}... revoked for user {user_id[:8]}...")

    @staticmethod
    async def cleanup_expired(db: AsyncSession) -> int:
        """Drop rows for sessions whose tokens would have expired anyway."""
        result = await db.execute(delete(RevokedToken).where(RevokedToken.expires_at < utcnow()))
        count = result.rowcount or 0
        if count > 0:
            logger.info(f"Pruned {count} expired revocation records")
        return count
