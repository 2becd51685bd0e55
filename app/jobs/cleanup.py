"""Periodic sweep of expired verification tokens and revocation records."""

import asyncio
import logging
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rate_limiter import rate_limiter
from app.db.session import AsyncSessionLocal
from app.services.revocation_service import RevocationService
from app.services.verification_token_service import VerificationTokenService

logger = logging.getLogger(__name__)


async def run_cleanup_once(session_factory: Callable[[], AsyncSession] = AsyncSessionLocal) -> Dict[str, int]:
    """Run one sweep in its own transaction and report what was removed."""
    async with session_factory() as db:
        try:
            tokens = await VerificationTokenService.cleanup(db)
            revocations = await RevocationService.cleanup_expired(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    rate_limit_entries = rate_limiter.cleanup_all()
    return {
        "verification_tokens": tokens,
        "revoked_tokens": revocations,
        "rate_limit_entries": rate_limit_entries,
    }


async def cleanup_loop(interval_minutes: int) -> None:
    """Sweep forever; errors are logged and the next sweep still runs."""
    interval = max(1, interval_minutes) * 60
    logger.info(f"Cleanup job started (every {interval_minutes} min)")
    while True:
        try:
            removed = await run_cleanup_once()
            logger.debug(f"Cleanup sweep finished: {removed}")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Cleanup sweep failed")
        await asyncio.sleep(interval)
