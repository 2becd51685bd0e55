"""
In-memory sliding-window rate limiter for the unauthenticated auth endpoints.

Limits are tracked per client IP and per email address. State lives in the
process, so each worker enforces its own window.
"""

import time
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple
from dataclasses import dataclass
from threading import Lock

from fastapi import Request

from app.core.config import get_settings
from app.core.exceptions import TooManyRequestsException

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    # Forget password: 5 per 15 minutes per IP, 3 per hour per email
    "forget_password_ip": RateLimitConfig(max_requests=5, window_seconds=900),
    "forget_password_email": RateLimitConfig(max_requests=3, window_seconds=3600),
    # Reset password: 10 attempts per 15 minutes per IP, 5 per email
    "reset_password_ip": RateLimitConfig(max_requests=10, window_seconds=900),
    "reset_password_email": RateLimitConfig(max_requests=5, window_seconds=900),
    # Confirm email: 10 attempts per 15 minutes per IP, 5 per email
    "confirm_email_ip": RateLimitConfig(max_requests=10, window_seconds=900),
    "confirm_email_email": RateLimitConfig(max_requests=5, window_seconds=900),
}


class RateLimiter:
    """
    Thread-safe sliding-window counter keyed by ``<action>:<identifier>``.

    Each key keeps the timestamps of its accepted hits, oldest first.
    """

    def __init__(self, configs: Dict[str, RateLimitConfig] = None):
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self.configs = dict(configs or DEFAULT_LIMITS)

    @staticmethod
    def _key(limit_type: str, identifier: str) -> str:
        return f"{limit_type}:{identifier}"

    def is_allowed(self, limit_type: str, identifier: str) -> Tuple[bool, int]:
        """
        Record a hit unless the window for ``identifier`` is already full.

        Returns:
            (allowed, retry_after_seconds); retry_after is 0 when allowed
        """
        config = self.configs.get(limit_type)
        if config is None:
            logger.warning(f"No rate limit configured for {limit_type}")
            return True, 0

        with self._lock:
            now = time.time()
            hits = self._requests[self._key(limit_type, identifier)]
            while hits and hits[0] <= now - config.window_seconds:
                hits.popleft()

            if len(hits) >= config.max_requests:
                retry_after = int(hits[0] + config.window_seconds - now) + 1
                return False, max(retry_after, 1)

            hits.append(now)
            return True, 0

    def reset(self, limit_type: str, identifier: str) -> None:
        with self._lock:
            self._requests.pop(self._key(limit_type, identifier), None)

    def cleanup_all(self) -> int:
        """
        Drop expired timestamps everywhere.

        Returns:
            Number of timestamps and emptied keys removed
        """
        now = time.time()
        removed = 0
        with self._lock:
            for key in list(self._requests):
                config = self.configs.get(key.split(":", 1)[0])
                if config is None:
                    continue
                hits = self._requests[key]
                live = deque(ts for ts in hits if ts > now - config.window_seconds)
                if live:
                    removed += len(hits) - len(live)
                    self._requests[key] = live
                else:
                    del self._requests[key]
                    removed += 1
        return removed


# Process-wide limiter shared by all routes
rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    """Client address, preferring the proxy headers when present."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Left-most entry is the original client
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def check_rate_limit(request: Request, action: str, email: str = "") -> None:
    """Apply the per-IP and per-email limits for an action.

    Raises:
        TooManyRequestsException: when either window is exhausted.
    """
    if not get_settings().rate_limit_enabled:
        return

    allowed, retry_after = rate_limiter.is_allowed(f"{action}_ip", get_client_ip(request))
    if allowed and email:
        allowed, retry_after = rate_limiter.is_allowed(f"{action}_email", email.strip().lower())

    if not allowed:
        logger.warning(f"Rate limit exceeded for {action}")
        raise TooManyRequestsException(
            f"Too many requests. Please try again in {retry_after} seconds.",
            retry_after=retry_after,
        )
