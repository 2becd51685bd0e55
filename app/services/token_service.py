"""Session token service: JWT issuance and verification across four secrets.

Every token is signed with the secret for its (role class, token type) pair and
carries a ``kid`` header naming that pair, so verification picks exactly one
secret instead of trying them in turn.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError
from app.models.user import User, UserRole
from app.services.revocation_service import RevocationService

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
TOKEN_TYPES = (ACCESS, REFRESH)

# Authorization scheme words that pin the role class; "Bearer" pins nothing
ROLE_HINTS = {UserRole.ADMIN.value: True, UserRole.USER.value: False}


@dataclass
class TokenPair:
    """Access + refresh tokens minted together under one session id."""
    access_token: str
    refresh_token: str
    jti: str


def make_kid(token_type: str, is_admin: bool) -> str:
    return f"{token_type}-{'admin' if is_admin else 'user'}"


def parse_kid(kid: Any) -> Optional[tuple]:
    """Split a kid into (token_type, is_admin); None when unrecognised."""
    if not isinstance(kid, str) or "-" not in kid:
        return None
    token_type, role_class = kid.split("-", 1)
    if token_type not in TOKEN_TYPES or role_class not in ("admin", "user"):
        return None
    return token_type, role_class == "admin"


class TokenService:
    """Mints and verifies session tokens."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # ─── Minting ─────────────────────────────────
    def _lifetime(self, token_type: str) -> timedelta:
        if token_type == ACCESS:
            return timedelta(minutes=self.settings.access_token_expire_minutes)
        return timedelta(days=self.settings.refresh_token_expire_days)

    def mint(
        self,
        user: User,
        token_type: str,
        jti: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        if token_type not in TOKEN_TYPES:
            raise ValueError(f"Unknown token type: {token_type}")

        is_admin = user.role == UserRole.ADMIN.value
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "jti": jti,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self._lifetime(token_type)),
            "iss": self.settings.jwt_issuer,
            "type": token_type,
        }
        return jwt.encode(
            payload,
            self.settings.jwt_secret_for(is_admin, token_type),
            algorithm=self.settings.jwt_algorithm,
            headers={"kid": make_kid(token_type, is_admin)},
        )

    def issue_pair(self, user: User) -> TokenPair:
        jti = uuid.uuid4().hex
        return TokenPair(
            access_token=self.mint(user, ACCESS, jti),
            refresh_token=self.mint(user, REFRESH, jti),
            jti=jti,
        )

    # ─── Verification ────────────────────────────
    def verify(
        self,
        token: str,
        expected_type: Optional[str] = None,
        bearer_hint: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Verify a session token and return its claims.

        Raises:
            TokenExpiredError: signature is valid but the token is expired.
            InvalidTokenError: anything else (bad kid, signature, issuer, type
                or a role hint that contradicts the kid).
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise InvalidTokenError("Invalid token")

        parsed = parse_kid(header.get("kid"))
        if parsed is None:
            raise InvalidTokenError("Invalid token")
        token_type, is_admin = parsed

        if bearer_hint is not None:
            hint = bearer_hint.lower()
            if hint in ROLE_HINTS and ROLE_HINTS[hint] != is_admin:
                raise InvalidTokenError("Invalid token")

        if expected_type is not None and token_type != expected_type:
            raise InvalidTokenError("Invalid token type")

        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret_for(is_admin, token_type),
                algorithms=[self.settings.jwt_algorithm],
                issuer=self.settings.jwt_issuer,
                options={"verify_aud": False},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Token expired")
        except JWTError:
            raise InvalidTokenError("Invalid token")

        if claims.get("type") != token_type or not claims.get("sub") or not claims.get("jti"):
            raise InvalidTokenError("Invalid token")

        return claims

    # ─── Revocation ──────────────────────────────
    @staticmethod
    def remaining_ms(claims: Dict[str, Any]) -> int:
        """Milliseconds until the token's exp, floored at zero."""
        exp = claims.get("exp")
        if exp is None:
            return 0
        return max(0, int(exp) * 1000 - int(time.time() * 1000))

    async def revoke(self, db: AsyncSession, jti: str, user_id: str, remaining_ms: int) -> None:
        await RevocationService.revoke(db, jti, user_id, remaining_ms)

    async def is_revoked(self, db: AsyncSession, jti: str) -> bool:
        return await RevocationService.is_revoked(db, jti)
