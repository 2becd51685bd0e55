"""FastAPI dependencies: database session, principal resolution and role gates.

The ``Authorization`` header has the form ``<scheme> <token>``. ``Bearer`` is
accepted as is; the scheme words ``admin`` and ``user`` additionally pin the
role class the token must have been minted for.
"""

import logging
from typing import Annotated, Any, Callable, Dict, NamedTuple, Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import authorize
from app.core.exceptions import NotFoundException, UnauthorizedException
from app.db.session import get_db
from app.models.user import User, UserRole
from app.services.auth_service import AccountService
from app.services.email_service import AfterCommitNotifier, NotificationSink, get_email_sink
from app.services.storage_service import StorageService, get_storage_service
from app.services.token_service import ACCESS, REFRESH, TokenService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

# Function scope: the commit, and any after-commit notification, happens before the response is sent
DbSession = Annotated[AsyncSession, Depends(get_db, scope="function")]


class AuthContext(NamedTuple):
    """The authenticated principal and the claims of the token it presented."""
    user: User
    claims: Dict[str, Any]


def get_token_service() -> TokenService:
    return TokenService()


def get_delivery_sink() -> NotificationSink:
    return get_email_sink()


def get_notifier(
    db: DbSession,
    sink: Annotated[NotificationSink, Depends(get_delivery_sink)],
) -> NotificationSink:
    """Account notifications leave only once the request's transaction commits."""
    return AfterCommitNotifier(sink, db)


def get_storage() -> StorageService:
    return get_storage_service()


def _split_authorization(authorization: Optional[str]) -> tuple:
    if not authorization:
        raise UnauthorizedException("Authorization token missing")
    parts = authorization.split(" ")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UnauthorizedException("Invalid authorization header")
    return parts[0], parts[1]


async def _resolve(
    db: AsyncSession,
    tokens: TokenService,
    authorization: Optional[str],
    expected_type: str,
) -> AuthContext:
    scheme, token = _split_authorization(authorization)
    hint = None if scheme.lower() == "bearer" else scheme

    claims = tokens.verify(token, expected_type=expected_type, bearer_hint=hint)

    if await tokens.is_revoked(db, claims["jti"]):
        raise UnauthorizedException("Token is revoked")

    result = await db.execute(select(User).where(User.id == claims["sub"]))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundException("User not found")

    return AuthContext(user=user, claims=claims)


async def get_auth_context(
    db: DbSession,
    tokens: Annotated[TokenService, Depends(get_token_service)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthContext:
    """Resolve the caller from an access token."""
    return await _resolve(db, tokens, authorization, ACCESS)


async def get_refresh_context(
    db: DbSession,
    tokens: Annotated[TokenService, Depends(get_token_service)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthContext:
    """Resolve the caller from a refresh token."""
    return await _resolve(db, tokens, authorization, REFRESH)


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
RefreshAuth = Annotated[AuthContext, Depends(get_refresh_context)]


async def get_current_user(auth: CurrentAuth) -> User:
    return auth.user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: authenticate, then check the caller's role."""

    async def _check(auth: CurrentAuth) -> AuthContext:
        authorize(auth.user, roles)
        return auth

    _check.allowed_roles = roles
    return _check


def get_account_service(
    db: DbSession,
    notifier: Annotated[NotificationSink, Depends(get_notifier)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AccountService:
    return AccountService(db, notifier, tokens=tokens)


def get_user_service(
    db: DbSession,
    storage: Annotated[StorageService, Depends(get_storage)],
) -> UserService:
    return UserService(db, storage=storage)


Accounts = Annotated[AccountService, Depends(get_account_service)]
Users = Annotated[UserService, Depends(get_user_service)]
