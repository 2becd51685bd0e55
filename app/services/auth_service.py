"""Account lifecycle: signup, email confirmation, sessions and password reset."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.core.security import (
    FieldCipher,
    PasswordHasher,
    generate_otp,
    get_field_cipher,
    get_password_hasher,
)
from app.db.session import utcnow
from app.models.user import AuthProvider, User, UserRole
from app.models.verification_token import VerificationMethod, VerificationTokenType
from app.services.email_service import NotificationEvent, NotificationKind, NotificationSink
from app.services.token_service import TokenPair, TokenService
from app.services.verification_pages import (
    reset_password_form_page,
    verification_error_page,
    verification_success_page,
)
from app.services.verification_token_service import VerificationTokenService

logger = logging.getLogger(__name__)

CONFIRM_EMAIL_SUBJECT = "Confirm Email"
RESET_PASSWORD_SUBJECT = "Reset Password"
RESET_PASSWORD_PATH = "/api/v1/auth/reset-password"

SAME_AS_CURRENT_MESSAGE = "New password cannot be the same as the current password"
RECENTLY_USED_MESSAGE = "New password cannot match any of your recent passwords"


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ─── Password history ────────────────────────────
async def ensure_password_not_reused(hasher: PasswordHasher, user: User, new_password: str) -> None:
    """Reject the current password and any hash kept in the history."""
    if await hasher.verify(new_password, user.password):
        raise BadRequestException(SAME_AS_CURRENT_MESSAGE)
    for old_hash in user.password_history or []:
        if await hasher.verify(new_password, old_hash):
            raise BadRequestException(RECENTLY_USED_MESSAGE)


def rotate_password(user: User, new_hash: str, history_limit: int) -> None:
    """Install a new hash, pushing the old one to the front of the history."""
    history: List[str] = list(user.password_history or [])
    if user.password:
        history.insert(0, user.password)
    # Reassign so the JSON column is marked dirty
    user.password_history = history[:history_limit]
    user.password = new_hash


# ─── External identity ───────────────────────────
@dataclass
class ExternalIdentity:
    """A federated identity assertion that has already been verified."""
    email: str
    email_verified: bool
    given_name: str = ""
    family_name: str = ""
    picture: Optional[str] = None
    provider: AuthProvider = AuthProvider.GOOGLE


class GoogleIdentityVerifier:
    """Validates Google ID tokens against Google's tokeninfo endpoint."""

    VALID_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    async def verify(self, id_token: str) -> ExternalIdentity:
        if not self.settings.google_client_id:
            logger.error("Google login attempted but GOOGLE_CLIENT_ID is not configured")
            raise UnauthorizedException("Invalid Google token")

        try:
            async with httpx.AsyncClient(timeout=10.0, follow_redirects=False, transport=self._transport) as client:
                response = await client.get(
                    self.settings.google_tokeninfo_url,
                    params={"id_token": id_token},
                )
                response.raise_for_status()
                payload: Dict[str, Any] = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Google token rejected: HTTP {e.response.status_code}")
            raise UnauthorizedException("Invalid Google token")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token verification failed: {e}")
            raise UnauthorizedException("Invalid Google token")

        if payload.get("aud") != self.settings.google_client_id:
            raise UnauthorizedException("Invalid Google token")
        if payload.get("iss") not in self.VALID_ISSUERS:
            raise UnauthorizedException("Invalid Google token")
        if not payload.get("email"):
            raise UnauthorizedException("Invalid Google token")

        # tokeninfo returns booleans as strings
        verified = payload.get("email_verified")
        return ExternalIdentity(
            email=payload["email"],
            email_verified=verified is True or str(verified).lower() == "true",
            given_name=payload.get("given_name") or "",
            family_name=payload.get("family_name") or "",
            picture=payload.get("picture"),
            provider=AuthProvider.GOOGLE,
        )


class AccountService:
    """
    Account Lifecycle Manager.

    Confirmation (unconfirmed -> confirmed) and freeze (active <-> frozen) are
    independent axes. Every write goes through the ORM, so the optimistic
    ``version`` counter on ``User`` is bumped on each mutation.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSink,
        settings: Optional[Settings] = None,
        hasher: Optional[PasswordHasher] = None,
        cipher: Optional[FieldCipher] = None,
        tokens: Optional[TokenService] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.hasher = hasher or get_password_hasher()
        self.cipher = cipher or get_field_cipher()
        self.tokens = tokens or TokenService(self.settings)

    # ─── Lookups ─────────────────────────────────
    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _find_unconfirmed(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(
                User.email == normalize_email(email),
                User.confirmed_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def _find_resettable(self, email: str, require_otp: bool) -> Optional[User]:
        query = select(User).where(
            User.email == normalize_email(email),
            User.frozen_at.is_(None),
            User.confirmed_at.is_not(None),
            User.provider == AuthProvider.SYSTEM.value,
        )
        if require_otp:
            query = query.where(User.forget_password_otp.is_not(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    # ─── Signup ──────────────────────────────────
    async def signup(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        phone: str,
        role: UserRole = UserRole.USER,
        verification_method: VerificationMethod = VerificationMethod.OTP,
        age: Optional[int] = None,
    ) -> Tuple[User, VerificationMethod]:
        email = normalize_email(email)
        if await self.get_user_by_email(email):
            raise ConflictException("User already exists")

        password_hash = await self.hasher.hash(password)
        otp = generate_otp(self.settings.otp_length)

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password_hash,
            password_history=[password_hash],
            phone=self.cipher.encrypt(phone) if phone else None,
            age=age,
            role=UserRole(role).value,
            provider=AuthProvider.SYSTEM.value,
            confirm_email_otp=await self.hasher.hash(otp),
            cover_images=[],
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            raise ConflictException("User already exists")

        link_token = None
        verification_url = None
        if verification_method == VerificationMethod.TOKEN:
            link_token = await VerificationTokenService.create(
                self.db,
                email,
                VerificationTokenType.CONFIRM_EMAIL,
                expiration_hours=self.settings.verification_token_expire_hours,
                user_id=user.id,
            )
            verification_url = VerificationTokenService.build_verification_url(
                link_token, VerificationTokenType.CONFIRM_EMAIL, email
            )

        self.notifier.emit(
            NotificationEvent(
                kind=NotificationKind.CONFIRM_EMAIL,
                recipient=email,
                otp_code=otp,
                subject=CONFIRM_EMAIL_SUBJECT,
                display_name=user.full_name,
                link_token=link_token,
                verification_url=verification_url,
            )
        )

        logger.info(f"User signed up: {user.id[:8]}... (method={verification_method.value})")
        return user, verification_method

    # ─── Email confirmation ──────────────────────
    async def confirm_email(self, email: str, otp: Optional[str] = None, token: Optional[str] = None) -> User:
        if bool(otp) == bool(token):
            raise BadRequestException("Provide either an OTP code or a verification token, not both")

        user = await self._find_unconfirmed(email)
        if not user:
            raise UnauthorizedException("User not found or Email already confirmed")

        if otp:
            if not user.confirm_email_otp or not await self.hasher.verify(otp, user.confirm_email_otp):
                raise UnauthorizedException("Invalid code")
        else:
            await VerificationTokenService.verify(
                self.db, token, email, VerificationTokenType.CONFIRM_EMAIL, mark_used=True
            )

        self._mark_confirmed(user)
        await self.db.flush()
        logger.info(f"Email confirmed for user {user.id[:8]}...")
        return user

    @staticmethod
    def _mark_confirmed(user: User) -> None:
        user.confirmed_at = utcnow()
        user.confirm_email_otp = None

    async def verify_email_via_token(self, email: str, token: str) -> str:
        """Link-click confirmation. Always returns an HTML page."""
        error_page = verification_error_page(
            retry_url=self.settings.verification_redirect_url,
            support_url=self.settings.verification_support_url,
        )
        if not email or not token:
            return error_page

        try:
            user = await self._find_unconfirmed(email)
            if not user:
                return error_page
            await VerificationTokenService.verify(
                self.db, token, email, VerificationTokenType.CONFIRM_EMAIL, mark_used=True
            )
            self._mark_confirmed(user)
            await self.db.flush()
        except BadRequestException:
            return error_page
        except Exception:
            logger.exception("Email verification via link failed")
            return error_page

        logger.info(f"Email confirmed via link for user {user.id[:8]}...")
        return verification_success_page(
            email=user.email,
            redirect_url=self.settings.verification_redirect_url,
            delay_seconds=self.settings.verification_redirect_delay_seconds,
        )

    # ─── Sessions ────────────────────────────────
    async def login(self, email: str, password: str) -> TokenPair:
        user = await self.get_user_by_email(email)
        if not user:
            raise NotFoundException("User not found")
        if not user.is_confirmed:
            raise UnauthorizedException("User not found or Email not confirmed")
        if not await self.hasher.verify(password, user.password):
            raise UnauthorizedException("Invalid credentials")

        logger.info(f"User logged in: {user.id[:8]}...")
        return self.tokens.issue_pair(user)

    async def logout(self, user: Optional[User], claims: Optional[Dict[str, Any]]) -> None:
        if user is None or not claims:
            raise UnauthorizedException("Unauthorized")

        await self.tokens.revoke(
            self.db,
            jti=claims["jti"],
            user_id=user.id,
            remaining_ms=TokenService.remaining_ms(claims),
        )

    async def refresh_token(self, user: User) -> TokenPair:
        """Mint a fresh pair; the previous session stays valid until it expires or is logged out."""
        return self.tokens.issue_pair(user)

    async def login_with_external_identity(self, identity: ExternalIdentity) -> Tuple[TokenPair, bool]:
        """
        Sign in with a verified federated identity.

        Returns:
            (tokens, created) where ``created`` is True for a new account
        """
        if not identity.email_verified:
            raise UnauthorizedException("Email not verified")

        user = await self.get_user_by_email(identity.email)
        if user:
            if user.provider != identity.provider.value:
                raise ConflictException("Account exists with a different sign-in method")
            return self.tokens.issue_pair(user), False

        user = User(
            first_name=identity.given_name,
            last_name=identity.family_name,
            email=normalize_email(identity.email),
            password=None,
            password_history=[],
            provider=identity.provider.value,
            role=UserRole.USER.value,
            profile_image=identity.picture,
            confirmed_at=utcnow(),
            cover_images=[],
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictException("User already exists")

        logger.info(f"New user created via {identity.provider.value}: {user.id[:8]}...")
        return self.tokens.issue_pair(user), True

    # ─── Password reset ──────────────────────────
    async def forget_password(
        self,
        email: str,
        verification_method: VerificationMethod = VerificationMethod.OTP,
    ) -> None:
        email = normalize_email(email)
        result = await self.db.execute(
            select(User).where(
                User.email == email,
                User.provider == AuthProvider.SYSTEM.value,
                User.confirmed_at.is_not(None),
            )
        )
        user = result.scalar_one_or_none()
        if not user:
            # One generic failure for missing, unconfirmed and federated accounts
            raise UnauthorizedException("User not found or Email not confirmed")

        otp = generate_otp(self.settings.otp_length)
        user.forget_password_otp = await self.hasher.hash(otp)

        link_token = None
        verification_url = None
        if verification_method == VerificationMethod.TOKEN:
            link_token = await VerificationTokenService.create(
                self.db,
                email,
                VerificationTokenType.RESET_PASSWORD,
                expiration_hours=self.settings.verification_token_expire_hours,
                user_id=user.id,
            )
            verification_url = VerificationTokenService.build_verification_url(
                link_token, VerificationTokenType.RESET_PASSWORD, email
            )
        await self.db.flush()

        self.notifier.emit(
            NotificationEvent(
                kind=NotificationKind.FORGET_PASSWORD,
                recipient=email,
                otp_code=otp,
                subject=RESET_PASSWORD_SUBJECT,
                display_name=user.full_name,
                link_token=link_token,
                verification_url=verification_url,
            )
        )
        logger.info(f"Password reset requested for user {user.id[:8]}... (method={verification_method.value})")

    async def reset_password_page(self, email: str, token: str) -> str:
        """Landing page for the reset link: the form while the token is live, the error page otherwise."""
        if email and token and await VerificationTokenService.is_valid(
            self.db, token, email, VerificationTokenType.RESET_PASSWORD
        ):
            return reset_password_form_page(email=normalize_email(email), token=token, action_url=RESET_PASSWORD_PATH)
        return verification_error_page(
            retry_url=self.settings.verification_redirect_url,
            support_url=self.settings.verification_support_url,
        )

    async def reset_password(
        self,
        email: str,
        new_password: str,
        code: Optional[str] = None,
        token: Optional[str] = None,
    ) -> User:
        if bool(code) == bool(token):
            raise BadRequestException("Provide either an OTP code or a verification token, not both")

        if code:
            user = await self._find_resettable(email, require_otp=True)
            if not user:
                raise UnauthorizedException("User not found or Email not confirmed")
            if not await self.hasher.verify(code, user.forget_password_otp):
                raise UnauthorizedException("Invalid code")
        else:
            await VerificationTokenService.verify(
                self.db, token, email, VerificationTokenType.RESET_PASSWORD, mark_used=True
            )
            user = await self._find_resettable(email, require_otp=False)
            if not user:
                raise UnauthorizedException("User not found or Email not confirmed")

        await ensure_password_not_reused(self.hasher, user, new_password)

        rotate_password(user, await self.hasher.hash(new_password), self.settings.password_history_limit)
        user.forget_password_otp = None
        await self.db.flush()

        logger.info(f"Password reset completed for user {user.id[:8]}...")
        return user
