"""Services for business logic."""

from app.services.auth_service import AccountService, ExternalIdentity, GoogleIdentityVerifier
from app.services.email_service import EmailNotificationSink, NotificationEvent, NotificationKind
from app.services.revocation_service import RevocationService
from app.services.storage_service import StorageService
from app.services.token_service import TokenPair, TokenService
from app.services.user_service import UserService
from app.services.verification_token_service import VerificationTokenService

__all__ = [
    "AccountService",
    "ExternalIdentity",
    "GoogleIdentityVerifier",
    "EmailNotificationSink",
    "NotificationEvent",
    "NotificationKind",
    "RevocationService",
    "StorageService",
    "TokenPair",
    "TokenService",
    "UserService",
    "VerificationTokenService",
]
