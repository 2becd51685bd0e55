"""Typed application errors.

Every business-rule violation is raised as an ``AppException`` carrying the
HTTP status code; the message is returned verbatim to the caller by the
handlers registered in ``main.py``.
"""

from typing import Optional


class AppException(Exception):
    """Base error mapped to an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestException(AppException):
    """Malformed or contradictory input (400)."""
    status_code = 400


class UnauthorizedException(AppException):
    """Bad credentials or invalid session (401)."""
    status_code = 401


class ForbiddenException(AppException):
    """Role not permitted (403)."""
    status_code = 403


class NotFoundException(AppException):
    """No matching account or resource (404)."""
    status_code = 404


class ConflictException(AppException):
    """Duplicate unique field or concurrent update (409)."""
    status_code = 409


class TooManyRequestsException(AppException):
    """Rate limit exceeded (429)."""
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InvalidTokenError(UnauthorizedException):
    """Session token failed structural or signature checks."""


class TokenExpiredError(UnauthorizedException):
    """Session token signature is valid but it is past expiry."""
