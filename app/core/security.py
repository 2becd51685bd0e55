"""Password hashing, OTP generation and reversible field encryption."""

import asyncio
import base64
import hashlib
import secrets
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from passlib.context import CryptContext

from app.core.config import get_settings


class PasswordHasher:
    """One-way bcrypt hashing for passwords and OTPs.

    bcrypt is CPU bound, so the async helpers run it in a worker thread to keep
    the event loop free for other requests.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash_sync(self, plain: str) -> str:
        return self._context.hash(plain)

    def verify_sync(self, plain: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(plain, hashed)
        except ValueError:
            # Malformed or unknown hash format
            return False

    async def hash(self, plain: str) -> str:
        return await asyncio.to_thread(self.hash_sync, plain)

    async def verify(self, plain: str, hashed: Optional[str]) -> bool:
        return await asyncio.to_thread(self.verify_sync, plain, hashed)


class FieldCipher:
    """Symmetric encryption for PII columns (e.g. phone numbers)."""

    def __init__(self, key_material: str):
        if not key_material:
            raise RuntimeError("ENCRYPTION_KEY must be set")
        self._fernet = Fernet(self._derive_key(key_material))

    @staticmethod
    def _derive_key(key_material: str) -> bytes:
        return base64.urlsafe_b64encode(hashlib.sha256(key_material.encode()).digest())

    def encrypt(self, plain: str) -> str:
        return self._fernet.encrypt(plain.encode()).decode()

    def decrypt(self, cipher_text: str) -> str:
        """Decrypt a value, returning it unchanged if it is not ciphertext."""
        try:
            return self._fernet.decrypt(cipher_text.encode()).decode()
        except (InvalidToken, ValueError):
            return cipher_text


def generate_otp(length: int = 6) -> str:
    """Generate a numeric OTP using the CSPRNG."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


@lru_cache()
def get_password_hasher() -> PasswordHasher:
    """Get cached password hasher configured from settings."""
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


@lru_cache()
def get_field_cipher() -> FieldCipher:
    """Get cached field cipher configured from settings."""
    return FieldCipher(get_settings().encryption_key)
