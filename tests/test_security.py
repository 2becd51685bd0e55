"""
Tests for hashing, field encryption, OTP generation and settings helpers.

Run with: pytest tests/test_security.py -v
"""

import pytest

from app.core.config import Settings
from app.core.security import FieldCipher, PasswordHasher, generate_otp


class TestPasswordHasher:
    """Tests for the bcrypt wrapper."""

    @pytest.mark.asyncio
    async def test_hash_and_verify(self):
        """A hash verifies its own plaintext and nothing else."""
        hasher = PasswordHasher(rounds=4)
        hashed = await hasher.hash("Secret1")

        assert hashed != "Secret1"
        assert await hasher.verify("Secret1", hashed) is True
        assert await hasher.verify("Secret2", hashed) is False

    def test_verify_handles_missing_or_malformed_hash(self):
        """No hash (federated account) or garbage never verifies."""
        hasher = PasswordHasher(rounds=4)
        assert hasher.verify_sync("anything", None) is False
        assert hasher.verify_sync("anything", "") is False
        assert hasher.verify_sync("anything", "not-a-bcrypt-hash") is False

    def test_rounds_are_configurable(self):
        hasher = PasswordHasher(rounds=5)
        assert "$05$" in hasher.hash_sync("pw")


class TestFieldCipher:
    """Tests for reversible PII encryption."""

    def test_roundtrip(self):
        cipher = FieldCipher("unit-test-key")
        encrypted = cipher.encrypt("+201000000000")

        assert encrypted != "+201000000000"
        assert cipher.decrypt(encrypted) == "+201000000000"

    def test_decrypt_plaintext_falls_back_to_input(self):
        """Values stored before encryption was enabled come back unchanged."""
        cipher = FieldCipher("unit-test-key")
        assert cipher.decrypt("+201000000000") == "+201000000000"

    def test_wrong_key_falls_back_to_input(self):
        encrypted = FieldCipher("key-a").encrypt("secret")
        assert FieldCipher("key-b").decrypt(encrypted) == encrypted

    def test_empty_key_rejected(self):
        with pytest.raises(RuntimeError):
            FieldCipher("")


class TestOtp:
    def test_default_length_and_digits(self):
        for _ in range(20):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()

    def test_custom_length(self):
        assert len(generate_otp(8)) == 8


class TestSettings:
    """Tests for the secret matrix and derived settings."""

    def test_four_distinct_secrets(self):
        settings = Settings(
            access_admin_jwt_secret="aa",
            access_user_jwt_secret="au",
            refresh_admin_jwt_secret="ra",
            refresh_user_jwt_secret="ru",
        )
        assert settings.jwt_secret_for(True, "access") == "aa"
        assert settings.jwt_secret_for(False, "access") == "au"
        assert settings.jwt_secret_for(True, "refresh") == "ra"
        assert settings.jwt_secret_for(False, "refresh") == "ru"

    def test_unknown_token_type(self):
        with pytest.raises(ValueError):
            Settings().jwt_secret_for(False, "id")

    def test_effective_app_url(self):
        assert Settings(app_url="https://accounts.example.com/").effective_app_url == "https://accounts.example.com"
        assert Settings(app_url="", host="0.0.0.0", port=9000, app_env="development").effective_app_url == (
            "http://localhost:9000"
        )

    def test_allowed_mime_types_list(self):
        settings = Settings(allowed_mime_types="image/png, IMAGE/JPEG")
        assert settings.allowed_mime_types_list == ["image/png", "image/jpeg"]
