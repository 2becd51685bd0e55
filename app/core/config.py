"""Application configuration settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Accounts API"
    app_env: str = "development"
    debug: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./accounts.db"

    # JWT Authentication - one secret per (role, token type)
    access_admin_jwt_secret: str = "access-admin-secret-change-in-production"
    access_user_jwt_secret: str = "access-user-secret-change-in-production"
    refresh_admin_jwt_secret: str = "refresh-admin-secret-change-in-production"
    refresh_user_jwt_secret: str = "refresh-user-secret-change-in-production"
    jwt_issuer: str = "accounts-api"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 1 day
    refresh_token_expire_days: int = 7

    # Hashing / encryption
    bcrypt_rounds: int = 12
    encryption_key: str = "field-encryption-key-change-in-production"

    # Verification
    otp_length: int = 6
    verification_token_expire_hours: int = 24
    password_history_limit: int = 5
    verification_redirect_url: str = "http://localhost:3000/login"
    verification_support_url: str = "http://localhost:3000/support"
    verification_redirect_delay_seconds: int = 10
    # Frontend page for reset links; empty serves the built-in form at GET /auth/reset-password
    password_reset_url: str = ""

    # Email (SMTP) - console logging when not configured
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@example.com"
    smtp_from_name: str = "Accounts"
    smtp_use_tls: bool = True

    # Federated login
    google_client_id: str = ""
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"

    # File Upload
    max_file_size_mb: int = 20
    upload_dir: str = "./uploads"
    allowed_mime_types: str = "image/jpeg,image/png,image/gif,image/webp,image/bmp,image/tiff"
    enable_magic_number_check: bool = True
    max_cover_images: int = 5

    # Background cleanup
    cleanup_enabled: bool = True
    cleanup_interval_minutes: int = 60

    # Rate limiting
    rate_limit_enabled: bool = True

    # CORS
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Public URL used in verification links - set via APP_URL in production
    app_url: str = ""

    @property
    def effective_app_url(self) -> str:
        """Get app URL, constructing from host/port if not explicitly set."""
        if self.app_url:
            return self.app_url.rstrip("/")
        scheme = "https" if self.app_env == "production" else "http"
        host = self.host if self.host != "0.0.0.0" else "localhost"
        return f"{scheme}://{host}:{self.port}"

    # Security
    allowed_hosts: str = "*"

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Get allowed hosts as a list."""
        return [host.strip() for host in self.allowed_hosts.split(",")]

    @property
    def environment(self) -> str:
        """Alias for app_env."""
        return self.app_env

    @property
    def allowed_mime_types_list(self) -> List[str]:
        """Get allowed upload MIME types as a list."""
        return [mime.strip().lower() for mime in self.allowed_mime_types.split(",") if mime.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    def jwt_secret_for(self, is_admin: bool, token_type: str) -> str:
        """Select the signing secret for a role class and token type."""
        if token_type == "access":
            return self.access_admin_jwt_secret if is_admin else self.access_user_jwt_secret
        if token_type == "refresh":
            return self.refresh_admin_jwt_secret if is_admin else self.refresh_user_jwt_secret
        raise ValueError(f"Unknown token type: {token_type}")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
