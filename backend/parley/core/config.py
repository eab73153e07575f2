"""Application configuration loaded from environment variables.

Settings for storage backends, session cookies, email verification, the
LLM provider and HTTP concerns. Uses pydantic-settings for validation and
.env file support.
"""

from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default secret that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_SECRET = "parley-insecure-development-secret-change-me"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Storage backends. Selection priority: MONGODB_URI, then DATABASE_URL,
    # then the in-memory fallback (see parley.storage.factory).
    database_url: str = ""
    database_echo: bool = False
    mongodb_uri: str = ""
    mongodb_database: str = "chatapp"

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:5000"]

    # Session cookie
    auth_secret: SecretStr = SecretStr(_INSECURE_DEFAULT_SECRET)
    auth_issuer: str = "parley"
    auth_cookie_name: str = "parley.session"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    session_max_age_days: int = 7

    # Hashing cost for passwords, OTPs and API keys
    bcrypt_rounds: int = 12

    # Email verification. Disabled means signup auto-verifies the account.
    email_verification_enabled: bool = False
    otp_ttl_minutes: int = 10
    email_from: str = "noreply@parley.chat"
    resend_api_key: SecretStr = SecretStr("")

    # Account deletion. False keeps sessions, messages and API keys of a
    # deleted user; only email verifications are removed.
    user_deletion_purges_owned_data: bool = False

    # LLM provider (Groq, OpenAI-compatible endpoint)
    groq_api_key: SecretStr = SecretStr("")
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_chat_model: str = "llama-3.3-70b-versatile"
    groq_code_model: str = "meta-llama/llama-4-maverick-17b-128e-instruct"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_llm: str = "10/minute"
    rate_limit_auth: str = "10/minute"
    rate_limit_enabled: bool = True

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str | None) -> str:
        """Normalize database URLs for the async SQLAlchemy drivers.

        Conversions:
        - postgres://     → postgresql+asyncpg://
        - postgresql://   → postgresql+asyncpg://
        - sqlite:///      → sqlite+aiosqlite:///

        Args:
            v: Raw value from the environment.

        Returns:
            URL with an async driver, or "" when unset.
        """
        if not v:
            return ""

        url = v.strip()
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return url

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return self.database_url.replace("+asyncpg", "").replace("+aiosqlite", "")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - SameSite=None requires Secure flag (all environments)
        - CORS must not use wildcard origin (all environments)
        - AUTH_SECRET must not be the development default in production
        - AUTH_SECRET must be >= 32 chars in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.is_production:
            secret_value = self.auth_secret.get_secret_value()
            if secret_value == _INSECURE_DEFAULT_SECRET:
                msg = (
                    "Cannot use the default AUTH_SECRET in production. "
                    'Generate one with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

        return self


settings = Settings()
