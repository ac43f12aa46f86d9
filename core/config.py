"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Fabric QR server happen here. No module
should call os.getenv() or os.environ.get() directly -- build a Settings
object (usually through get_settings()) and pass it to whatever needs it.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. create_app()
      and the CLI call it once; everything downstream receives the instance
      explicitly (TokenIssuer, stores).

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET, mongo_uri -> MONGO_URI).

  @model_validator(mode="after"): Applies the JWT_SECRET policy once all
      fields are resolved.

Secret policy:
  A missing JWT_SECRET is NOT a startup failure. A random per-process key is
  generated and a warning is logged -- tokens then stop verifying after a
  restart. The placeholder secret shipped by the legacy Express service is
  accepted but flagged, since anyone can forge tokens with it.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or materials/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("fabricqr.config")

# Placeholder secret from the legacy deployment. Flagged, never generated.
KNOWN_INSECURE_SECRETS: frozenset[str] = frozenset({"your_jwt_secret_key"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "0.0.0.0"  # noqa: S104 -- container deployments bind all interfaces
    port: int = 5000

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Empty string means "not configured": the server still starts and every
    # store-backed route answers 500 at call time.
    mongo_uri: str = ""
    mongo_database: str = "fabric_qr"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    jwt_secret: str = ""
    login_token_expire_seconds: int = 3600
    federated_token_expire_seconds: int = 7 * 24 * 3600

    # ------------------------------------------------------------------
    # CORS
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Fill in or flag the signing secret.

        Missing: generate a random 256-bit key and warn.
        Known placeholder: keep it (existing tokens must still verify) and warn.
        Short (<32 chars): keep it and warn -- HS256 strength depends on key entropy.
        """
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_hex(32)
            logger.warning(
                "JWT_SECRET is not set. Using an auto-generated key; " "issued tokens will not survive a restart."
            )
        elif self.jwt_secret in KNOWN_INSECURE_SECRETS:
            logger.warning("JWT_SECRET is set to a publicly known placeholder. Tokens can be forged -- rotate it.")
        elif len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is shorter than 32 characters.")
        return self

    @property
    def database_configured(self) -> bool:
        return bool(self.mongo_uri)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: construct Settings(...) directly and hand it to create_app(),
    or call get_settings.cache_clear() after changing environment variables.
    """
    return Settings()
