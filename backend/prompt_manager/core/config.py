"""Configuration management.

This module defines a ``Settings`` class that reads configuration values
from environment variables and ``.env`` files, plus the ``StripeConfig``
object that carries the payment provider credentials.  ``StripeConfig`` is
built once per process and handed explicitly to the webhook verifier and the
subscription fetcher so neither reaches for module-level Stripe state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[3]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


class Settings(BaseSettings):
    """Application settings.

    Any attribute defined here can be overridden by setting the corresponding
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    PROJECT_NAME: str = "Prompt Manager"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = Field(default="development")

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    # Dev DB fallback (fail fast by default)
    DB_DEV_FALLBACK_SQLITE: bool = Field(default=False)

    # Auth (Clerk)
    DEV_AUTH_BYPASS: bool = Field(default=False)
    DEV_AUTH_USER_ID: str = Field(default="user_dev123")
    CLERK_JWKS_URL: Optional[str] = Field(default=None)
    CLERK_JWT_AUDIENCE: Optional[str] = Field(default=None)
    CLERK_JWT_ISSUER: Optional[str] = Field(default=None)

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )
    FRONTEND_BASE_URL: str = Field(default="http://localhost:3000")

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_RELEASE: Optional[str] = Field(default=None)

    # Stripe
    STRIPE_API_KEY: Optional[str] = Field(default=None)
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(default=None)
    # Maximum age in seconds of a signed webhook timestamp
    STRIPE_WEBHOOK_TOLERANCE: int = Field(default=300)
    STRIPE_API_VERSION: Optional[str] = Field(default=None)
    # Stripe Payment Link for the pro plan; the caller's user id is appended as
    # client_reference_id so checkout completion can be linked back to them
    MONTHLY_SUBSCRIPTION_LINK: Optional[str] = Field(default=None)

    # Membership limits
    FREE_PROMPT_LIMIT: int = Field(default=3)


# Instantiate global settings
settings = Settings()


@dataclass(frozen=True)
class StripeConfig:
    """Credentials and knobs for talking to Stripe.

    Constructed once at process start (see :func:`get_stripe_config`) and
    passed to collaborators.  Tests build their own instance with fake
    credentials.
    """

    api_key: Optional[str]
    webhook_secret: Optional[str]
    webhook_tolerance: int = 300
    api_version: Optional[str] = None

    @classmethod
    def from_settings(cls, source: Settings) -> "StripeConfig":
        secret = (source.STRIPE_WEBHOOK_SECRET or "").strip() or None
        return cls(
            # STRIPE_SECRET_KEY is the name the Stripe dashboard suggests
            api_key=source.STRIPE_API_KEY or os.getenv("STRIPE_SECRET_KEY"),
            webhook_secret=secret,
            webhook_tolerance=int(source.STRIPE_WEBHOOK_TOLERANCE),
            api_version=source.STRIPE_API_VERSION,
        )


@lru_cache(maxsize=1)
def get_stripe_config() -> StripeConfig:
    """Return the process-wide Stripe configuration (built on first use)."""
    return StripeConfig.from_settings(settings)
