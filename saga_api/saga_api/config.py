"""API-layer configuration loaded from environment variables."""

from __future__ import annotations

from typing import Self

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from saga_core.ratelimit.quotas import GLOBAL_WINDOW_SECONDS, HOUR_SECONDS, Quota, QuotaTable


class APISettings(BaseSettings):
    """FastAPI application settings.

    All values can be overridden via environment variables prefixed with
    ``SAGA_`` (e.g. ``SAGA_AI_QUOTA_GROWTH=500``) or through a ``.env``
    file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAGA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Profile store (async SQLAlchemy URL).
    database_url: str = "sqlite+aiosqlite:///./saga.db"

    # Secret used to verify identity tokens.  Required unless ``debug`` is
    # set, in which case a random per-process secret is generated.
    auth_token_secret: SecretStr = SecretStr("")

    # Hosted coaching engine.
    ai_engine_url: str = "http://localhost:8001"
    ai_engine_timeout: float = 30.0

    # Origins permitted by the CORS middleware.
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True

    # Reverse proxies whose X-Forwarded-For / X-Real-IP / CF-Connecting-IP
    # headers are trusted for client addresses.  "*" trusts any peer.
    trusted_proxies: list[str] = []

    @model_validator(mode="after")
    def _validate_cors_credentials_not_wildcard(self) -> Self:
        """Reject wildcard origins when credentials are enabled.

        Browsers reject ``Access-Control-Allow-Origin: *`` together with
        ``Access-Control-Allow-Credentials: true``.  Fail at startup instead.
        """
        if self.cors_allow_credentials and "*" in self.cors_origins:
            raise ValueError(
                "Cannot use wildcard origins with credentials. "
                "Specify explicit origins instead of '*' when "
                "cors_allow_credentials=True."
            )
        return self

    # Global abuse guard, applied to every /api/ request per client address.
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_window_seconds: float = GLOBAL_WINDOW_SECONDS

    # Per-tier AI quotas.  Anonymous callers get the Explorer quota.
    ai_quota_explorer: int = 20
    ai_quota_growth: int = 200
    ai_quota_transformation: int = 1000
    ai_quota_window_seconds: float = HOUR_SECONDS

    # Structured JSON logging.
    structured_logging: bool = False

    # Stripe webhook (subscription tier sync).
    billing_enabled: bool = False
    stripe_webhook_secret: SecretStr = SecretStr("")
    stripe_price_ids_growth: list[str] = ["price_growth_monthly", "price_growth_yearly"]
    stripe_price_ids_transformation: list[str] = [
        "price_transformation_monthly",
        "price_transformation_yearly",
    ]

    def global_quota(self) -> Quota:
        return Quota(limit=self.rate_limit_requests, window_seconds=self.rate_limit_window_seconds)

    def ai_quotas(self) -> QuotaTable:
        window = self.ai_quota_window_seconds
        explorer = Quota(limit=self.ai_quota_explorer, window_seconds=window)
        return QuotaTable(
            anonymous=explorer,
            explorer=explorer,
            growth=Quota(limit=self.ai_quota_growth, window_seconds=window),
            transformation=Quota(limit=self.ai_quota_transformation, window_seconds=window),
        )


def load_api_settings() -> APISettings:
    """Construct settings from the environment / ``.env`` file."""
    return APISettings()
