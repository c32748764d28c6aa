from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_api_version: str
    stripe_max_network_retries: int
    postgres_dsn: str
    app_public_url: str
    billing_max_concurrency: int
    billing_request_timeout_seconds: float
    log_level: str


def get_settings() -> Settings:
    return Settings(
        stripe_secret_key=_env("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET", ""),
        stripe_api_version=_env("STRIPE_API_VERSION", "2023-10-16"),
        stripe_max_network_retries=int(_env("STRIPE_MAX_NETWORK_RETRIES", "2")),
        postgres_dsn=_env("POSTGRES_DSN", ""),
        app_public_url=_env("APP_PUBLIC_URL", ""),
        billing_max_concurrency=int(_env("BILLING_MAX_CONCURRENCY", "8")),
        billing_request_timeout_seconds=float(_env("BILLING_REQUEST_TIMEOUT_SECONDS", "20")),
        log_level=_env("LOG_LEVEL", "INFO"),
    )
