from __future__ import annotations

from pydantic_settings import BaseSettings

# Variables the deployed app needs. Order is the report order.
REQUIRED_VARS: tuple[str, ...] = (
    "OPENAI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "STRIPE_PUBLISHABLE_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_PRICE_RESPONSE",
    "STRIPE_WEBHOOK_SECRET",
    "SENDGRID_API_KEY",
    "SITE_URL",
    "ENVIRONMENT",
)

# Legacy name -> canonical name. Only applied when the canonical one is unset.
ENV_ALIASES: dict[str, str] = {
    "STRIPE_PUBLIC_KEY": "STRIPE_PUBLISHABLE_KEY",
    "STRIPE_PRICE_ID": "STRIPE_PRICE_RESPONSE",
}


class Settings(BaseSettings):
    """Checker configuration loaded from ``PRODCHECK_*`` environment variables."""

    model_config = {
        "env_prefix": "PRODCHECK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # Fallback KEY=VALUE file for the app's own variables
    fallback_env_file: str = ".env"

    # Netlify CLI
    netlify_enabled: bool = True
    netlify_cli_path: str = "netlify"
    git_cli_path: str = "git"
    cli_timeout_seconds: int = 30
    # Site names containing one of these are auto-link candidates
    site_keywords: list[str] = ["audit", "response"]

    # Probes (0 = no timeout)
    probe_timeout_seconds: float = 30.0
    openai_model: str = "gpt-4o-mini"
    supabase_table: str = "system_check"
    stripe_api_base: str = "https://api.stripe.com"
    stripe_api_version: str = "2024-06-20"
    sendgrid_api_base: str = "https://api.sendgrid.com"

    # Logging
    log_level: str = "WARNING"


settings = Settings()
