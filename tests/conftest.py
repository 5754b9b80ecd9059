"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from prodcheck.config import REQUIRED_VARS, Settings
from prodcheck.env.netlify import NetlifyCLI
from prodcheck.env.resolver import EnvSource, ResolvedEnv


FULL_ENV = {
    "OPENAI_API_KEY": "sk-test",
    "SUPABASE_URL": "https://proj.supabase.test",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role",
    "STRIPE_PUBLISHABLE_KEY": "pk_test_123",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_PRICE_RESPONSE": "price_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_123",
    "SENDGRID_API_KEY": "SG.test",
    "SITE_URL": "https://audit-response.test",
    "ENVIRONMENT": "production",
}


@pytest.fixture
def full_values() -> dict[str, str]:
    """Raw values for every required variable."""
    return dict(FULL_ENV)


@pytest.fixture
def full_env() -> ResolvedEnv:
    """Every required variable present."""
    assert set(FULL_ENV) == set(REQUIRED_VARS)
    return ResolvedEnv(FULL_ENV, {k: EnvSource.PROCESS for k in FULL_ENV})


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        probe_timeout_seconds=5,
        stripe_api_base="https://stripe.test",
        sendgrid_api_base="https://sendgrid.test",
    )


@pytest.fixture
def fake_netlify() -> MagicMock:
    """A NetlifyCLI that is linked but knows no variables."""
    cli = MagicMock(spec=NetlifyCLI)
    cli.ensure_linked.return_value = True
    cli.fetch_env.return_value = {}
    return cli


@pytest.fixture
def unlinked_netlify() -> MagicMock:
    cli = MagicMock(spec=NetlifyCLI)
    cli.ensure_linked.return_value = False
    return cli


def mock_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[..., httpx.AsyncClient]:
    """Replacement for probes._http_client that routes through MockTransport."""

    def factory(cfg: Settings, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return factory


@pytest.fixture
def http_mock() -> Callable[..., Callable[..., httpx.AsyncClient]]:
    return mock_client_factory
