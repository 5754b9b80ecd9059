"""Tests for the integration probes, with vendor APIs mocked."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai

from prodcheck.config import Settings
from prodcheck.env.resolver import ResolvedEnv
from prodcheck.health.models import FailureKind
from prodcheck.health.probes import (
    PROBES,
    check_openai,
    check_sendgrid,
    check_site,
    check_stripe,
    check_supabase,
)


def _completion(text: str | None) -> MagicMock:
    resp = MagicMock()
    resp.choices = [MagicMock()]
    resp.choices[0].message.content = text
    return resp


def _client(client_cls: MagicMock) -> MagicMock:
    """Make the patched AsyncOpenAI usable as an async context manager."""
    client = client_cls.return_value
    client.__aenter__.return_value = client
    return client


class TestRegistry:
    def test_fixed_order(self) -> None:
        assert [p.name for p in PROBES] == ["openai", "supabase", "stripe", "sendgrid", "site"]


# ── OpenAI ───────────────────────────────────────────────────────────────────


class TestOpenAI:
    def test_success(self, full_env: ResolvedEnv, cfg: Settings) -> None:
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            create = AsyncMock(return_value=_completion("A sample sentence."))
            _client(client_cls).chat.completions.create = create
            result = asyncio.run(check_openai(full_env, cfg))

        assert result.ok
        assert result.detail == "OK"
        assert result.failure is None
        assert create.call_args.kwargs["model"] == "gpt-4o-mini"
        assert create.call_args.kwargs["max_tokens"] == 20

    def test_client_closed(self, full_env: ResolvedEnv, cfg: Settings) -> None:
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            client = _client(client_cls)
            client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
            asyncio.run(check_openai(full_env, cfg))

        client.__aexit__.assert_awaited_once()

    def test_empty_response(self, full_env: ResolvedEnv, cfg: Settings) -> None:
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            _client(client_cls).chat.completions.create = AsyncMock(
                return_value=_completion(""),
            )
            result = asyncio.run(check_openai(full_env, cfg))

        assert not result.ok
        assert result.detail == "Empty response"
        assert result.failure == FailureKind.PROBE_BAD_RESPONSE

    def test_connection_error(self, full_env: ResolvedEnv, cfg: Settings) -> None:
        err = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            _client(client_cls).chat.completions.create = AsyncMock(side_effect=err)
            result = asyncio.run(check_openai(full_env, cfg))

        assert not result.ok
        assert result.failure == FailureKind.PROBE_NETWORK_ERROR
        assert result.latency_ms >= 0

    def test_unexpected_exception(self, full_env: ResolvedEnv, cfg: Settings) -> None:
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            _client(client_cls).chat.completions.create = AsyncMock(
                side_effect=RuntimeError("bad key"),
            )
            result = asyncio.run(check_openai(full_env, cfg))

        assert result.detail == "bad key"
        assert result.failure == FailureKind.PROBE_EXCEPTION

    def test_missing_key(self, cfg: Settings) -> None:
        with patch("prodcheck.health.probes.openai.AsyncOpenAI") as client_cls:
            result = asyncio.run(check_openai(ResolvedEnv({}), cfg))
            client_cls.assert_not_called()
        assert result.failure == FailureKind.CONFIG_MISSING
        assert "OPENAI_API_KEY" in result.detail


# ── Supabase ─────────────────────────────────────────────────────────────────


class TestSupabase:
    def test_insert_ok(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_supabase(full_env, cfg))

        assert result.ok
        assert result.detail == "Inserted dummy record"
        req = seen[0]
        assert req.method == "POST"
        assert req.url.path == "/rest/v1/system_check"
        assert req.headers["apikey"] == "service-role"
        body = json.loads(req.content)
        assert body["status"] == "ok"
        assert "checked_at" in body

    def test_insert_rejected(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Invalid API key"})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_supabase(full_env, cfg))

        assert not result.ok
        assert result.detail == "Insert failed: Invalid API key"
        assert result.failure == FailureKind.PROBE_BAD_RESPONSE

    def test_redirect_is_not_success(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "https://login.test"})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_supabase(full_env, cfg))

        assert not result.ok
        assert result.detail == "Insert failed: HTTP 302"
        assert result.failure == FailureKind.PROBE_BAD_RESPONSE


# ── Stripe ───────────────────────────────────────────────────────────────────


class TestStripe:
    def test_price_then_product(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Stripe-Version"] == "2024-06-20"
            if request.url.path == "/v1/prices/price_123":
                return httpx.Response(200, json={"id": "price_123", "product": "prod_9"})
            if request.url.path == "/v1/products/prod_9":
                return httpx.Response(200, json={"id": "prod_9"})
            return httpx.Response(404)

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_stripe(full_env, cfg))

        assert result.ok
        assert result.detail == "Product prod_9"

    def test_expanded_product(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "price_123", "product": {"id": "prod_x"}})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_stripe(full_env, cfg))

        assert result.ok
        assert result.detail == "Product prod_x"

    def test_no_product(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "price_123", "product": None})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_stripe(full_env, cfg))

        assert result.detail == "No product returned"

    def test_unknown_price(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"message": "No such price: 'price_123'"}})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_stripe(full_env, cfg))

        assert not result.ok
        assert result.detail == "No such price: 'price_123'"


# ── SendGrid ─────────────────────────────────────────────────────────────────


class TestSendGrid:
    def test_profile_ok(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/user/profile"
            assert request.headers["Authorization"] == "Bearer SG.test"
            return httpx.Response(200, json={"first_name": "Ops"})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_sendgrid(full_env, cfg))

        assert result.ok
        assert result.detail == "Email API reachable"

    def test_unauthorized(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401)

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_sendgrid(full_env, cfg))

        assert not result.ok
        assert result.detail == "Status 401"


# ── Site ─────────────────────────────────────────────────────────────────────


class TestSite:
    def test_200_passes(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        with patch(
            "prodcheck.health.probes._http_client",
            http_mock(lambda r: httpx.Response(200, text="<html>")),
        ):
            result = asyncio.run(check_site(full_env, cfg))
        assert result.ok
        assert result.detail == "HTTP 200"

    def test_redirect_fails(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, headers={"Location": "https://www.audit-response.test/"})

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_site(full_env, cfg))

        assert not result.ok
        assert result.detail == "HTTP 301"
        assert result.failure == FailureKind.PROBE_BAD_RESPONSE

    def test_network_error(self, full_env: ResolvedEnv, cfg: Settings, http_mock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with patch("prodcheck.health.probes._http_client", http_mock(handler)):
            result = asyncio.run(check_site(full_env, cfg))

        assert not result.ok
        assert result.detail == "connection refused"
        assert result.failure == FailureKind.PROBE_NETWORK_ERROR
