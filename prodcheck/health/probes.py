"""Integration probes — one live reachability check per external service.

Each probe takes the resolved environment and settings, performs a single
lightweight call and returns a CheckResult. Probes never raise: every failure
is folded into the result, and latency is measured on every path.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx
import openai

from prodcheck.config import Settings
from prodcheck.env.resolver import ResolvedEnv
from prodcheck.health.models import CheckResult, FailureKind, ProbeSpec

logger = logging.getLogger(__name__)


def _http_client(cfg: Settings, **kwargs: Any) -> httpx.AsyncClient:
    timeout = cfg.probe_timeout_seconds or None
    return httpx.AsyncClient(timeout=timeout, **kwargs)


def _missing(env: ResolvedEnv, *names: str) -> str:
    absent = [n for n in names if not env.is_present(n)]
    return f"{', '.join(absent)} not set" if absent else ""


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _api_error(resp: httpx.Response) -> str:
    """Pull a human-readable message out of a vendor error body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", errors[0]))
    return f"HTTP {resp.status_code}"


def _exception_result(name: str, t0: float, exc: Exception) -> CheckResult:
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError)):
        kind = FailureKind.PROBE_NETWORK_ERROR
    elif isinstance(exc, openai.APIStatusError):
        kind = FailureKind.PROBE_BAD_RESPONSE
    else:
        kind = FailureKind.PROBE_EXCEPTION
    logger.debug("Probe %s raised %s", name, type(exc).__name__, exc_info=exc)
    return CheckResult.failed(name, t0, _error_text(exc), kind)


# ── Probes ───────────────────────────────────────────────────────────────────


async def check_openai(env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """Ask for a tiny completion and require non-empty text back."""
    t0 = time.perf_counter()
    missing = _missing(env, "OPENAI_API_KEY")
    if missing:
        return CheckResult.failed("openai", t0, missing, FailureKind.CONFIG_MISSING)
    try:
        async with openai.AsyncOpenAI(
            api_key=env.get("OPENAI_API_KEY"),
            timeout=cfg.probe_timeout_seconds or None,
            max_retries=0,
        ) as client:
            res = await client.chat.completions.create(
                model=cfg.openai_model,
                messages=[{"role": "user", "content": "Generate a sample sentence."}],
                max_tokens=20,
                temperature=0.5,
            )
        text = res.choices[0].message.content if res.choices else ""
        if not text:
            return CheckResult.failed(
                "openai", t0, "Empty response", FailureKind.PROBE_BAD_RESPONSE,
            )
        return CheckResult.passed("openai", t0, "OK")
    except Exception as e:
        return _exception_result("openai", t0, e)


async def check_supabase(env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """Insert a timestamped marker row through the PostgREST API."""
    t0 = time.perf_counter()
    missing = _missing(env, "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
    if missing:
        return CheckResult.failed("supabase", t0, missing, FailureKind.CONFIG_MISSING)

    key = env.get("SUPABASE_SERVICE_ROLE_KEY")
    url = f"{env.get('SUPABASE_URL').rstrip('/')}/rest/v1/{cfg.supabase_table}"
    payload = {"checked_at": datetime.now(timezone.utc).isoformat(), "status": "ok"}
    try:
        async with _http_client(cfg) as client:
            resp = await client.post(
                url,
                json=payload,
                headers={
                    "apikey": key,
                    "Authorization": f"Bearer {key}",
                    "Prefer": "return=minimal",
                },
            )
        if not resp.is_success:
            return CheckResult.failed(
                "supabase", t0, f"Insert failed: {_api_error(resp)}",
                FailureKind.PROBE_BAD_RESPONSE,
            )
        return CheckResult.passed("supabase", t0, "Inserted dummy record")
    except Exception as e:
        return _exception_result("supabase", t0, e)


async def check_stripe(env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """Retrieve the configured price and the product behind it."""
    t0 = time.perf_counter()
    missing = _missing(env, "STRIPE_SECRET_KEY", "STRIPE_PRICE_RESPONSE")
    if missing:
        return CheckResult.failed("stripe", t0, missing, FailureKind.CONFIG_MISSING)

    headers = {
        "Authorization": f"Bearer {env.get('STRIPE_SECRET_KEY')}",
        "Stripe-Version": cfg.stripe_api_version,
    }
    try:
        async with _http_client(cfg, base_url=cfg.stripe_api_base, headers=headers) as client:
            resp = await client.get(f"/v1/prices/{env.get('STRIPE_PRICE_RESPONSE')}")
            if resp.status_code >= 400:
                return CheckResult.failed(
                    "stripe", t0, _api_error(resp), FailureKind.PROBE_BAD_RESPONSE,
                )
            product = resp.json().get("product")
            if isinstance(product, str):
                resp = await client.get(f"/v1/products/{product}")
                if resp.status_code >= 400:
                    return CheckResult.failed(
                        "stripe", t0, _api_error(resp), FailureKind.PROBE_BAD_RESPONSE,
                    )
                product = resp.json()

        if not isinstance(product, dict) or not product.get("id"):
            return CheckResult.failed(
                "stripe", t0, "No product returned", FailureKind.PROBE_BAD_RESPONSE,
            )
        return CheckResult.passed("stripe", t0, f"Product {product['id']}")
    except Exception as e:
        return _exception_result("stripe", t0, e)


async def check_sendgrid(env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """Authenticated GET of the account profile — sends no email."""
    t0 = time.perf_counter()
    missing = _missing(env, "SENDGRID_API_KEY")
    if missing:
        return CheckResult.failed("sendgrid", t0, missing, FailureKind.CONFIG_MISSING)
    try:
        async with _http_client(cfg, base_url=cfg.sendgrid_api_base) as client:
            resp = await client.get(
                "/v3/user/profile",
                headers={"Authorization": f"Bearer {env.get('SENDGRID_API_KEY')}"},
            )
        if resp.status_code >= 400:
            return CheckResult.failed(
                "sendgrid", t0, f"Status {resp.status_code}",
                FailureKind.PROBE_BAD_RESPONSE,
            )
        return CheckResult.passed("sendgrid", t0, "Email API reachable")
    except Exception as e:
        return _exception_result("sendgrid", t0, e)


async def check_site(env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """GET the production URL. Only an exact 200 passes; redirects are not followed."""
    t0 = time.perf_counter()
    missing = _missing(env, "SITE_URL")
    if missing:
        return CheckResult.failed("site", t0, missing, FailureKind.CONFIG_MISSING)
    try:
        async with _http_client(cfg, follow_redirects=False) as client:
            resp = await client.get(env.get("SITE_URL"))
        detail = f"HTTP {resp.status_code}"
        if resp.status_code != 200:
            return CheckResult.failed("site", t0, detail, FailureKind.PROBE_BAD_RESPONSE)
        return CheckResult.passed("site", t0, detail)
    except Exception as e:
        return _exception_result("site", t0, e)


# Report order
PROBES: tuple[ProbeSpec, ...] = (
    ProbeSpec("openai", "OpenAI", check_openai),
    ProbeSpec("supabase", "Supabase", check_supabase),
    ProbeSpec("stripe", "Stripe", check_stripe),
    ProbeSpec("sendgrid", "SendGrid", check_sendgrid),
    ProbeSpec("site", "SITE_URL", check_site),
)
