"""Check runner — fans every probe out concurrently and waits for all of them.

Uses ``asyncio.gather(..., return_exceptions=True)`` so one probe blowing up
never cancels or hides its siblings. Each probe is attempted exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from prodcheck.config import Settings, settings
from prodcheck.env.resolver import ResolvedEnv
from prodcheck.health.models import CheckResult, FailureKind, ProbeSpec
from prodcheck.health.probes import PROBES

logger = logging.getLogger(__name__)


async def _run_one(probe: ProbeSpec, env: ResolvedEnv, cfg: Settings) -> CheckResult:
    """Run a single probe, turning timeouts and stray exceptions into results."""
    t0 = time.perf_counter()
    timeout = cfg.probe_timeout_seconds or None
    try:
        return await asyncio.wait_for(probe.run(env, cfg), timeout=timeout)
    except asyncio.TimeoutError:
        return CheckResult.failed(
            probe.name, t0, f"Timed out after {cfg.probe_timeout_seconds:g}s",
            FailureKind.PROBE_NETWORK_ERROR,
        )
    except Exception as e:
        logger.exception("Probe %s raised", probe.name)
        return CheckResult.failed(
            probe.name, t0, f"{type(e).__name__}: {e}", FailureKind.PROBE_EXCEPTION,
        )


async def run_probes(
    env: ResolvedEnv,
    cfg: Settings | None = None,
    probes: Sequence[ProbeSpec] = PROBES,
) -> dict[str, CheckResult]:
    """Run all probes concurrently and return results keyed by probe name, in order."""
    cfg = cfg or settings
    outcomes = await asyncio.gather(
        *(_run_one(p, env, cfg) for p in probes),
        return_exceptions=True,
    )

    results: dict[str, CheckResult] = {}
    for probe, outcome in zip(probes, outcomes):
        if isinstance(outcome, BaseException):
            # Only reachable for non-Exception errors such as cancellation
            outcome = CheckResult(
                name=probe.name, ok=False, latency_ms=0,
                detail=f"{type(outcome).__name__}: {outcome}",
                failure=FailureKind.PROBE_EXCEPTION,
            )
        results[probe.name] = outcome
        logger.debug(
            "Check %s: %s (%dms)", probe.name, "ok" if outcome.ok else "failed",
            outcome.latency_ms,
        )
    return results
