"""Console reporter and final verdict."""

from __future__ import annotations

import math
from collections.abc import Mapping

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from prodcheck.env.resolver import ResolvedEnv
from prodcheck.health.models import CheckResult, FailureKind
from prodcheck.health.probes import PROBES

_OK = "✅"
_FAIL = "❌"

_TITLES = {p.name: p.title for p in PROBES}


# ── JSON report ──────────────────────────────────────────────────────────────


class CheckReport(BaseModel):
    name: str
    ok: bool
    latency_ms: int
    detail: str
    failure: str | None = None


class SourceFailure(BaseModel):
    source: str
    detail: str
    kind: str = FailureKind.RESOLUTION_SOURCE_UNAVAILABLE.value


class ReadinessReport(BaseModel):
    ok: bool
    env: dict[str, bool]
    sources: dict[str, str]
    missing: list[str]
    checks: list[CheckReport]
    average_latency_ms: int
    source_failures: list[SourceFailure] = []


# ── Aggregates ───────────────────────────────────────────────────────────────


def average_latency(results: Mapping[str, CheckResult]) -> int:
    """Mean probe latency, rounded half up. 0 when there are no results."""
    if not results:
        return 0
    mean = sum(r.latency_ms for r in results.values()) / len(results)
    return int(math.floor(mean + 0.5))


def is_ready(env: ResolvedEnv, results: Mapping[str, CheckResult]) -> bool:
    return not env.missing() and all(r.ok for r in results.values())


def build_report(env: ResolvedEnv, results: Mapping[str, CheckResult]) -> ReadinessReport:
    return ReadinessReport(
        ok=is_ready(env, results),
        env=env.status(),
        sources={k: v.value for k, v in env.sources.items() if k in env.required},
        missing=env.missing(),
        checks=[
            CheckReport(
                name=r.name, ok=r.ok, latency_ms=r.latency_ms, detail=r.detail,
                failure=r.failure.value if r.failure else None,
            )
            for r in results.values()
        ],
        average_latency_ms=average_latency(results),
        source_failures=[
            SourceFailure(source=source.value, detail=detail)
            for source, detail in env.unavailable.items()
        ],
    )


# ── Console rendering ────────────────────────────────────────────────────────


def format_env_line(name: str, present: bool) -> str:
    return f"{_OK if present else _FAIL} {'Found' if present else 'Missing'}: {name}"


def format_check_line(title: str, result: CheckResult) -> str:
    line = (
        f"{_OK if result.ok else _FAIL} {title}: "
        f"{'OK' if result.ok else 'FAILED'} ({result.latency_ms} ms)"
    )
    if result.detail:
        line += f" - {result.detail}"
    return line


class Reporter:
    """Prints the readiness report to a rich Console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(soft_wrap=True)

    def _line(self, text: str = "") -> None:
        self.console.print(escape(text), highlight=False, soft_wrap=True)

    def env_status(self, env: ResolvedEnv) -> None:
        self._line("== Environment Variables ==")
        for name, present in env.status().items():
            self._line(format_env_line(name, present))

    def checks(self, results: Mapping[str, CheckResult]) -> None:
        self._line()
        self._line("== Integration Checks ==")
        for name, result in results.items():
            self._line(format_check_line(_TITLES.get(name, name), result))

    def summary(self, env: ResolvedEnv, results: Mapping[str, CheckResult]) -> bool:
        """Print averages, missing keys and the banner; return the verdict."""
        self._line()
        self._line(f"Average response time: {average_latency(results)} ms")

        missing = env.missing()
        if missing:
            self._line()
            self._line(f"Missing or invalid keys: {', '.join(missing)}")

        ready = is_ready(env, results)
        self._line()
        if ready:
            self.console.print(Panel(
                f"{_OK} All environment variables and integrations are working "
                "— ready for production deploy.",
                style="bold green",
            ), soft_wrap=False)
        else:
            self.console.print(Panel(
                f"{_FAIL} One or more checks failed. See details above.",
                style="bold red",
            ), soft_wrap=False)
        return ready

    def render(self, env: ResolvedEnv, results: Mapping[str, CheckResult]) -> bool:
        self.env_status(env)
        self.checks(results)
        return self.summary(env, results)

    def netlify_hint(self) -> None:
        for text in (
            "⚠️  Netlify site not linked or unable to fetch environment variables.",
            "",
            "   To test with Netlify environment variables:",
            "   1. Run: netlify link",
            "   2. Select your site from the list",
            "   3. Run this check again: prod-check",
            "",
            "   Trying .env file as fallback...",
            "",
        ):
            self._line(text)

    def json(self, report: ReadinessReport) -> None:
        self.console.print_json(report.model_dump_json())
