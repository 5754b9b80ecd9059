from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prodcheck.config import Settings
    from prodcheck.env.resolver import ResolvedEnv


class FailureKind(str, Enum):
    RESOLUTION_SOURCE_UNAVAILABLE = "resolution_source_unavailable"
    CONFIG_MISSING = "config_missing"
    PROBE_NETWORK_ERROR = "probe_network_error"
    PROBE_BAD_RESPONSE = "probe_bad_response"
    PROBE_EXCEPTION = "probe_exception"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one probe. ``failure`` is None exactly when ``ok``."""

    name: str
    ok: bool
    latency_ms: int
    detail: str = ""
    failure: FailureKind | None = None

    @classmethod
    def passed(cls, name: str, t0: float, detail: str = "") -> CheckResult:
        return cls(name=name, ok=True, latency_ms=elapsed_ms(t0), detail=detail)

    @classmethod
    def failed(
        cls, name: str, t0: float, detail: str, kind: FailureKind,
    ) -> CheckResult:
        return cls(
            name=name, ok=False, latency_ms=elapsed_ms(t0),
            detail=detail, failure=kind,
        )


ProbeFunc = Callable[["ResolvedEnv", "Settings"], Awaitable[CheckResult]]


@dataclass(frozen=True)
class ProbeSpec:
    """A named probe in the registry."""

    name: str
    title: str
    run: ProbeFunc


def elapsed_ms(t0: float) -> int:
    """Whole milliseconds since ``t0`` (a ``time.perf_counter()`` reading)."""
    return int((time.perf_counter() - t0) * 1000)
