"""Health subsystem — probe registry and concurrent runner."""

from .models import CheckResult, FailureKind, ProbeSpec
from .probes import PROBES
from .runner import run_probes
