"""Entry point for the production-readiness check."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from prodcheck.config import Settings, settings
from prodcheck.env.resolver import EnvResolver
from prodcheck.health.runner import run_probes
from prodcheck.report import Reporter, build_report

logger = logging.getLogger(__name__)


def run_check(
    resolver: EnvResolver,
    reporter: Reporter,
    cfg: Settings | None = None,
    as_json: bool = False,
) -> int:
    """Resolve the environment, run every probe and report. Returns the exit code."""
    cfg = cfg or settings

    if not as_json:
        reporter.console.print(
            "🔍 Loading environment variables...\n", highlight=False, soft_wrap=True,
        )
    env = resolver.resolve()

    if not as_json:
        if resolver.netlify_count:
            reporter.console.print("✅ Loaded environment variables from Netlify\n", soft_wrap=True)
        elif resolver.netlify_count == 0:
            reporter.netlify_hint()

    results = asyncio.run(run_probes(env, cfg))

    if as_json:
        report = build_report(env, results)
        reporter.json(report)
        return 0 if report.ok else 1

    return 0 if reporter.render(env, results) else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="prod-check",
        description="Verify deploy env vars and live integrations before a production deploy.",
    )
    parser.add_argument("--env-file", help="Fallback KEY=VALUE file (default: .env)")
    parser.add_argument(
        "--skip-netlify", action="store_true", help="Do not query the Netlify CLI",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print a machine-readable report",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    console = Console(soft_wrap=True)
    try:
        resolver = EnvResolver(
            env_file=args.env_file,
            use_netlify=False if args.skip_netlify else None,
        )
        return run_check(resolver, Reporter(console), as_json=args.json)
    except Exception:
        logger.exception("Unexpected error in readiness check")
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
