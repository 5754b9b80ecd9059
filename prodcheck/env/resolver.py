"""Environment resolution — builds one immutable view of the deploy config.

Sources are consulted in order and the first writer for a key wins:

1. the process environment
2. the Netlify CLI (if the project is, or can be, linked)
3. the local fallback file
4. alias mapping for renamed variables
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from prodcheck.config import ENV_ALIASES, REQUIRED_VARS, Settings, settings
from prodcheck.env.dotenv_file import load_env_file
from prodcheck.env.netlify import NetlifyCLI

logger = logging.getLogger(__name__)


class EnvSource(str, Enum):
    PROCESS = "process"
    NETLIFY = "netlify"
    DOTENV = "dotenv"
    ALIAS = "alias"


@dataclass(frozen=True)
class ResolvedEnv:
    """Read-only variable values plus where each one came from."""

    values: Mapping[str, str] = field(default_factory=dict)
    sources: Mapping[str, EnvSource] = field(default_factory=dict)
    required: tuple[str, ...] = REQUIRED_VARS
    # Sources that were consulted but could not be used, with the reason
    unavailable: Mapping[EnvSource, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))
        object.__setattr__(self, "unavailable", MappingProxyType(dict(self.unavailable)))

    def get(self, name: str, default: str = "") -> str:
        return self.values.get(name, default)

    def is_present(self, name: str) -> bool:
        return bool(self.values.get(name, "").strip())

    def status(self) -> dict[str, bool]:
        """Presence flag for each required variable, in declared order."""
        return {name: self.is_present(name) for name in self.required}

    def missing(self) -> list[str]:
        return [name for name, present in self.status().items() if not present]

    def count_from(self, source: EnvSource) -> int:
        return sum(1 for s in self.sources.values() if s == source)


class _Builder:
    """Accumulates values; a key is only ever set once."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.sources: dict[str, EnvSource] = {}

    def offer(self, items: Mapping[str, str], source: EnvSource) -> int:
        added = 0
        for key, value in items.items():
            if not value or key in self.values:
                continue
            self.values[key] = value
            self.sources[key] = source
            added += 1
        return added

    def missing(self, names: Iterable[str]) -> list[str]:
        return [n for n in names if n not in self.values]


def apply_aliases(
    values: Mapping[str, str],
    aliases: Mapping[str, str] = ENV_ALIASES,
) -> dict[str, str]:
    """Return canonical-name values derived from aliases whose canonical is unset."""
    mapped: dict[str, str] = {}
    for alias, canonical in aliases.items():
        if values.get(alias) and not values.get(canonical):
            mapped[canonical] = values[alias]
    return mapped


class EnvResolver:
    """Resolves the required variables from every available source.

    ``resolve()`` never raises: a source that fails just contributes nothing.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        netlify: NetlifyCLI | None = None,
        env_file: Path | str | None = None,
        use_netlify: bool | None = None,
        config: Settings | None = None,
        required: tuple[str, ...] = REQUIRED_VARS,
        aliases: Mapping[str, str] = ENV_ALIASES,
    ) -> None:
        cfg = config or settings
        self._environ = os.environ if environ is None else environ
        self._use_netlify = cfg.netlify_enabled if use_netlify is None else use_netlify
        self._netlify = netlify or NetlifyCLI(
            netlify_cmd=cfg.netlify_cli_path,
            git_cmd=cfg.git_cli_path,
            timeout=cfg.cli_timeout_seconds,
            site_keywords=cfg.site_keywords,
        )
        self._env_file = Path(env_file or cfg.fallback_env_file)
        self._required = required
        self._aliases = aliases
        # None until resolve() has asked Netlify for something
        self.netlify_count: int | None = None
        self._unavailable: dict[EnvSource, str] = {}

    @property
    def _known_names(self) -> list[str]:
        return [*self._required, *self._aliases]

    def resolve(self) -> ResolvedEnv:
        builder = _Builder()
        self._unavailable = {}

        builder.offer(
            {n: self._environ[n] for n in self._known_names if n in self._environ},
            EnvSource.PROCESS,
        )

        from_netlify = self._from_netlify(builder.missing(self._required))
        builder.offer(from_netlify, EnvSource.NETLIFY)

        if not from_netlify:
            logger.info("Netlify contributed no variables; trying %s", self._env_file)
        if not from_netlify or builder.missing(self._required):
            added = builder.offer(self._from_file(), EnvSource.DOTENV)
            logger.info("Loaded %d variables from %s", added, self._env_file)

        builder.offer(apply_aliases(builder.values, self._aliases), EnvSource.ALIAS)

        return ResolvedEnv(
            builder.values, builder.sources, self._required, self._unavailable,
        )

    def _from_netlify(self, names: list[str]) -> dict[str, str]:
        if not self._use_netlify or not names:
            return {}
        self.netlify_count = 0
        try:
            if not self._netlify.ensure_linked():
                self._unavailable[EnvSource.NETLIFY] = "site not linked"
                return {}
            values = self._netlify.fetch_env(names)
        except Exception as e:
            logger.info("Netlify source unavailable: %s", e)
            self._unavailable[EnvSource.NETLIFY] = str(e)
            return {}
        self.netlify_count = len(values)
        logger.info("Loaded %d variables from Netlify", len(values))
        return values

    def _from_file(self) -> dict[str, str]:
        if not self._env_file.is_file():
            self._unavailable[EnvSource.DOTENV] = f"{self._env_file} not found"
            return {}
        try:
            values = load_env_file(self._env_file)
        except Exception as e:
            logger.info("Fallback env file unusable: %s", e)
            self._unavailable[EnvSource.DOTENV] = str(e)
            return {}
        known = set(self._known_names)
        return {k: v for k, v in values.items() if k in known}
