"""Netlify CLI adapter — link status, auto-link and ``env:get``.

Every call goes through ``subprocess.run`` (no shell). Failures surface as
``NetlifyError`` so the resolver can treat the whole source as unavailable.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Iterable, Sequence
from typing import Any

logger = logging.getLogger(__name__)

# Output that `netlify env:get` prints instead of a value
_ERROR_MARKERS = ("Error", "not found")


class NetlifyError(Exception):
    """Raised when a Netlify (or git) CLI call fails or returns garbage."""


class NetlifyCLI:
    """Thin wrapper over the ``netlify`` and ``git`` command-line tools."""

    def __init__(
        self,
        netlify_cmd: str = "netlify",
        git_cmd: str = "git",
        timeout: int = 30,
        site_keywords: Sequence[str] = ("audit", "response"),
    ) -> None:
        self._netlify = netlify_cmd
        self._git = git_cmd
        self._timeout = timeout
        self._keywords = [k.lower() for k in site_keywords]

    def _run(self, cmd: list[str]) -> str:
        """Run a command and return its stripped stdout."""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise NetlifyError(f"Command not found: {cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise NetlifyError(f"{' '.join(cmd)} timed out after {self._timeout}s") from e

        if result.returncode != 0:
            raise NetlifyError(
                f"{' '.join(cmd)} exited {result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout.strip()

    def _run_json(self, cmd: list[str]) -> Any:
        output = self._run(cmd)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise NetlifyError(f"{' '.join(cmd)} returned invalid JSON") from e

    # ── Primitive operations ─────────────────────────────────────────────

    def is_linked(self) -> bool:
        """True if the working directory is linked to a Netlify site."""
        status = self._run_json([self._netlify, "status", "--json"])
        site_info = status.get("siteInfo") if isinstance(status, dict) else None
        return bool(site_info and site_info.get("id"))

    def git_remote_url(self) -> str:
        return self._run([self._git, "remote", "get-url", "origin"])

    def link_by_git(self) -> None:
        self._run([self._netlify, "link", "--git"])

    def list_sites(self) -> list[dict[str, Any]]:
        sites = self._run_json([self._netlify, "sites:list", "--json"])
        if not isinstance(sites, list):
            raise NetlifyError("sites:list did not return a list")
        return [s for s in sites if isinstance(s, dict)]

    def link_by_id(self, site_id: str) -> None:
        self._run([self._netlify, "link", "--id", site_id])

    def get_env(self, name: str) -> str | None:
        """Return the site's value for ``name``, or None if unset/unreadable."""
        try:
            value = self._run([self._netlify, "env:get", name])
        except NetlifyError as e:
            logger.debug("netlify env:get %s failed: %s", name, e)
            return None
        if not value or any(marker in value for marker in _ERROR_MARKERS):
            return None
        return value

    # ── Composite operations ─────────────────────────────────────────────

    def match_sites(self, sites: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Sites whose name contains one of the configured keywords."""
        matches = []
        for site in sites:
            name = str(site.get("name") or "").lower()
            if name and any(k in name for k in self._keywords):
                matches.append(site)
        return matches

    def ensure_linked(self) -> bool:
        """Link the project if needed. Never raises.

        Tries ``netlify link --git`` first, then a keyword match against the
        account's sites — only auto-linking when exactly one site matches.
        """
        try:
            if self.is_linked():
                return True
        except NetlifyError as e:
            logger.debug("Netlify status unavailable: %s", e)

        try:
            remote = self.git_remote_url()
        except NetlifyError as e:
            logger.info("No git remote to auto-link Netlify site: %s", e)
            return False

        try:
            self.link_by_git()
            logger.info("Linked Netlify site via git remote %s", remote)
            return True
        except NetlifyError as e:
            logger.debug("netlify link --git failed: %s", e)

        try:
            candidates = self.match_sites(self.list_sites())
        except NetlifyError as e:
            logger.info("Could not list Netlify sites: %s", e)
            return False

        if len(candidates) != 1:
            logger.info(
                "Found %d Netlify sites matching %s — not auto-linking",
                len(candidates), self._keywords,
            )
            return False

        site = candidates[0]
        try:
            self.link_by_id(str(site.get("id", "")))
        except NetlifyError as e:
            logger.info("netlify link --id %s failed: %s", site.get("id"), e)
            return False
        logger.info("Linked Netlify site %s", site.get("name"))
        return True

    def fetch_env(self, names: Iterable[str]) -> dict[str, str]:
        """Fetch each variable via ``env:get``; unreadable ones are skipped."""
        values: dict[str, str] = {}
        for name in names:
            value = self.get_env(name)
            if value is not None:
                values[name] = value
        return values
