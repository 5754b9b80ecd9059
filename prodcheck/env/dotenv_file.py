"""Local ``KEY=VALUE`` fallback file."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


def load_env_file(path: Path | str) -> dict[str, str]:
    """Parse a dotenv file into a dict, skipping keys without a value.

    Blank lines and ``#`` comments produce nothing; values are split on the
    first ``=`` and surrounding quotes are stripped. ``${VAR}`` references
    are kept literally. A missing or unreadable file yields an empty dict.
    """
    path = Path(path)
    if not path.is_file():
        logger.info("Fallback env file not found: %s", path)
        return {}

    try:
        raw = dotenv_values(path, encoding="utf-8", interpolate=False)
    except (OSError, UnicodeDecodeError) as e:
        logger.info("Could not read %s: %s", path, e)
        return {}

    return {k: v for k, v in raw.items() if k and v}
