from __future__ import annotations

"""Helpers for loading environment configuration."""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

from recipe_bridge import config

_ENV_LOADED = False

_LOGGER = logging.getLogger(__name__)


def load_dotenv(dotenv_path: Union[str, Path] = ".env") -> None:
    """Load environment variables from a simple ``.env`` file if present."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    path = Path(dotenv_path)
    if path.exists():
        for line in path.read_text().splitlines():
            parsed = _parse_line(line)
            if parsed:
                key, value = parsed
                os.environ.setdefault(key, value)
        _LOGGER.debug("Loaded environment defaults from %s", path)

    _ENV_LOADED = True


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if "=" not in stripped:
        return None

    key, value = stripped.split("=", 1)
    return (key.strip(), value.strip().strip("'\""))


def _read(name: str) -> Optional[str]:
    load_dotenv()
    value = os.environ.get(name, "").strip()
    return value or None


def github_token() -> Optional[str]:
    """Return the optional bearer token attached to GitHub requests."""
    return _read("GITHUB_TOKEN")


def repository_coordinates() -> Tuple[str, str, str]:
    """Return ``(owner, repo, branch)`` with environment overrides applied."""
    return (
        _read("RECIPE_BRIDGE_REPO_OWNER") or config.REPO_OWNER,
        _read("RECIPE_BRIDGE_REPO_NAME") or config.REPO_NAME,
        _read("RECIPE_BRIDGE_REPO_BRANCH") or config.REPO_BRANCH,
    )


def state_dir() -> Path:
    """Directory holding the autosave and snapshot slots."""
    raw = _read("RECIPE_BRIDGE_STATE_DIR") or config.DEFAULT_STATE_DIR
    return Path(raw).expanduser()
