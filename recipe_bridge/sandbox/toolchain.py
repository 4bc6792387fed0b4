"""Sources for the generator script and its data files.

The source is chosen once, when the sandbox is provisioned: either the
builder script of the open local checkout, or the published one.
"""

from __future__ import annotations

import base64
import logging
import posixpath
from typing import Iterable, Optional, Protocol

from recipe_bridge import config
from recipe_bridge.sandbox.base import InterpreterSandbox

_LOGGER = logging.getLogger(__name__)


class RawFileFetcher(Protocol):
    def fetch_raw_file(self, owner: str, repo: str, ref: str, path: str) -> str:
        ...


class OverrideScriptSource(Protocol):
    def get_builder_override_script(self) -> Optional[str]:
        ...


def sandbox_path(repo_relative: str) -> str:
    return posixpath.join(config.SANDBOX_REPO_PATH, repo_relative)


def stage_encoded(sandbox: InterpreterSandbox, path: str, content: str) -> None:
    """Write ``content`` to virtual ``path`` as a base64 payload.

    The text crosses the sandbox boundary byte for byte.
    """
    payload = base64.b64encode(content.encode("utf-8")).decode("ascii")
    sandbox.write_encoded(path, payload)


class Toolchain(Protocol):
    name: str

    def install(
        self,
        sandbox: InterpreterSandbox,
        fetcher: RawFileFetcher,
        owner: str,
        repo: str,
    ) -> None:
        """Place the generator and its data files under ``/repo``."""


def _fetch_into(
    sandbox: InterpreterSandbox,
    fetcher: RawFileFetcher,
    owner: str,
    repo: str,
    paths: Iterable[str],
) -> None:
    for path in paths:
        _LOGGER.debug("Fetching toolchain file %s", path)
        content = fetcher.fetch_raw_file(owner, repo, config.TOOLCHAIN_REF, path)
        sandbox.write_file(sandbox_path(path), content)


class RemoteToolchain:
    """Generator script and data files from the published repository."""

    name = "remote"

    def install(
        self,
        sandbox: InterpreterSandbox,
        fetcher: RawFileFetcher,
        owner: str,
        repo: str,
    ) -> None:
        _fetch_into(sandbox, fetcher, owner, repo, config.TOOLCHAIN_FILES)


class LocalOverrideToolchain:
    """Generator script from the local checkout; data files stay remote."""

    name = "local-override"

    def __init__(self, script: str) -> None:
        self._script = script

    def install(
        self,
        sandbox: InterpreterSandbox,
        fetcher: RawFileFetcher,
        owner: str,
        repo: str,
    ) -> None:
        stage_encoded(
            sandbox, sandbox_path(config.BUILDER_SCRIPT_PATH), self._script
        )
        _fetch_into(sandbox, fetcher, owner, repo, config.TOOLCHAIN_DATA_FILES)


def select_toolchain(source: Optional[OverrideScriptSource]) -> Toolchain:
    """Prefer the local checkout's builder script when one is readable."""
    script = source.get_builder_override_script() if source else None
    if script:
        _LOGGER.info("Using local builder script override")
        return LocalOverrideToolchain(script)
    return RemoteToolchain()
