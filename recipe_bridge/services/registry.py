"""Process-scoped wiring of the acquisition and build services."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from recipe_bridge.clients.github_client import GitHubClient
from recipe_bridge.sandbox.base import InterpreterSandbox
from recipe_bridge.sandbox.local import LocalInterpreterSandbox
from recipe_bridge.sandbox.orchestrator import BuildOrchestrator
from recipe_bridge.services.drift import PublishDriftDetector
from recipe_bridge.storage.autosave import AutosaveStore, DebouncedAutosave
from recipe_bridge.storage.kv_store import KeyValueStore, LocalKeyValueStore
from recipe_bridge.storage.local_directory import (DirectoryPicker,
                                                   LocalDirectoryBridge)
from recipe_bridge.storage.snapshot_cache import RemoteRepositoryCache
from recipe_bridge.utils.env import state_dir

_LOGGER = logging.getLogger(__name__)


class ServiceRegistry:
    """Create each service on first use and share it for the process.

    Any service may be supplied up front, which is how tests substitute
    fakes. :meth:`dispose` flushes pending autosaves and closes the sandbox.
    """

    def __init__(
        self,
        *,
        github_client: Optional[GitHubClient] = None,
        kv_store: Optional[KeyValueStore] = None,
        autosave_store: Optional[AutosaveStore] = None,
        autosave: Optional[DebouncedAutosave] = None,
        remote_cache: Optional[RemoteRepositoryCache] = None,
        local_bridge: Optional[LocalDirectoryBridge] = None,
        drift_detector: Optional[PublishDriftDetector] = None,
        orchestrator: Optional[BuildOrchestrator] = None,
        picker: Optional[DirectoryPicker] = None,
        sandbox_factory: Optional[Callable[[], InterpreterSandbox]] = None,
        state_path: Optional[Path] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._github_client = github_client
        self._kv_store = kv_store
        self._autosave_store = autosave_store
        self._autosave = autosave
        self._remote_cache = remote_cache
        self._local_bridge = local_bridge
        self._drift_detector = drift_detector
        self._orchestrator = orchestrator
        self._picker = picker
        self._sandbox_factory = sandbox_factory or LocalInterpreterSandbox
        self._state_path = state_path
        self._disposed = False

    def _lazy(self, attribute: str, build: Callable[[], Any]) -> Any:
        with self._lock:
            value = getattr(self, attribute)
            if value is None:
                value = build()
                setattr(self, attribute, value)
            return value

    @property
    def github_client(self) -> GitHubClient:
        return self._lazy("_github_client", GitHubClient)

    @property
    def kv_store(self) -> KeyValueStore:
        return self._lazy(
            "_kv_store",
            lambda: LocalKeyValueStore(self._state_path or state_dir()),
        )

    @property
    def autosave_store(self) -> AutosaveStore:
        return self._lazy(
            "_autosave_store", lambda: AutosaveStore(self.kv_store)
        )

    @property
    def autosave(self) -> DebouncedAutosave:
        return self._lazy(
            "_autosave", lambda: DebouncedAutosave(self.autosave_store)
        )

    @property
    def remote_cache(self) -> RemoteRepositoryCache:
        return self._lazy(
            "_remote_cache",
            lambda: RemoteRepositoryCache(self.github_client, self.kv_store),
        )

    @property
    def local_bridge(self) -> LocalDirectoryBridge:
        return self._lazy(
            "_local_bridge", lambda: LocalDirectoryBridge(self._picker)
        )

    @property
    def drift_detector(self) -> PublishDriftDetector:
        return self._lazy("_drift_detector", PublishDriftDetector)

    @property
    def orchestrator(self) -> BuildOrchestrator:
        return self._lazy(
            "_orchestrator",
            lambda: BuildOrchestrator(
                self._sandbox_factory,
                self.github_client,
                override_source=self.local_bridge,
            ),
        )

    def dispose(self) -> None:
        """Flush pending writes and release the sandbox; safe to repeat."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            autosave, orchestrator = self._autosave, self._orchestrator
        if autosave is not None:
            autosave.flush()
        if orchestrator is not None:
            orchestrator.close()
        _LOGGER.debug("Service registry disposed")
