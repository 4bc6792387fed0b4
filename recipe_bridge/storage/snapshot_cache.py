"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

TTL cache of the remote recipe listing with stale-on-error fallback.

A snapshot is fetched with two independent requests issued concurrently:
the latest commit (for display only) and the branch head followed by its
recursive tree. Expired snapshots are kept in the store, so a failed
refresh can still answer with the last listing that was seen.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, List, Mapping, Optional, Protocol

from recipe_bridge import config
from recipe_bridge.errors import TransientFetchFailure
from recipe_bridge.models.repository import (CacheStatus,
                                             RemoteFileDescriptor,
                                             RepositoryInfo,
                                             RepositorySnapshot,
                                             is_recipe_path)
from recipe_bridge.storage.kv_store import KeyValueStore
from recipe_bridge.utils.env import repository_coordinates

_LOGGER = logging.getLogger(__name__)


class RepositoryListingClient(Protocol):
    """The subset of :class:`GitHubClient` the cache depends on."""

    def get_branch(self, owner: str, repo: str, branch: str) -> Mapping[str, Any]:
        ...

    def get_latest_commit(
        self, owner: str, repo: str, branch: str
    ) -> Mapping[str, Any]:
        ...

    def get_tree(
        self, owner: str, repo: str, tree_sha: str
    ) -> List[Mapping[str, Any]]:
        ...


def snapshot_key(owner: str, repo: str, branch: str) -> str:
    return f"{config.SNAPSHOT_KEY}:{owner}/{repo}@{branch}"


class RemoteRepositoryCache:
    """Serve recipe listings from the store, refreshing them once per TTL."""

    def __init__(
        self,
        client: RepositoryListingClient,
        store: KeyValueStore,
        *,
        ttl_seconds: float = config.SNAPSHOT_TTL_SECONDS,
        time_fn: Optional[Callable[[], float]] = None,
        executor_factory: Optional[Callable[[], Executor]] = None,
    ) -> None:
        self._client = client
        self._store = store
        self._ttl = float(ttl_seconds)
        self._time_fn = time_fn or time.time
        self._executor_factory = executor_factory or (
            lambda: ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="repo-fetch"
            )
        )

    def get_snapshot(
        self,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> RepositorySnapshot:
        """Return the listing for ``owner/repo@branch``.

        Raises :class:`TransientFetchFailure` only when the refresh fails and
        no earlier snapshot exists for the triple.
        """
        owner, repo, branch = _resolve(owner, repo, branch)
        key = snapshot_key(owner, repo, branch)
        cached = self._load(key)
        now = self._time_fn()

        if cached is not None and not cached.is_expired(now):
            _LOGGER.debug("Using cached repository listing for %s", key)
            return cached

        _LOGGER.info("Fetching repository listing for %s", key)
        try:
            snapshot = self._fetch(owner, repo, branch)
        except TransientFetchFailure as exc:
            if cached is None:
                raise
            _LOGGER.warning(
                "Refresh of %s failed (%s); serving expired listing", key, exc
            )
            return dataclasses.replace(cached, stale=True)

        self._save(key, snapshot)
        return snapshot

    def invalidate(self) -> None:
        """Drop every cached snapshot."""
        prefix = f"{config.SNAPSHOT_KEY}:"
        for key in self._store.keys():
            if key.startswith(prefix):
                self._store.delete(key)

    def cache_status(
        self,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> CacheStatus:
        owner, repo, branch = _resolve(owner, repo, branch)
        cached = self._load(snapshot_key(owner, repo, branch))
        return CacheStatus.from_snapshot(cached, self._time_fn())

    def _fetch(self, owner: str, repo: str, branch: str) -> RepositorySnapshot:
        with self._executor_factory() as executor:
            info_future = executor.submit(
                self._fetch_repository_info, owner, repo, branch
            )
            tree_future = executor.submit(
                self._fetch_descriptors, owner, repo, branch
            )
            files = tree_future.result()
            repository_info = info_future.result()

        fetched_at = self._time_fn()
        return RepositorySnapshot(
            files=tuple(files),
            repository_info=repository_info,
            fetched_at=fetched_at,
            expires_at=fetched_at + self._ttl,
        )

    def _fetch_repository_info(
        self, owner: str, repo: str, branch: str
    ) -> Optional[RepositoryInfo]:
        try:
            payload = self._client.get_latest_commit(owner, repo, branch)
            commit = payload["commit"]
            return RepositoryInfo(
                message=str(commit["message"]),
                author=str(commit["author"]["name"]),
                date=str(commit["author"]["date"]),
                sha=str(payload["sha"]),
                html_url=str(payload.get("html_url", "")),
            )
        except (TransientFetchFailure, KeyError, TypeError) as exc:
            _LOGGER.error("Error fetching repository info: %s", exc)
            return None

    def _fetch_descriptors(
        self, owner: str, repo: str, branch: str
    ) -> List[RemoteFileDescriptor]:
        branch_payload = self._client.get_branch(owner, repo, branch)
        try:
            head_sha = str(branch_payload["commit"]["sha"])
        except (KeyError, TypeError) as exc:
            raise TransientFetchFailure(
                f"Branch {branch} of {owner}/{repo} has no head commit"
            ) from exc

        descriptors: List[RemoteFileDescriptor] = []
        for item in self._client.get_tree(owner, repo, head_sha):
            path = item.get("path")
            if item.get("type") != "blob" or not isinstance(path, str):
                continue
            if not is_recipe_path(path):
                continue
            descriptors.append(
                RemoteFileDescriptor(
                    path=path,
                    content_hash=str(item.get("sha", "")),
                    web_url=(
                        f"{config.GITHUB_WEB_URL}/{owner}/{repo}"
                        f"/blob/{branch}/{path}"
                    ),
                    download_url=(
                        f"{config.RAW_CONTENT_URL}/{owner}/{repo}"
                        f"/{branch}/{path}"
                    ),
                    api_url=item.get("url"),
                )
            )
        return descriptors

    def _load(self, key: str) -> Optional[RepositorySnapshot]:
        raw = self._store.get(key)
        if not raw:
            return None
        try:
            return RepositorySnapshot.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.error("Error reading cache %s: %s", key, exc)
            self._store.delete(key)
            return None

    def _save(self, key: str, snapshot: RepositorySnapshot) -> None:
        try:
            self._store.set(key, json.dumps(snapshot.to_dict()))
        except OSError as exc:
            _LOGGER.error("Error setting cache %s: %s", key, exc)


def _resolve(
    owner: Optional[str], repo: Optional[str], branch: Optional[str]
) -> tuple[str, str, str]:
    default_owner, default_repo, default_branch = repository_coordinates()
    return (
        owner or default_owner,
        repo or default_repo,
        branch or default_branch,
    )
