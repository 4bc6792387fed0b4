"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

GitHub REST adapter used to discover and download published recipes.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, cast

import requests  # type: ignore[import]

from recipe_bridge import config
from recipe_bridge.clients.base_client import BaseClient
from recipe_bridge.errors import TransientFetchFailure
from recipe_bridge.net.rate_limiter import RateLimiter
from recipe_bridge.utils.env import github_token

DEFAULT_MAX_CALLS = 5
DEFAULT_PERIOD_SECONDS = 1.0


class _SessionWithGet(Protocol):
    """
    _SessionWithGet: Minimal surface of ``requests.Session`` used here.
    """

    def get(
        self,
        url: str,
        timeout: int,
        headers: Optional[dict[str, str]] = None,
    ) -> Any: ...


class GitHubClient(BaseClient[Any]):
    """Read-only adapter for the GitHub repository endpoints we need."""

    def __init__(
        self,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        session: Optional[_SessionWithGet] = None,
        token: Optional[str] = None,
    ) -> None:
        """
        __init__: Build a client around an optional injected session.
        :param rate_limiter: limiter shared by every call
        :param logger: logger for timing and quota messages
        :param session: object exposing ``get(url, timeout, headers)``
        :param token: bearer token; defaults to ``GITHUB_TOKEN``
        :returns:
        """

        limiter = rate_limiter or RateLimiter(
            max_calls=DEFAULT_MAX_CALLS,
            period_seconds=DEFAULT_PERIOD_SECONDS,
        )
        super().__init__(limiter, logger=logger)

        self._session: _SessionWithGet = cast(
            _SessionWithGet, session or requests.Session()
        )
        self._token = token

    def get_branch(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        """Return the branch payload, including the head commit SHA."""
        url = f"{config.GITHUB_API_URL}/repos/{owner}/{repo}/branches/{branch}"
        return self._execute_with_rate_limit(
            lambda: self._get_json(url),
            name=f"github.branch({owner}/{repo}@{branch})",
        )

    def get_latest_commit(
        self, owner: str, repo: str, branch: str
    ) -> dict[str, Any]:
        """Return the latest commit on ``branch``."""
        url = f"{config.GITHUB_API_URL}/repos/{owner}/{repo}/commits/{branch}"
        return self._execute_with_rate_limit(
            lambda: self._get_json(url),
            name=f"github.commit({owner}/{repo}@{branch})",
        )

    def get_tree(
        self, owner: str, repo: str, tree_sha: str
    ) -> list[dict[str, Any]]:
        """Return every entry of the recursive tree rooted at ``tree_sha``."""
        url = (
            f"{config.GITHUB_API_URL}/repos/{owner}/{repo}"
            f"/git/trees/{tree_sha}?recursive=1"
        )

        def _operation() -> list[dict[str, Any]]:
            body = self._get_json(url)
            if body.get("truncated"):
                self._logger.warning(
                    "Tree listing for %s/%s was truncated by the host",
                    owner,
                    repo,
                )
            tree = body.get("tree", [])
            return [entry for entry in tree if isinstance(entry, dict)]

        return self._execute_with_rate_limit(
            _operation,
            name=f"github.tree({owner}/{repo}@{tree_sha[:7]})",
        )

    def fetch_raw_file(
        self, owner: str, repo: str, ref: str, path: str
    ) -> str:
        """Download a file's text from the raw content host."""
        url = f"{config.RAW_CONTENT_URL}/{owner}/{repo}/{ref}/{path}"
        return self.fetch_text(url)

    def fetch_text(self, url: str) -> str:
        """Download ``url`` as UTF-8 text."""

        def _operation() -> str:
            response = self._get(url, timeout=config.RAW_TIMEOUT_SECONDS)
            response.encoding = response.encoding or "utf-8"
            return response.text

        return self._execute_with_rate_limit(
            _operation, name=f"github.raw({url})"
        )

    def _get_json(self, url: str) -> dict[str, Any]:
        response = self._get(url, timeout=config.API_TIMEOUT_SECONDS)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientFetchFailure(
                f"GitHub API returned invalid JSON for {url}"
            ) from exc
        if not isinstance(payload, dict):
            raise TransientFetchFailure(
                f"GitHub API returned an unexpected payload for {url}"
            )
        return payload

    def _get(self, url: str, *, timeout: int) -> Any:
        try:
            response = self._session.get(
                url, timeout=timeout, headers=self._auth_headers()
            )
        except requests.RequestException as exc:
            raise TransientFetchFailure(
                f"GitHub request failed: {exc}"
            ) from exc

        self._observe_quota(response)
        if response.status_code != 200:
            raise TransientFetchFailure(
                f"GitHub API error: {response.status_code} for {url}",
                status_code=response.status_code,
            )
        return response

    def _auth_headers(self) -> dict[str, str]:
        """
        _auth_headers: Accept header plus the optional bearer token.
        :param:
        :returns:
        """

        headers = {"Accept": "application/vnd.github.v3+json"}
        token = self._token or github_token()
        if token:
            headers["Authorization"] = f"token {token}"
        return headers
