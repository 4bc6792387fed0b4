"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Domain models describing the remote recipe repository and its cached view.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from recipe_bridge import config

RECIPE_PATH_REGEX = re.compile(
    rf"^{config.RECIPES_DIR}/([^/]+)/{re.escape(config.RECIPE_FILENAME)}$"
)


def is_recipe_path(path: str) -> bool:
    """Return True for ``recipes/<name>/build.yaml`` paths."""
    return bool(RECIPE_PATH_REGEX.match(path))


@dataclass(frozen=True)
class RemoteFileDescriptor:
    """One remote recipe file plus the metadata needed to detect change."""

    path: str
    content_hash: str
    web_url: str
    download_url: str
    api_url: Optional[str] = None

    @property
    def recipe_name(self) -> str:
        """Name of the container directory holding the recipe file."""
        parts = self.path.split("/")
        return parts[-2] if len(parts) >= 2 else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "sha": self.content_hash,
            "htmlUrl": self.web_url,
            "downloadUrl": self.download_url,
            "url": self.api_url,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RemoteFileDescriptor":
        return cls(
            path=str(payload["path"]),
            content_hash=str(payload["sha"]),
            web_url=str(payload["htmlUrl"]),
            download_url=str(payload["downloadUrl"]),
            api_url=payload.get("url"),
        )


@dataclass(frozen=True)
class RepositoryInfo:
    """Latest commit details for the listed branch."""

    message: str
    author: str
    date: str
    sha: str
    html_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastCommit": {
                "message": self.message,
                "author": self.author,
                "date": self.date,
                "sha": self.sha,
                "htmlUrl": self.html_url,
            }
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RepositoryInfo":
        commit = payload["lastCommit"]
        return cls(
            message=str(commit["message"]),
            author=str(commit["author"]),
            date=str(commit["date"]),
            sha=str(commit["sha"]),
            html_url=str(commit["htmlUrl"]),
        )


@dataclass(frozen=True)
class RepositorySnapshot:
    """Cached listing of recipe files and latest commit metadata.

    ``fetched_at`` and ``expires_at`` are POSIX timestamps in seconds.
    """

    files: tuple[RemoteFileDescriptor, ...]
    repository_info: Optional[RepositoryInfo]
    fetched_at: float
    expires_at: float
    stale: bool = field(default=False, compare=False)

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def find(self, name: str) -> Optional[RemoteFileDescriptor]:
        """Return the descriptor whose container name matches ``name``."""
        wanted = name.casefold()
        for descriptor in self.files:
            if descriptor.recipe_name.casefold() == wanted:
                return descriptor
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": [descriptor.to_dict() for descriptor in self.files],
            "repoInfo": (
                self.repository_info.to_dict()
                if self.repository_info is not None
                else None
            ),
            "timestamp": self.fetched_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RepositorySnapshot":
        info_payload = payload.get("repoInfo")
        return cls(
            files=tuple(
                RemoteFileDescriptor.from_dict(entry)
                for entry in payload["files"]
            ),
            repository_info=(
                RepositoryInfo.from_dict(info_payload)
                if info_payload
                else None
            ),
            fetched_at=float(payload["timestamp"]),
            expires_at=float(payload["expiresAt"]),
        )


@dataclass(frozen=True)
class CacheStatus:
    """Validity of the cached snapshot for display."""

    is_valid: bool
    expires_at: Optional[datetime]

    @classmethod
    def from_snapshot(
        cls, snapshot: Optional[RepositorySnapshot], now: float
    ) -> "CacheStatus":
        if snapshot is None:
            return cls(is_valid=False, expires_at=None)
        return cls(
            is_valid=not snapshot.is_expired(now),
            expires_at=datetime.fromtimestamp(
                snapshot.expires_at, tz=timezone.utc
            ),
        )
