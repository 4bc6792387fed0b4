"""Key/value slots backing the autosave list and the snapshot cache."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

_LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Persistence contract for JSON-encoded string slots."""

    def get(self, key: str) -> Optional[str]:
        """Return the raw slot text, or None when the slot is empty."""

    def set(self, key: str, value: str) -> None:
        """Replace the slot text."""

    def delete(self, key: str) -> None:
        """Drop the slot; missing slots are ignored."""

    def keys(self) -> List[str]:
        """Return every populated slot name."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._slots: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._slots.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._slots[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._slots.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._slots)


class LocalKeyValueStore(KeyValueStore):
    """One JSON file per slot under a state directory.

    File names are digests of the slot key, so arbitrary keys (including the
    ``owner/repo@branch`` snapshot keys) map to safe names. Each file records
    its own key next to the value, which is how :meth:`keys` recovers them.
    Writes go through a temporary file and ``os.replace`` so a crash never
    leaves a half-written slot behind.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def get(self, key: str) -> Optional[str]:
        path = self._slot_path(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Discarding unreadable slot %s: %s", key, exc)
            return None
        value = payload.get("value") if isinstance(payload, dict) else None
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        body = json.dumps({"key": key, "value": value})
        with self._lock:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._root, prefix=".slot-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(body)
                os.replace(tmp_name, self._slot_path(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def delete(self, key: str) -> None:
        with self._lock:
            self._slot_path(key).unlink(missing_ok=True)

    def keys(self) -> List[str]:
        if not self._root.is_dir():
            return []
        found: List[str] = []
        for path in sorted(self._root.glob("*.json")):
            try:
                payload: Any = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                continue
            if isinstance(payload, dict) and isinstance(
                payload.get("key"), str
            ):
                found.append(payload["key"])
        return found

    def _slot_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self._root / f"{digest}.json"
