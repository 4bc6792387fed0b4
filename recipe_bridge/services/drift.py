"""Detect edits made to a recipe since it was last seen published."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping, Optional

from recipe_bridge.errors import SerializationFailure
from recipe_bridge.services.serializer import normalize

_LOGGER = logging.getLogger(__name__)


def _descriptor_path(descriptor: Any) -> str:
    if isinstance(descriptor, Mapping):
        return str(descriptor.get("path", ""))
    return str(getattr(descriptor, "path", ""))


class PublishDriftDetector:
    """Compare the editable recipe against its published baseline."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._published = False
        self._baseline: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self._published

    @property
    def baseline(self) -> Optional[str]:
        return self._baseline

    def check_published(self, name: str, descriptors: Iterable[Any]) -> bool:
        """Return True when a published recipe directory is named ``name``."""
        wanted = name.strip().casefold()
        published = False
        if wanted:
            for descriptor in descriptors:
                parts = _descriptor_path(descriptor).split("/")
                parent = parts[-2] if len(parts) >= 2 else ""
                if parent.casefold() == wanted:
                    published = True
                    break
        with self._lock:
            self._published = published
        return published

    def record_published_baseline(self, raw_text: str) -> None:
        with self._lock:
            self._baseline = normalize(raw_text)

    def is_modified(self, recipe: Mapping[str, Any]) -> bool:
        """True when ``recipe`` no longer matches the published baseline."""
        with self._lock:
            published, baseline = self._published, self._baseline
        if not published or not baseline:
            return False
        try:
            current = normalize(recipe)
        except SerializationFailure as exc:
            _LOGGER.error("Error comparing recipe to published copy: %s", exc)
            return False
        return current != baseline

    def reset_baseline(self) -> None:
        with self._lock:
            self._published = False
            self._baseline = None
