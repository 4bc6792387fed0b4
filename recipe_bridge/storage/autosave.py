"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Bounded autosave list of in-progress recipes, plus the debounced writer
that feeds it while a recipe is being edited.
"""

from __future__ import annotations

import copy
import enum
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

from recipe_bridge import config
from recipe_bridge.models.recipe import Recipe, recipe_name, recipe_version
from recipe_bridge.storage.kv_store import KeyValueStore

_LOGGER = logging.getLogger(__name__)

UNTITLED = "Untitled"


class SaveStatus(str, enum.Enum):
    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"


@dataclass(frozen=True)
class SavedRecipeEntry:
    """One autosaved recipe. ``last_modified`` is a POSIX timestamp."""

    id: str
    name: str
    version: str
    last_modified: float
    recipe: Recipe

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "lastModified": self.last_modified,
            "data": self.recipe,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SavedRecipeEntry":
        data = payload["data"]
        if not isinstance(data, dict):
            raise ValueError("autosave entry data must be a mapping")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            version="" if payload.get("version") is None
            else str(payload["version"]),
            last_modified=float(payload["lastModified"]),
            recipe=data,
        )


class AutosaveStore:
    """Most-recent-first list of saved recipes held in one key/value slot.

    The list never grows beyond ``capacity``; each insertion past capacity
    evicts the least-recently-modified entries. Persistence faults are logged
    and reported through return values only.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = config.AUTOSAVE_KEY,
        capacity: int = config.AUTOSAVE_CAPACITY,
        time_fn: Optional[Callable[[], float]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive.")
        self._store = store
        self._key = key
        self._capacity = capacity
        self._time_fn = time_fn or time.time
        self._id_factory = id_factory or _new_entry_id
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def list(self) -> List[SavedRecipeEntry]:
        """Return saved entries, most recent first; empty on bad data."""
        try:
            raw = self._store.get(self._key)
        except OSError as exc:
            _LOGGER.error("Failed to load saved recipes: %s", exc)
            return []
        if not raw:
            return []

        try:
            payload = json.loads(raw)
        except ValueError as exc:
            _LOGGER.error("Saved recipe list is corrupt: %s", exc)
            return []
        if not isinstance(payload, list):
            _LOGGER.error("Saved recipe list is not a list; ignoring it")
            return []

        entries: List[SavedRecipeEntry] = []
        for item in payload:
            try:
                entries.append(SavedRecipeEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping malformed saved recipe: %s", exc)
        return entries

    def get(self, entry_id: str) -> Optional[SavedRecipeEntry]:
        for entry in self.list():
            if entry.id == entry_id:
                return entry
        return None

    def save(self, recipe: Mapping[str, Any], existing_id: Optional[str] = None) -> str:
        """
        save: Persist ``recipe`` and return the id of its entry.
        :param recipe: recipe mapping; stored as a deep copy
        :param existing_id: entry to replace in place
        :returns: the entry id, or "" when the write failed
        """

        with self._lock:
            name = recipe_name(recipe)
            entry = SavedRecipeEntry(
                id=existing_id or self._id_factory(),
                name=name or UNTITLED,
                version=recipe_version(recipe),
                last_modified=self._time_fn(),
                recipe=copy.deepcopy(dict(recipe)),
            )
            entries = self.list()

            if existing_id:
                index = _index_of(entries, existing_id)
                if index is None:
                    entries.insert(0, entry)
                else:
                    entries[index] = entry
            else:
                if name:
                    wanted = name.casefold()
                    entries = [
                        item
                        for item in entries
                        if item.name.casefold() != wanted
                    ]
                entries.insert(0, entry)

            while len(entries) > self._capacity:
                evicted = entries.pop(_least_recent_index(entries))
                _LOGGER.debug(
                    "Evicted saved recipe %s (%s)", evicted.id, evicted.name
                )

            if not self._write(entries):
                return ""
            return entry.id

    def delete(self, entry_id: str) -> None:
        with self._lock:
            entries = self.list()
            remaining = [entry for entry in entries if entry.id != entry_id]
            if len(remaining) != len(entries):
                self._write(remaining)

    def _write(self, entries: List[SavedRecipeEntry]) -> bool:
        try:
            body = json.dumps([entry.to_dict() for entry in entries])
            self._store.set(self._key, body)
        except (OSError, TypeError, ValueError) as exc:
            _LOGGER.error("Failed to save recipes: %s", exc)
            return False
        return True


def _new_entry_id() -> str:
    return f"untitled-{uuid.uuid4().hex[:12]}"


def _index_of(entries: List[SavedRecipeEntry], entry_id: str) -> Optional[int]:
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return index
    return None


def _least_recent_index(entries: List[SavedRecipeEntry]) -> int:
    # Ties go to the entry furthest from the front.
    return min(
        range(len(entries)),
        key=lambda index: (entries[index].last_modified, -index),
    )


def age_label(timestamp: float, now: Optional[float] = None) -> str:
    """Human-readable age of a saved entry, e.g. ``"3 hours ago"``."""
    elapsed = (time.time() if now is None else now) - timestamp
    minutes = int(elapsed // 60)
    hours = int(elapsed // 3600)
    days = int(elapsed // 86400)

    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just now"


TimerFactory = Callable[[float, Callable[[], None]], Any]


class DebouncedAutosave:
    """Coalesce bursts of edits into a single autosave write.

    Every :meth:`schedule` call cancels the pending timer and arms a new one,
    so only the latest recipe of a burst reaches the store.
    """

    def __init__(
        self,
        store: AutosaveStore,
        *,
        delay_seconds: float = config.AUTOSAVE_DEBOUNCE_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self._store = store
        self._delay = delay_seconds
        self._timer_factory = timer_factory or _daemon_timer
        self._lock = threading.RLock()
        self._timer: Any = None
        self._pending: Optional[tuple[Recipe, Optional[str]]] = None
        self._token = 0
        self._current_id: Optional[str] = None
        self._status = SaveStatus.SAVED

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @current_id.setter
    def current_id(self, entry_id: Optional[str]) -> None:
        with self._lock:
            self._current_id = entry_id

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def mark_unsaved(self) -> None:
        self._status = SaveStatus.UNSAVED

    def schedule(
        self, recipe: Mapping[str, Any], existing_id: Optional[str] = None
    ) -> None:
        """Arm a write of ``recipe`` after the debounce delay."""
        with self._lock:
            self._cancel_timer()
            self._pending = (
                copy.deepcopy(dict(recipe)),
                existing_id or self._current_id,
            )
            self._status = SaveStatus.UNSAVED
            self._token += 1
            token = self._token
            self._timer = self._timer_factory(
                self._delay, lambda: self._fire(token)
            )
            self._timer.start()

    def flush(self) -> Optional[str]:
        """Write the pending recipe now; returns the current entry id."""
        with self._lock:
            self._cancel_timer()
            pending = self._pending
            self._pending = None
            if pending is None:
                return self._current_id

            recipe, existing_id = pending
            self._status = SaveStatus.SAVING
            entry_id = self._store.save(recipe, existing_id)
            if entry_id:
                self._current_id = entry_id
                self._status = SaveStatus.SAVED
            else:
                # Keep the recipe so the next flush or schedule retries it.
                self._pending = pending
                self._status = SaveStatus.UNSAVED
            return self._current_id

    def cancel(self) -> None:
        """Drop the pending write without saving it."""
        with self._lock:
            self._cancel_timer()
            self._pending = None

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._token:
                return
            self.flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def _daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer
