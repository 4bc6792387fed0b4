"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Bridge to a user-granted local checkout of the recipe repository.

The bridge holds at most one directory grant. Each grant gets a new
generation number and every handle records the generation it was issued
under, so handles from an earlier grant are refused structurally once the
grant changes or is closed.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Union

from recipe_bridge import config
from recipe_bridge.errors import (DirectoryNotOpen, InsecureContext,
                                  InvalidRepository, PermissionDenied,
                                  StaleHandleError, Unsupported)

_LOGGER = logging.getLogger(__name__)


class DirectoryPicker(Protocol):
    """Source of directory grants."""

    def is_supported(self) -> bool:
        """Return False when directory grants cannot be offered at all."""

    def is_secure_context(self) -> bool:
        """Return False when grants must be refused for transport reasons."""

    def pick(self) -> Optional[Path]:
        """Return the granted directory, or None when the user cancelled."""


class StaticDirectoryPicker(DirectoryPicker):
    """Picker that always grants one pre-selected directory."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()

    def is_supported(self) -> bool:
        return True

    def is_secure_context(self) -> bool:
        return True

    def pick(self) -> Optional[Path]:
        return self._path


@dataclass(frozen=True)
class DirectoryHandle:
    """Opaque reference to a directory inside a specific grant."""

    path: Path
    generation: int


@dataclass(frozen=True)
class DirectoryGrant:
    root: Path
    generation: int

    @property
    def name(self) -> str:
        return self.root.name


@dataclass(frozen=True)
class LocalRecipeHandle:
    """A recipe file read from (or written to) the granted directory."""

    path: str
    name: str
    content: str
    directory_handle: DirectoryHandle


def _is_plain_name(segment: str) -> bool:
    if segment in ("", ".", ".."):
        return False
    return "/" not in segment and "\\" not in segment and os.sep not in segment


@contextlib.contextmanager
def _exclusive_file(path: Path) -> Iterator[Any]:
    """Open ``path`` for writing under an exclusive advisory lock."""
    handle = path.open("a+", encoding="utf-8")
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield handle
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()


class LocalDirectoryBridge:
    """Read and write recipes through the current directory grant."""

    def __init__(self, picker: Optional[DirectoryPicker] = None) -> None:
        self._picker = picker
        self._lock = threading.RLock()
        self._root: Optional[Path] = None
        self._generation = 0
        self._cache: Dict[str, LocalRecipeHandle] = {}

    @property
    def is_open(self) -> bool:
        return self._root is not None

    @property
    def directory_name(self) -> Optional[str]:
        return self._root.name if self._root is not None else None

    @property
    def generation(self) -> int:
        return self._generation

    def set_picker(self, picker: DirectoryPicker) -> None:
        self._picker = picker

    def open_root(self) -> DirectoryGrant:
        """Ask the picker for a directory and make it the current grant.

        A directory that fails validation leaves the previous grant in place.
        """
        picker = self._picker
        if picker is None or not picker.is_supported():
            raise Unsupported(
                "Directory access is not supported in this environment"
            )
        if not picker.is_secure_context():
            raise InsecureContext(
                "Directory access requires a secure context"
            )

        try:
            chosen = picker.pick()
        except PermissionError as exc:
            raise PermissionDenied(
                f"Permission to read the directory was denied: {exc}"
            ) from exc
        if chosen is None:
            raise PermissionDenied("Directory selection was cancelled")

        root = Path(chosen).expanduser()
        try:
            self._validate(root)
        except PermissionError as exc:
            raise PermissionDenied(
                f"Permission to read {root} was denied: {exc}"
            ) from exc

        with self._lock:
            self._generation += 1
            self._root = root
            self._cache.clear()
            _LOGGER.info(
                "Opened local repository %s (grant %d)", root, self._generation
            )
            return DirectoryGrant(root=root, generation=self._generation)

    def close_root(self) -> None:
        """Drop the grant and every handle issued under it."""
        with self._lock:
            if self._root is not None:
                _LOGGER.info("Closed local repository %s", self._root)
            self._root = None
            self._generation += 1
            self._cache.clear()

    def list_recipes(self) -> List[LocalRecipeHandle]:
        root = self._require_root()
        recipes_dir = root / config.RECIPES_DIR
        try:
            containers = sorted(
                child for child in recipes_dir.iterdir() if child.is_dir()
            )
        except OSError as exc:
            raise InvalidRepository(
                f"Failed to read recipes directory: {exc}"
            ) from exc

        handles: List[LocalRecipeHandle] = []
        for container in containers:
            build_file = container / config.RECIPE_FILENAME
            try:
                content = build_file.read_text(encoding="utf-8")
            except OSError as exc:
                _LOGGER.warning(
                    "No %s found in %s: %s",
                    config.RECIPE_FILENAME,
                    container.name,
                    exc,
                )
                continue
            handle = self._make_handle(container, content)
            handles.append(handle)
            with self._lock:
                self._cache[container.name] = handle
        return handles

    def read_recipe(self, name: str) -> Optional[LocalRecipeHandle]:
        """Return the recipe named ``name``, or None when it does not exist."""
        root = self._require_root()
        with self._lock:
            cached = self._cache.get(name)
        if cached is not None:
            return cached
        if not _is_plain_name(name):
            _LOGGER.warning("Refusing recipe name %r", name)
            return None

        container = root / config.RECIPES_DIR / name
        try:
            content = (container / config.RECIPE_FILENAME).read_text(
                encoding="utf-8"
            )
        except OSError as exc:
            _LOGGER.warning("Failed to read recipe for %s: %s", name, exc)
            return None

        handle = self._make_handle(container, content)
        with self._lock:
            self._cache[name] = handle
        return handle

    def write_recipe(self, name: str, content: str) -> LocalRecipeHandle:
        """
        write_recipe: Create or replace ``recipes/<name>/build.yaml``.
        :param name: container directory name; must be a plain name
        :param content: recipe text
        :returns: handle for the written file
        """

        root = self._require_root()
        if not _is_plain_name(name):
            raise ValueError(f"Invalid recipe name: {name!r}")

        container = root / config.RECIPES_DIR / name
        try:
            container.mkdir(parents=False, exist_ok=True)
            self._write_exclusive(container / config.RECIPE_FILENAME, content)
        except OSError as exc:
            raise InvalidRepository(
                f"Failed to save recipe for {name}: {exc}"
            ) from exc

        handle = self._make_handle(container, content)
        with self._lock:
            self._cache[name] = handle
        _LOGGER.info("Saved recipe %s to %s", name, handle.path)
        return handle

    def save_handle(
        self, handle: LocalRecipeHandle, content: str
    ) -> LocalRecipeHandle:
        """Write ``content`` through a handle issued under the current grant."""
        self._require_root()
        if handle.directory_handle.generation != self._generation:
            raise StaleHandleError(
                f"Handle for {handle.name} belongs to a previous directory "
                "grant; reopen the recipe"
            )
        return self.write_recipe(handle.name, content)

    def read_auxiliary_file(
        self, name: str, relative_path: str
    ) -> Optional[str]:
        """Read a file next to a recipe; None when it cannot be resolved.

        Each segment of ``relative_path`` must be a plain child name and the
        resolved file must stay inside ``recipes/<name>``.
        """
        root = self._require_root()
        if not _is_plain_name(name):
            return None
        segments = relative_path.split("/")
        if not segments or not all(_is_plain_name(part) for part in segments):
            _LOGGER.warning(
                "Refusing auxiliary path %r for %s", relative_path, name
            )
            return None

        container = root / config.RECIPES_DIR / name
        try:
            current = container
            for part in segments[:-1]:
                current = current / part
                if not current.is_dir():
                    raise FileNotFoundError(str(current))
            target = current / segments[-1]
            if not target.resolve().is_relative_to(container.resolve()):
                _LOGGER.warning(
                    "Auxiliary path %r escapes %s", relative_path, name
                )
                return None
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            _LOGGER.warning(
                "Failed to read additional file %s for %s: %s",
                relative_path,
                name,
                exc,
            )
            return None

    def get_builder_override_script(self) -> Optional[str]:
        """Return the local ``builder/build.py`` text when a grant is open."""
        root = self._root
        if root is None:
            return None
        try:
            return (root / config.BUILDER_SCRIPT_PATH).read_text(
                encoding="utf-8"
            )
        except (OSError, UnicodeDecodeError) as exc:
            _LOGGER.warning("Failed to read local builder script: %s", exc)
            return None

    def _validate(self, root: Path) -> None:
        if not (root / config.RECIPES_DIR).is_dir():
            raise InvalidRepository(
                f"{root} does not appear to be a recipe repository "
                f"(missing {config.RECIPES_DIR} folder)"
            )
        if not (root / config.BUILDER_SCRIPT_PATH).is_file():
            raise InvalidRepository(
                f"{root} is missing {config.BUILDER_SCRIPT_PATH}; it may be "
                "an incomplete or older version of the repository"
            )

        names = {child.name for child in root.iterdir()}
        found = sum(1 for marker in config.REPOSITORY_MARKERS if marker in names)
        if found < config.MIN_REPOSITORY_MARKERS:
            _LOGGER.warning(
                "%s may not be a complete recipe repository; "
                "expected entries are missing",
                root,
            )

    def _require_root(self) -> Path:
        root = self._root
        if root is None:
            raise DirectoryNotOpen(
                "No directory opened. Call open_root() first."
            )
        return root

    def _make_handle(self, container: Path, content: str) -> LocalRecipeHandle:
        return LocalRecipeHandle(
            path=f"{config.RECIPES_DIR}/{container.name}/{config.RECIPE_FILENAME}",
            name=container.name,
            content=content,
            directory_handle=DirectoryHandle(
                path=container, generation=self._generation
            ),
        )

    @staticmethod
    def _write_exclusive(path: Path, content: str) -> None:
        with _exclusive_file(path) as handle:
            handle.seek(0)
            handle.truncate()
            handle.write(content)
            handle.flush()
