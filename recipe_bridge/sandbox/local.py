"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Sandbox backed by a private temporary directory on the local host.

Virtual paths are mapped under the sandbox root, add-on packages are
installed with ``pip --target`` into a site directory owned by the sandbox,
and the generator module is loaded from its virtual location.
"""

from __future__ import annotations

import base64
import binascii
import importlib.util
import logging
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable, List, Optional, Sequence, Union

from recipe_bridge.errors import SandboxError
from recipe_bridge.sandbox.base import InterpreterSandbox

_LOGGER = logging.getLogger(__name__)

Installer = Callable[[List[str], Path], None]


class LocalInterpreterSandbox(InterpreterSandbox):
    """Run the generator in-process over a temp-directory filesystem."""

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        *,
        installer: Optional[Installer] = None,
        python_executable: Optional[str] = None,
    ) -> None:
        if root is None:
            self._root = Path(tempfile.mkdtemp(prefix="recipe-bridge-sandbox-"))
            self._owns_root = True
        else:
            self._root = Path(root)
            self._root.mkdir(parents=True, exist_ok=True)
            self._owns_root = False
        self._root = self._root.resolve()
        self._site_dir = self._root / ".site-packages"
        self._python = python_executable or sys.executable
        self._installer = installer or self._pip_install
        self._closed = False

    @property
    def root(self) -> Path:
        return self._root

    def install_packages(self, packages: Sequence[str]) -> None:
        names = [name for name in packages if name]
        if not names:
            return
        self._site_dir.mkdir(parents=True, exist_ok=True)
        _LOGGER.info("Installing sandbox packages: %s", ", ".join(names))
        self._installer(names, self._site_dir)
        site = str(self._site_dir)
        if site not in sys.path:
            sys.path.append(site)

    def make_dirs(self, path: str) -> None:
        Path(self.resolve(path)).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, content: str) -> None:
        target = Path(self.resolve(path))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def read_file(self, path: str) -> str:
        try:
            return Path(self.resolve(path)).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SandboxError(f"Cannot read {path} from sandbox: {exc}") from exc

    def exists(self, path: str) -> bool:
        return Path(self.resolve(path)).exists()

    def resolve(self, path: str) -> str:
        """Map a virtual path under the sandbox root.

        Paths already inside the root (as handed out by this method) are
        returned unchanged.
        """
        if ".." in PurePosixPath(path).parts:
            raise SandboxError(f"Sandbox paths may not contain '..': {path!r}")
        candidate = Path(path)
        if candidate.is_absolute() and candidate.is_relative_to(self._root):
            return str(candidate)

        virtual = PurePosixPath(path)
        if not virtual.is_absolute():
            raise SandboxError(f"Sandbox paths must be absolute: {path!r}")
        return str(self._root.joinpath(*virtual.parts[1:]))

    def write_encoded(self, path: str, payload: str) -> None:
        try:
            content = base64.b64decode(payload, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise SandboxError(f"Bad encoded payload for {path}: {exc}") from exc
        self.write_file(path, content)

    def import_module(self, name: str, path: str) -> Any:
        location = self.resolve(path)
        spec = importlib.util.spec_from_file_location(name, location)
        if spec is None or spec.loader is None:
            raise SandboxError(f"Cannot load module {name} from {path}")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:  # noqa: BLE001 - surfaced as SandboxError
            raise SandboxError(f"Importing {name} failed: {exc}") from exc
        _LOGGER.debug("Imported sandbox module %s from %s", name, location)
        return module

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        site = str(self._site_dir)
        if site in sys.path:
            sys.path.remove(site)
        if self._owns_root:
            shutil.rmtree(self._root, ignore_errors=True)

    def _pip_install(self, packages: List[str], target: Path) -> None:
        command = [
            self._python,
            "-m",
            "pip",
            "install",
            "--quiet",
            "--disable-pip-version-check",
            "--target",
            str(target),
            *packages,
        ]
        try:
            subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            raise SandboxError(
                f"Package installation failed: {exc.stderr.strip() or exc}"
            ) from exc
        except OSError as exc:
            raise SandboxError(f"Cannot run pip: {exc}") from exc
