"""Contract for the interpreter sandbox that hosts the recipe generator."""

from __future__ import annotations

from typing import Any, Protocol, Sequence


class InterpreterSandbox(Protocol):
    """Isolated interpreter with its own virtual filesystem.

    Virtual paths are absolute POSIX paths such as ``/repo/builder``.
    """

    def install_packages(self, packages: Sequence[str]) -> None:
        """Make ``packages`` importable inside the sandbox."""

    def make_dirs(self, path: str) -> None:
        """Create a virtual directory and its parents."""

    def write_file(self, path: str, content: str) -> None:
        """Write UTF-8 text to a virtual path."""

    def read_file(self, path: str) -> str:
        """Read UTF-8 text from a virtual or resolved path."""

    def exists(self, path: str) -> bool:
        """Return True when the virtual or resolved path exists."""

    def resolve(self, path: str) -> str:
        """Return the path code running in the sandbox should use."""

    def write_encoded(self, path: str, payload: str) -> None:
        """Decode a base64 ``payload`` and write it as UTF-8 text to ``path``."""

    def import_module(self, name: str, path: str) -> Any:
        """Import the module stored at virtual ``path`` under ``name``."""

    def close(self) -> None:
        """Release every resource held by the sandbox."""
