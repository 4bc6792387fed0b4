"""Tests for the temp-directory interpreter sandbox and toolchain staging."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

from recipe_bridge.errors import SandboxError
from recipe_bridge.sandbox.local import LocalInterpreterSandbox
from recipe_bridge.sandbox.toolchain import (LocalOverrideToolchain,
                                             RemoteToolchain, select_toolchain,
                                             stage_encoded)


@pytest.fixture
def sandbox(tmp_path: Path, installer: Any) -> Any:
    box = LocalInterpreterSandbox(tmp_path / "box", installer=installer)
    yield box
    box.close()


def test_resolve_maps_virtual_paths_under_root(
    sandbox: LocalInterpreterSandbox,
) -> None:
    resolved = sandbox.resolve("/repo/builder/build.py")

    assert resolved == str(sandbox.root / "repo" / "builder" / "build.py")
    assert sandbox.resolve(resolved) == resolved


@pytest.mark.parametrize("path", ["/repo/../../etc/passwd", "relative/path"])
def test_resolve_rejects_unsafe_paths(
    sandbox: LocalInterpreterSandbox, path: str
) -> None:
    with pytest.raises(SandboxError):
        sandbox.resolve(path)


def test_file_operations_use_virtual_paths(
    sandbox: LocalInterpreterSandbox,
) -> None:
    sandbox.make_dirs("/recipe")
    sandbox.write_file("/tmp/build/out.txt", "hello")

    assert sandbox.exists("/recipe")
    assert sandbox.read_file("/tmp/build/out.txt") == "hello"
    assert not sandbox.exists("/tmp/missing")
    with pytest.raises(SandboxError):
        sandbox.read_file("/tmp/missing")


def test_write_encoded_decodes_payload(
    sandbox: LocalInterpreterSandbox,
) -> None:
    sandbox.write_encoded("/tmp/note.txt", "aMOpbGxv")

    assert sandbox.read_file("/tmp/note.txt") == "h\u00e9llo"


def test_write_encoded_rejects_bad_payload(
    sandbox: LocalInterpreterSandbox,
) -> None:
    with pytest.raises(SandboxError, match="Bad encoded payload"):
        sandbox.write_encoded("/tmp/note.txt", "not base64!")

    assert not sandbox.exists("/tmp/note.txt")


def test_stage_encoded_preserves_awkward_text(
    sandbox: LocalInterpreterSandbox,
) -> None:
    content = "quote ''' \"\"\" back\\slash\nunicode é ✓\n"

    stage_encoded(sandbox, "/repo/builder/build.py", content)

    assert sandbox.read_file("/repo/builder/build.py") == content


def test_import_module_from_virtual_path(
    sandbox: LocalInterpreterSandbox,
) -> None:
    sandbox.write_file("/repo/builder/helper.py", "VALUE = 42\n")

    module = sandbox.import_module("helper", "/repo/builder/helper.py")

    assert module.VALUE == 42


def test_import_module_failure_is_sandbox_error(
    sandbox: LocalInterpreterSandbox,
) -> None:
    sandbox.write_file("/repo/builder/broken.py", "raise ImportError('x')\n")

    with pytest.raises(SandboxError):
        sandbox.import_module("broken", "/repo/builder/broken.py")


def test_install_packages_uses_site_directory(
    sandbox: LocalInterpreterSandbox, installer: Any
) -> None:
    sandbox.install_packages(["pyyaml", "", "jinja2"])

    packages, target = installer.calls[0]
    assert packages == ["pyyaml", "jinja2"]
    assert target == sandbox.root / ".site-packages"
    assert str(target) in sys.path
    assert sys.path[0] != str(target)

    sandbox.close()

    assert str(target) not in sys.path


def test_install_nothing_skips_installer(
    sandbox: LocalInterpreterSandbox, installer: Any
) -> None:
    sandbox.install_packages([])

    assert installer.calls == []


def test_missing_pip_executable_is_sandbox_error(tmp_path: Path) -> None:
    box = LocalInterpreterSandbox(
        tmp_path / "box", python_executable=str(tmp_path / "no-python")
    )

    with pytest.raises(SandboxError, match="Cannot run pip"):
        box.install_packages(["pyyaml"])


def test_owned_root_is_removed_on_close() -> None:
    box = LocalInterpreterSandbox()
    root = box.root
    box.write_file("/tmp/x", "1")

    box.close()
    box.close()

    assert not root.exists()


def test_given_root_is_kept_on_close(tmp_path: Path) -> None:
    box = LocalInterpreterSandbox(tmp_path / "kept")

    box.close()

    assert (tmp_path / "kept").is_dir()


class _Override:
    def __init__(self, script: Any) -> None:
        self.script = script

    def get_builder_override_script(self) -> Any:
        return self.script


def test_select_toolchain_prefers_local_script() -> None:
    assert isinstance(
        select_toolchain(_Override("print('local')")), LocalOverrideToolchain
    )
    assert isinstance(select_toolchain(_Override(None)), RemoteToolchain)
    assert isinstance(select_toolchain(_Override("")), RemoteToolchain)
    assert isinstance(select_toolchain(None), RemoteToolchain)


def test_remote_toolchain_fetches_from_main(
    sandbox: LocalInterpreterSandbox, fake_github: Any, generator_script: str
) -> None:
    RemoteToolchain().install(sandbox, fake_github, "o", "r")

    raw_calls = [call for call in fake_github.calls if call[0] == "raw"]
    assert {call[3] for call in raw_calls} == {"refs/heads/main"}
    assert {call[4] for call in raw_calls} == {
        "builder/build.py",
        "builder/licenses.json",
        "macros/openrecon/neurodocker.yaml",
    }
    assert sandbox.read_file("/repo/builder/build.py") == generator_script


def test_local_override_stages_script_and_fetches_data(
    sandbox: LocalInterpreterSandbox, fake_github: Any
) -> None:
    LocalOverrideToolchain("SOURCE = 'local'\n").install(
        sandbox, fake_github, "o", "r"
    )

    fetched = {call[4] for call in fake_github.calls if call[0] == "raw"}
    assert "builder/build.py" not in fetched
    assert "builder/licenses.json" in fetched
    assert sandbox.read_file("/repo/builder/build.py") == "SOURCE = 'local'\n"
