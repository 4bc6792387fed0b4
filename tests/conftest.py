"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Shared fixtures and fakes for the test suite.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from recipe_bridge.utils import env


@pytest.fixture(autouse=True)
def _default_runtime_env(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path_factory: pytest.TempPathFactory,
) -> None:
    """
    _default_runtime_env: Isolate every test from the developer's environment.
    :param monkeypatch:
    :param tmp_path_factory:
    :returns:
    """

    monkeypatch.setattr(env, "_ENV_LOADED", True)
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test_token_123")
    for name in (
        "RECIPE_BRIDGE_REPO_OWNER",
        "RECIPE_BRIDGE_REPO_NAME",
        "RECIPE_BRIDGE_REPO_BRANCH",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    state_dir = tmp_path_factory.mktemp("state")
    monkeypatch.setenv("RECIPE_BRIDGE_STATE_DIR", str(state_dir))
    log_dir = tmp_path_factory.mktemp("logs")
    monkeypatch.setenv("LOG_FILE", str(Path(log_dir) / "recipe-bridge.log"))


class FakeClock:
    """Manually advanced clock usable as ``time_fn``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """Stand-in for ``threading.Timer`` that fires only when told to."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class FakeTimerFactory:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


EXAMPLE_RECIPE_YAML = """\
name: exampletool
version: "1.0"
architectures:
  - x86_64
build:
  kind: neurodocker
  base-image: ubuntu:24.04
  pkg-manager: apt
  directives:
    - install: wget
    - run:
        - echo hello
readme: Example tool for tests.
"""


GENERATOR_SCRIPT = '''\
import json
import os

SOURCE = "remote"
LAST_DESCRIPTION = None


def generate_from_description(repo_path, recipe_path, description, output_dir,
                              architecture, ignore_architecture, auto_build,
                              max_parallel_jobs, options, recreate_output_dir,
                              check_only):
    global LAST_DESCRIPTION
    LAST_DESCRIPTION = description
    build = description.get("build")
    if not isinstance(build, dict) or build.get("kind") != "neurodocker":
        return None
    if build.get("explode"):
        raise RuntimeError("generator exploded")
    name = description["name"]
    version = str(description.get("version", ""))
    build_dir = os.path.join(output_dir, name)
    os.makedirs(build_dir, exist_ok=True)
    lines = ["FROM " + build.get("base-image", "ubuntu:24.04")]
    for directive in build.get("directives", []):
        if "install" in directive:
            lines.append("RUN apt-get install -y " + directive["install"])
        for command in directive.get("run", []):
            lines.append("RUN " + command)
    lines.append("# arch=" + architecture)
    with open(os.path.join(build_dir, "Dockerfile"), "w") as handle:
        handle.write("\\n".join(lines) + "\\n")
    if "readme" in description and "readme_url" not in description:
        with open(os.path.join(build_dir, "README.md"), "w") as handle:
            handle.write(description["readme"])
    return {
        "name": name,
        "version": version,
        "tag": name + ":" + version,
        "build_directory": build_dir,
        "dockerfile_name": "Dockerfile",
        "readme": "fallback readme",
        "deploy_bins": ["tool"],
    }


def init_new_recipe(repo_path, name, version):
    target = os.path.join(repo_path, "recipes", name)
    os.makedirs(target, exist_ok=True)
    with open(os.path.join(target, "build.yaml"), "w") as handle:
        handle.write("name: %s\\nversion: '%s'\\n" % (name, version))


def load_spdx_licenses():
    here = os.path.dirname(__file__)
    with open(os.path.join(here, "licenses.json")) as handle:
        return {entry["licenseId"] for entry in json.load(handle)}


def hash_obj(obj):
    return str(sorted(obj.items()))


def download_with_cache(url, check_only=False):
    return "cached:" + url
'''

TOOLCHAIN_FILES = {
    "builder/build.py": GENERATOR_SCRIPT,
    "builder/licenses.json": '[{"licenseId": "MIT"}, {"licenseId": "GPL-3.0"}]',
    "macros/openrecon/neurodocker.yaml": "macros: []\n",
}


class FakeGitHubClient:
    """Records calls and serves a canned repository."""

    def __init__(
        self,
        *,
        tree: Optional[List[Dict[str, Any]]] = None,
        files: Optional[Dict[str, str]] = None,
        head_sha: str = "abc1234",
    ) -> None:
        self.tree = tree if tree is not None else [
            {
                "path": "recipes/exampletool/build.yaml",
                "type": "blob",
                "sha": "sha-example",
                "url": "https://api.github.com/blob/sha-example",
            },
            {"path": "recipes/exampletool", "type": "tree", "sha": "t1"},
            {"path": "README.md", "type": "blob", "sha": "r1"},
        ]
        self.files = files if files is not None else {
            "recipes/exampletool/build.yaml": EXAMPLE_RECIPE_YAML,
            **TOOLCHAIN_FILES,
        }
        self.head_sha = head_sha
        self.fail = False
        self.fail_commit = False
        self.calls: List[Tuple[str, ...]] = []

    def _check(self) -> None:
        from recipe_bridge.errors import TransientFetchFailure

        if self.fail:
            raise TransientFetchFailure("network unreachable")

    def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        self.calls.append(("branch", owner, repo, branch))
        self._check()
        return {"commit": {"sha": self.head_sha}}

    def get_latest_commit(
        self, owner: str, repo: str, branch: str
    ) -> Dict[str, Any]:
        from recipe_bridge.errors import TransientFetchFailure

        self.calls.append(("commit", owner, repo, branch))
        self._check()
        if self.fail_commit:
            raise TransientFetchFailure("commit lookup failed")
        return {
            "sha": self.head_sha,
            "html_url": f"https://github.com/{owner}/{repo}/commit/{self.head_sha}",
            "commit": {
                "message": "Update recipes",
                "author": {"name": "Dev", "date": "2024-01-01T00:00:00Z"},
            },
        }

    def get_tree(
        self, owner: str, repo: str, tree_sha: str
    ) -> List[Dict[str, Any]]:
        self.calls.append(("tree", owner, repo, tree_sha))
        self._check()
        return [dict(item) for item in self.tree]

    def fetch_text(self, url: str) -> str:
        from recipe_bridge.errors import TransientFetchFailure

        self.calls.append(("text", url))
        self._check()
        for path, content in self.files.items():
            if url.endswith("/" + path):
                return content
        raise TransientFetchFailure(f"404 for {url}", status_code=404)

    def fetch_raw_file(self, owner: str, repo: str, ref: str, path: str) -> str:
        from recipe_bridge.errors import TransientFetchFailure

        self.calls.append(("raw", owner, repo, ref, path))
        self._check()
        if path not in self.files:
            raise TransientFetchFailure(f"404 for {path}", status_code=404)
        return self.files[path]

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


def make_checkout(root: Path, recipes: Optional[Dict[str, str]] = None) -> Path:
    """Create a minimal local repository checkout under ``root``."""
    (root / "recipes").mkdir(parents=True)
    (root / "builder").mkdir()
    (root / "builder" / "build.py").write_text("# local builder\n")
    (root / "README.md").write_text("# recipes\n")
    (root / ".github").mkdir()
    for name, content in (recipes or {}).items():
        container = root / "recipes" / name
        container.mkdir()
        (container / "build.yaml").write_text(content)
    return root


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def fake_github() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def github_factory() -> Callable[..., FakeGitHubClient]:
    return FakeGitHubClient


@pytest.fixture
def checkout_factory() -> Callable[..., Path]:
    return make_checkout


@pytest.fixture
def example_yaml() -> str:
    return EXAMPLE_RECIPE_YAML


@pytest.fixture
def generator_script() -> str:
    return GENERATOR_SCRIPT


class RecordingInstaller:
    """Installer stand-in that records requests instead of running pip."""

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], Path]] = []

    def __call__(self, packages: List[str], target: Path) -> None:
        self.calls.append((list(packages), target))


@pytest.fixture
def installer() -> RecordingInstaller:
    return RecordingInstaller()


@pytest.fixture
def sandbox_factory(
    tmp_path: Path, installer: RecordingInstaller
) -> Callable[[], Any]:
    """Factory of local sandboxes rooted under the test's temp directory."""
    from recipe_bridge.sandbox.local import LocalInterpreterSandbox

    counter = {"value": 0}

    def _factory() -> LocalInterpreterSandbox:
        counter["value"] += 1
        return LocalInterpreterSandbox(
            tmp_path / f"sandbox-{counter['value']}", installer=installer
        )

    return _factory
