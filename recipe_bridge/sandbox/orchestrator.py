"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Drives the interpreter sandbox from provisioning through Dockerfile
generation.

Provisioning runs at most once per orchestrator. Callers that arrive while
it is in flight wait on the same future. A failed provisioning is terminal:
the orchestrator stays FAILED and a new instance is needed to retry.
Generation calls are serialized because the sandbox holds one interpreter
namespace.
"""

from __future__ import annotations

import copy
import enum
import logging
import posixpath
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

from recipe_bridge import config
from recipe_bridge.errors import SandboxError, SandboxProvisioningFailure
from recipe_bridge.models.recipe import Recipe
from recipe_bridge.sandbox.base import InterpreterSandbox
from recipe_bridge.sandbox.toolchain import (OverrideScriptSource,
                                             RawFileFetcher, Toolchain,
                                             select_toolchain)
from recipe_bridge.utils.env import repository_coordinates

_LOGGER = logging.getLogger(__name__)

REJECTION_MESSAGE = (
    "Failed to generate container. Please check your recipe configuration."
)
README_FILENAME = "README.md"


class OrchestratorState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    PROVISIONING = "provisioning"
    READY = "ready"
    GENERATING = "generating"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOptions:
    """Generator options; ``options`` entries are passed as ``key=value``."""

    architecture: str = config.DEFAULT_ARCHITECTURE
    ignore_architecture: bool = False
    max_parallel_jobs: int = config.DEFAULT_MAX_PARALLEL_JOBS
    options: Mapping[str, str] = field(default_factory=dict)
    recreate_output_dir: bool = False

    def __post_init__(self) -> None:
        if self.architecture not in config.SUPPORTED_ARCHITECTURES:
            raise ValueError(
                f"Unsupported architecture {self.architecture!r}; expected "
                f"one of {', '.join(config.SUPPORTED_ARCHITECTURES)}"
            )
        if self.max_parallel_jobs <= 0:
            raise ValueError("max_parallel_jobs must be positive.")

    def option_strings(self) -> Optional[List[str]]:
        if not self.options:
            return None
        return [f"{key}={value}" for key, value in self.options.items()]


@dataclass(frozen=True)
class BuildResult:
    name: str
    version: str
    tag: str
    dockerfile: str
    readme: str
    build_directory: str
    deploy_bins: tuple[str, ...] = ()
    deploy_path: tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationRejected:
    """The generator judged the recipe unbuildable; not an error."""

    message: str = REJECTION_MESSAGE


@dataclass(frozen=True)
class ValidationOutcome:
    success: bool
    result: Optional[BuildResult] = None
    rejection: Optional[GenerationRejected] = None
    error: Optional[str] = None


def prepare_recipe_payload(recipe: Mapping[str, Any]) -> Recipe:
    """Deep copy of ``recipe`` as handed to the generator.

    An absent, null or blank ``readme_url`` is removed so it cannot hide the
    inline readme; any other value is kept.
    """
    payload: Recipe = copy.deepcopy(dict(recipe))
    if "readme_url" in payload:
        value = payload["readme_url"]
        if value is None or (isinstance(value, str) and not value.strip()):
            del payload["readme_url"]
    return payload


def _field(raw: Any, name: str, default: Any = None) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name, default)
    return getattr(raw, name, default)


class BuildOrchestrator:
    """Provision the sandbox once and run the generator inside it."""

    def __init__(
        self,
        sandbox_factory: Callable[[], InterpreterSandbox],
        fetcher: RawFileFetcher,
        *,
        override_source: Optional[OverrideScriptSource] = None,
        toolchain: Optional[Toolchain] = None,
        packages: Sequence[str] = config.SANDBOX_PACKAGES,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
    ) -> None:
        default_owner, default_repo, _ = repository_coordinates()
        self._sandbox_factory = sandbox_factory
        self._fetcher = fetcher
        self._override_source = override_source
        self._toolchain = toolchain
        self._packages = tuple(packages)
        self._owner = owner or default_owner
        self._repo = repo or default_repo

        self._state_lock = threading.Lock()
        self._generate_lock = threading.Lock()
        self._state = OrchestratorState.UNINITIALIZED
        self._provisioning: Optional[Future] = None
        self._provision_count = 0
        self._sandbox: Optional[InterpreterSandbox] = None
        self._generator: Any = None
        self._toolchain_name: Optional[str] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def provision_count(self) -> int:
        """Number of provisioning sequences started; at most one."""
        return self._provision_count

    @property
    def toolchain_name(self) -> Optional[str]:
        return self._toolchain_name

    def available_architectures(self) -> List[str]:
        return list(config.SUPPORTED_ARCHITECTURES)

    def ensure_ready(self) -> Any:
        """Provision on first use and return the loaded generator module."""
        with self._state_lock:
            future = self._provisioning
            owner = future is None
            if future is None:
                future = Future()
                self._provisioning = future
                self._state = OrchestratorState.PROVISIONING

        if owner:
            try:
                generator = self._provision()
            except Exception as exc:  # noqa: BLE001 - any failure is fatal
                failure = (
                    exc
                    if isinstance(exc, SandboxProvisioningFailure)
                    else SandboxProvisioningFailure(
                        f"Sandbox provisioning failed: {exc}"
                    )
                )
                if failure is not exc:
                    failure.__cause__ = exc
                with self._state_lock:
                    self._state = OrchestratorState.FAILED
                _LOGGER.error("%s", failure)
                future.set_exception(failure)
            else:
                with self._state_lock:
                    self._generator = generator
                    self._state = OrchestratorState.READY
                future.set_result(generator)
        return future.result()

    def generate(
        self,
        recipe: Mapping[str, Any],
        output_dir: str = config.DEFAULT_OUTPUT_DIR,
        options: Optional[BuildOptions] = None,
    ) -> Optional[BuildResult]:
        """Generate the Dockerfile for ``recipe`` without building it.

        Returns None when the generator judges the recipe unbuildable.
        Sandbox faults raise :class:`SandboxError`.
        """
        generator = self.ensure_ready()
        sandbox = self._require_sandbox()
        opts = options or BuildOptions()
        payload = prepare_recipe_payload(recipe)

        with self._generate_lock:
            self._set_state(OrchestratorState.GENERATING)
            try:
                raw = generator.generate_from_description(
                    sandbox.resolve(config.SANDBOX_REPO_PATH),
                    sandbox.resolve(config.SANDBOX_RECIPE_PATH),
                    payload,
                    sandbox.resolve(output_dir),
                    opts.architecture,
                    opts.ignore_architecture,
                    False,
                    opts.max_parallel_jobs,
                    opts.option_strings(),
                    opts.recreate_output_dir,
                    True,
                )
                if raw is None:
                    _LOGGER.info("Generator rejected recipe %r", payload.get("name"))
                    return None
                return self._collect(sandbox, raw)
            except SandboxError:
                raise
            except Exception as exc:  # noqa: BLE001 - surfaced as SandboxError
                raise SandboxError(f"Generation failed: {exc}") from exc
            finally:
                self._set_state(OrchestratorState.READY)

    def validate(
        self,
        recipe: Mapping[str, Any],
        options: Optional[BuildOptions] = None,
        output_dir: str = config.DEFAULT_OUTPUT_DIR,
    ) -> ValidationOutcome:
        try:
            result = self.generate(recipe, output_dir, options)
        except SandboxError as exc:
            return ValidationOutcome(success=False, error=str(exc))
        if result is None:
            return ValidationOutcome(
                success=False, rejection=GenerationRejected()
            )
        return ValidationOutcome(success=True, result=result)

    def init_new_recipe_template(self, name: str, version: str) -> str:
        """Ask the generator to scaffold a recipe and return its text."""
        generator = self.ensure_ready()
        sandbox = self._require_sandbox()
        with self._generate_lock:
            try:
                generator.init_new_recipe(
                    sandbox.resolve(config.SANDBOX_REPO_PATH), name, version
                )
            except Exception as exc:  # noqa: BLE001 - surfaced as SandboxError
                raise SandboxError(
                    f"Initializing recipe {name} failed: {exc}"
                ) from exc
            return sandbox.read_file(
                posixpath.join(
                    config.SANDBOX_REPO_PATH,
                    config.RECIPES_DIR,
                    name,
                    config.RECIPE_FILENAME,
                )
            )

    def validate_license(self, spdx_id: str) -> bool:
        try:
            generator = self.ensure_ready()
            return spdx_id in generator.load_spdx_licenses()
        except Exception as exc:  # noqa: BLE001 - reported as invalid
            _LOGGER.error("Error validating license %s: %s", spdx_id, exc)
            return False

    def download_with_cache(self, url: str, check_only: bool = False) -> str:
        generator = self.ensure_ready()
        try:
            return str(generator.download_with_cache(url, check_only))
        except Exception as exc:  # noqa: BLE001 - surfaced as SandboxError
            raise SandboxError(f"Download of {url} failed: {exc}") from exc

    def hash(self, obj: Any) -> str:
        generator = self.ensure_ready()
        try:
            return str(generator.hash_obj(obj))
        except Exception as exc:  # noqa: BLE001 - surfaced as SandboxError
            raise SandboxError(f"Hashing failed: {exc}") from exc

    def close(self) -> None:
        sandbox = self._sandbox
        if sandbox is not None:
            sandbox.close()

    def _provision(self) -> Any:
        self._provision_count += 1
        _LOGGER.info("Provisioning build sandbox")
        sandbox = self._sandbox_factory()
        self._sandbox = sandbox

        sandbox.install_packages(self._packages)
        for path in (
            config.SANDBOX_REPO_PATH,
            config.SANDBOX_RECIPE_PATH,
            config.SANDBOX_TMP_PATH,
            config.SANDBOX_BUILDER_PATH,
        ):
            sandbox.make_dirs(path)

        toolchain = self._toolchain or select_toolchain(self._override_source)
        self._toolchain_name = toolchain.name
        toolchain.install(sandbox, self._fetcher, self._owner, self._repo)

        generator = sandbox.import_module(
            config.SANDBOX_MODULE_NAME,
            posixpath.join(config.SANDBOX_BUILDER_PATH, config.BUILDER_SCRIPT),
        )
        _LOGGER.info("Build sandbox ready (%s toolchain)", toolchain.name)
        return generator

    def _collect(self, sandbox: InterpreterSandbox, raw: Any) -> BuildResult:
        build_directory = str(_field(raw, "build_directory", ""))
        dockerfile_name = str(_field(raw, "dockerfile_name", "Dockerfile"))
        dockerfile = sandbox.read_file(
            posixpath.join(build_directory, dockerfile_name)
        )

        readme_path = posixpath.join(build_directory, README_FILENAME)
        if sandbox.exists(readme_path):
            readme = sandbox.read_file(readme_path)
        else:
            readme = str(_field(raw, "readme", "") or "")

        return BuildResult(
            name=str(_field(raw, "name", "")),
            version=str(_field(raw, "version", "")),
            tag=str(_field(raw, "tag", "")),
            dockerfile=dockerfile,
            readme=readme,
            build_directory=build_directory,
            deploy_bins=tuple(_field(raw, "deploy_bins", None) or ()),
            deploy_path=tuple(_field(raw, "deploy_path", None) or ()),
        )

    def _require_sandbox(self) -> InterpreterSandbox:
        if self._sandbox is None:
            raise SandboxError("Sandbox is not provisioned")
        return self._sandbox

    def _set_state(self, state: OrchestratorState) -> None:
        with self._state_lock:
            if self._state is not OrchestratorState.FAILED:
                self._state = state
