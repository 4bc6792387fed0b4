"""Interpreter sandbox and the build orchestrator that drives it."""

from .base import InterpreterSandbox
from .local import LocalInterpreterSandbox
from .orchestrator import (BuildOptions, BuildOrchestrator, BuildResult,
                           GenerationRejected, OrchestratorState,
                           ValidationOutcome, prepare_recipe_payload)
from .toolchain import (LocalOverrideToolchain, RemoteToolchain,
                        select_toolchain)

__all__ = [
    "InterpreterSandbox",
    "LocalInterpreterSandbox",
    "BuildOptions",
    "BuildOrchestrator",
    "BuildResult",
    "GenerationRejected",
    "OrchestratorState",
    "ValidationOutcome",
    "prepare_recipe_payload",
    "LocalOverrideToolchain",
    "RemoteToolchain",
    "select_toolchain",
]
