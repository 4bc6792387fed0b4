"""Command-line access to recipe listings, autosaves and generation."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from recipe_bridge import config
from recipe_bridge.errors import RecipeBridgeError
from recipe_bridge.logging_config import configure_logging
from recipe_bridge.models.recipe import migrate_legacy_recipe
from recipe_bridge.sandbox.orchestrator import BuildOptions
from recipe_bridge.services.registry import ServiceRegistry
from recipe_bridge.services.serializer import load_recipe, normalize
from recipe_bridge.storage.autosave import age_label
from recipe_bridge.storage.local_directory import StaticDirectoryPicker

logger = logging.getLogger(__name__)


class CLIApp:
    """Run one parsed command against a service registry."""

    def __init__(
        self,
        registry: Optional[ServiceRegistry] = None,
        *,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self._registry = registry or ServiceRegistry()
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr

    def run(self, args: argparse.Namespace) -> int:
        handlers = {
            ("remote", "list"): self._remote_list,
            ("remote", "status"): self._remote_status,
            ("local", "list"): self._local_list,
            ("autosave", "list"): self._autosave_list,
            ("autosave", "delete"): self._autosave_delete,
            ("normalize", None): self._normalize,
            ("generate", None): self._generate,
        }
        handler = handlers[(args.command, getattr(args, "action", None))]
        try:
            return handler(args)
        except (RecipeBridgeError, OSError, ValueError) as error:
            logger.warning("Command failed: %s", error)
            self._err(f"error: {error}")
            return 1
        finally:
            self._registry.dispose()

    def _remote_list(self, args: argparse.Namespace) -> int:
        cache = self._registry.remote_cache
        if args.refresh:
            cache.invalidate()
        snapshot = cache.get_snapshot()
        if snapshot.stale:
            self._err("warning: remote repository unreachable; listing is stale")
        for name in sorted(item.recipe_name for item in snapshot.files):
            self._out(name)
        return 0

    def _remote_status(self, args: argparse.Namespace) -> int:
        status = self._registry.remote_cache.cache_status()
        if status.expires_at is None:
            self._out("cache: empty")
        else:
            state = "valid" if status.is_valid else "expired"
            self._out(f"cache: {state} (expires {status.expires_at.isoformat()})")
        return 0

    def _local_list(self, args: argparse.Namespace) -> int:
        bridge = self._open_local(args.repo)
        for handle in bridge.list_recipes():
            self._out(handle.name)
        return 0

    def _autosave_list(self, args: argparse.Namespace) -> int:
        for entry in self._registry.autosave_store.list():
            self._out(
                f"{entry.id}\t{entry.name}\t{entry.version}\t"
                f"{age_label(entry.last_modified)}"
            )
        return 0

    def _autosave_delete(self, args: argparse.Namespace) -> int:
        self._registry.autosave_store.delete(args.id)
        return 0

    def _normalize(self, args: argparse.Namespace) -> int:
        self._out(normalize(Path(args.file).read_text(encoding="utf-8")))
        return 0

    def _generate(self, args: argparse.Namespace) -> int:
        recipe = migrate_legacy_recipe(
            load_recipe(Path(args.file).read_text(encoding="utf-8"))
        )
        if args.repo is not None:
            self._open_local(args.repo)
        options = BuildOptions(
            architecture=args.arch,
            ignore_architecture=args.ignore_arch,
            max_parallel_jobs=args.jobs,
            options=_parse_options(args.option),
        )
        outcome = self._registry.orchestrator.validate(
            recipe, options, output_dir=args.output
        )
        if outcome.result is not None:
            self._out(outcome.result.dockerfile)
            return 0
        if outcome.rejection is not None:
            self._err(outcome.rejection.message)
        else:
            self._err(f"error: {outcome.error}")
        return 1

    def _open_local(self, repo: Path):
        bridge = self._registry.local_bridge
        bridge.set_picker(StaticDirectoryPicker(repo))
        bridge.open_root()
        return bridge

    def _out(self, line: str) -> None:
        print(line, file=self._stdout)

    def _err(self, line: str) -> None:
        print(line, file=self._stderr)


def _parse_options(pairs: Optional[List[str]]) -> Dict[str, str]:
    options: Dict[str, str] = {}
    for pair in pairs or []:
        key, separator, value = pair.partition("=")
        if not separator or not key:
            raise ValueError(f"Options must look like KEY=VALUE, got {pair!r}")
        options[key] = value
    return options


def build_arg_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(
        prog="recipe-bridge",
        description=(
            "Recipe Bridge CLI: list, cache and generate container "
            "build recipes."
        ),
    )
    commands = argument_parser.add_subparsers(dest="command", required=True)

    remote = commands.add_parser("remote", help="Published recipe listing.")
    remote_actions = remote.add_subparsers(dest="action", required=True)
    remote_list = remote_actions.add_parser("list", help="List published recipes.")
    remote_list.add_argument(
        "--refresh",
        action="store_true",
        help="Drop the cached listing before fetching.",
    )
    remote_actions.add_parser("status", help="Show cached listing validity.")

    local = commands.add_parser("local", help="Local repository checkout.")
    local_actions = local.add_subparsers(dest="action", required=True)
    local_list = local_actions.add_parser("list", help="List local recipes.")
    local_list.add_argument(
        "--repo", type=Path, required=True, help="Path to the checkout."
    )

    autosave = commands.add_parser("autosave", help="Autosaved recipes.")
    autosave_actions = autosave.add_subparsers(dest="action", required=True)
    autosave_actions.add_parser("list", help="List autosaved recipes.")
    autosave_delete = autosave_actions.add_parser(
        "delete", help="Delete an autosaved recipe."
    )
    autosave_delete.add_argument("id", help="Entry id from 'autosave list'.")

    normalize_cmd = commands.add_parser(
        "normalize", help="Print the canonical form of a recipe file."
    )
    normalize_cmd.add_argument("file", type=Path)

    generate = commands.add_parser(
        "generate", help="Generate the Dockerfile for a recipe file."
    )
    generate.add_argument("file", type=Path)
    generate.add_argument(
        "--repo",
        type=Path,
        default=None,
        help="Use builder/build.py from this local checkout.",
    )
    generate.add_argument(
        "--arch",
        choices=config.SUPPORTED_ARCHITECTURES,
        default=config.DEFAULT_ARCHITECTURE,
    )
    generate.add_argument("--ignore-arch", action="store_true")
    generate.add_argument(
        "--jobs", type=int, default=config.DEFAULT_MAX_PARALLEL_JOBS
    )
    generate.add_argument(
        "--option",
        action="append",
        metavar="KEY=VALUE",
        help="Generator option; may be repeated.",
    )
    generate.add_argument("--output", default=config.DEFAULT_OUTPUT_DIR)
    return argument_parser


def main(
    argv: Optional[Sequence[str]] = None,
    registry: Optional[ServiceRegistry] = None,
) -> int:
    configure_logging()
    argument_parser = build_arg_parser()
    parsed_args = argument_parser.parse_args(argv)

    app = CLIApp(registry)
    return app.run(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
