"""Recipe helpers shared by every recipe source.

A recipe is kept as the plain mapping produced by the YAML loader; this
module only knows the handful of fields the acquisition layer reads or
rewrites. Every helper returns a new mapping and leaves its input untouched.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from recipe_bridge import config

_LOGGER = logging.getLogger(__name__)

Recipe = Dict[str, Any]

_JINJA2_SYNTAX = re.compile(r"\{\{|\}\}|\{%|%\}")

LEGACY_FIELDS = ("files", "deploy", "tests")


def new_recipe() -> Recipe:
    """Return the blank recipe offered when a user starts from scratch."""
    return {
        "name": "",
        "version": "",
        "architectures": [config.DEFAULT_ARCHITECTURE],
        "structured_readme": {
            "description": "",
            "example": "",
            "documentation": "",
            "citation": "",
        },
        "build": {
            "kind": "neurodocker",
            "base-image": "ubuntu:24.04",
            "pkg-manager": "apt",
            "directives": [],
        },
    }


def recipe_name(recipe: Mapping[str, Any]) -> str:
    """Return the trimmed recipe name, or an empty string."""
    name = recipe.get("name")
    return name.strip() if isinstance(name, str) else ""


def recipe_version(recipe: Mapping[str, Any]) -> str:
    version = recipe.get("version")
    return "" if version is None else str(version)


def _directives(recipe: Mapping[str, Any]) -> List[Any]:
    build = recipe.get("build")
    if not isinstance(build, Mapping):
        return []
    directives = build.get("directives")
    return list(directives) if isinstance(directives, list) else []


def _strip_comment_lines(directives: List[Any]) -> List[Any]:
    cleaned: List[Any] = []
    for directive in directives:
        if isinstance(directive, dict) and isinstance(
            directive.get("run"), list
        ):
            directive = dict(directive)
            directive["run"] = [
                command
                for command in directive["run"]
                if isinstance(command, str)
                and command.strip()
                and not command.strip().startswith("#")
            ]
        elif isinstance(directive, dict) and isinstance(
            directive.get("group"), list
        ):
            directive = dict(directive)
            directive["group"] = _strip_comment_lines(directive["group"])
        cleaned.append(directive)
    return cleaned


def migrate_legacy_recipe(recipe: Mapping[str, Any]) -> Recipe:
    """Fold legacy top-level ``files``/``deploy``/``tests`` into directives.

    The migrated directives are placed ahead of the existing ones, in the
    order files, deploy, tests. Pure comment and blank lines are dropped from
    every ``run`` list, including those nested in groups.
    """
    migrated: Recipe = copy.deepcopy(dict(recipe))
    leading: List[Any] = []

    files = migrated.get("files")
    if isinstance(files, list):
        leading.extend({"file": entry} for entry in files)
    if migrated.get("deploy"):
        leading.append({"deploy": migrated["deploy"]})
    tests = migrated.get("tests")
    if isinstance(tests, list):
        leading.extend({"test": entry} for entry in tests)

    build = migrated.get("build")
    if isinstance(build, dict):
        build["directives"] = _strip_comment_lines(
            leading + _directives(migrated)
        )
    elif leading:
        _LOGGER.warning(
            "Recipe %r has legacy fields but no build section",
            recipe_name(migrated),
        )

    for legacy in LEGACY_FIELDS:
        migrated.pop(legacy, None)
    return migrated


def merge_additional_files(
    recipe: Mapping[str, Any],
    fetch_file: Callable[[str], Optional[str]],
) -> Recipe:
    """Inline ``file`` directives that reference a sibling ``filename``.

    ``fetch_file`` receives the filename relative to the recipe directory. A
    directive keeps its ``filename`` when the fetch fails or returns None.
    """
    merged: Recipe = copy.deepcopy(dict(recipe))

    def _process(directive: Any) -> Any:
        if not isinstance(directive, dict):
            return directive
        file_info = directive.get("file")
        if isinstance(file_info, dict) and file_info.get("filename"):
            filename = str(file_info["filename"])
            try:
                contents = fetch_file(filename)
            except Exception as exc:  # noqa: BLE001 - keep loading the recipe
                _LOGGER.error(
                    "Failed to fetch file %s: %s", filename, exc
                )
                contents = None
            if contents is not None:
                file_info["contents"] = contents
                del file_info["filename"]
        elif isinstance(directive.get("group"), list):
            directive["group"] = [_process(item) for item in directive["group"]]
        return directive

    build = merged.get("build")
    if isinstance(build, dict) and isinstance(build.get("directives"), list):
        build["directives"] = [_process(item) for item in build["directives"]]
    return merged


def structured_readme_to_text(
    structured: Mapping[str, Any], name: str, version: str
) -> str:
    """Render a structured readme into the module help text layout."""

    def _field(key: str) -> str:
        value = structured.get(key)
        return value.strip() if isinstance(value, str) else ""

    citation = _field("citation")
    needs_raw_block = bool(_JINJA2_SYNTAX.search(citation))
    if needs_raw_block:
        citation = f"{{% raw %}}\n{citation}\n{{% endraw %}}"

    lines = [
        "----------------------------------",
        f"## {name}/{version} ##",
        "",
        _field("description"),
        "",
        "Example:",
        "```",
        _field("example"),
        "```",
        "",
        f"More documentation can be found here: {_field('documentation')}",
        "",
        "Citation:",
        "```",
        citation,
        "```",
    ]
    if needs_raw_block:
        lines.extend(
            [
                "",
                "Note: Citation content is wrapped in Jinja2 raw blocks to "
                "prevent template processing conflicts with BibTeX syntax.",
            ]
        )
    lines.extend(
        [
            "",
            f"To run container outside of this environment: ml {name}/{version}",
            "",
            "----------------------------------",
        ]
    )
    return "\n".join(lines)
