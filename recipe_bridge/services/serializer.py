"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Canonical YAML rendering of recipes for comparison and export.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from recipe_bridge.errors import SerializationFailure
from recipe_bridge.models.recipe import Recipe, recipe_name

_LOGGER = logging.getLogger(__name__)

EXPORT_FALLBACK_NAME = "container"


class _RecipeDumper(yaml.SafeDumper):
    """Safe dumper that never emits anchors or aliases."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _dump(recipe: Mapping[str, Any], *, sort_keys: bool) -> str:
    try:
        return yaml.dump(
            dict(recipe),
            Dumper=_RecipeDumper,
            default_flow_style=False,
            sort_keys=sort_keys,
            indent=2,
            width=float("inf"),
            allow_unicode=True,
        )
    except yaml.YAMLError as exc:
        raise SerializationFailure(f"Cannot serialize recipe: {exc}") from exc


def load_recipe(text: str) -> Recipe:
    """Parse recipe YAML; the top level must be a mapping."""
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SerializationFailure(f"Invalid recipe YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        raise SerializationFailure("Recipe YAML must contain a mapping")
    return loaded


def dump_recipe(recipe: Mapping[str, Any], *, sort_keys: bool = False) -> str:
    """Render ``recipe`` as YAML, keeping key insertion order by default."""
    return _dump(recipe, sort_keys=sort_keys)


def normalize(recipe_or_text: Union[Mapping[str, Any], str]) -> str:
    """Return the canonical text used to compare two recipes.

    Text input is parsed first; text that is not a YAML mapping comes back
    trimmed but otherwise unchanged.
    """
    if isinstance(recipe_or_text, str):
        try:
            recipe = load_recipe(recipe_or_text)
        except SerializationFailure as exc:
            _LOGGER.debug("Normalizing unparseable text verbatim: %s", exc)
            return recipe_or_text.strip()
    else:
        recipe = dict(recipe_or_text)
    return _dump(recipe, sort_keys=True).strip()


def export_recipe(recipe: Mapping[str, Any], directory: Union[str, Path]) -> Path:
    """Write ``<name>.yaml`` into ``directory`` and return its path."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    stem = recipe_name(recipe) or EXPORT_FALLBACK_NAME
    stem = stem.replace("/", "-").replace("\\", "-")
    target = target_dir / f"{stem}.yaml"
    target.write_text(dump_recipe(recipe), encoding="utf-8")
    _LOGGER.info("Exported recipe to %s", target)
    return target
