"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Editing session holding the single editable recipe.

The session only replaces its recipe after an operation has fully
succeeded, so a failed fetch, save or generation leaves the user's edits
in place.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from recipe_bridge import config
from recipe_bridge.errors import RecipeNotFound
from recipe_bridge.models.recipe import (Recipe, new_recipe, recipe_name,
                                         recipe_version,
                                         structured_readme_to_text)
from recipe_bridge.sandbox.orchestrator import (BuildOptions, BuildResult,
                                                ValidationOutcome)
from recipe_bridge.services.publishing import PublishLink, build_publish_link
from recipe_bridge.services.recipe_loader import (load_local_recipe,
                                                  load_remote_recipe)
from recipe_bridge.services.registry import ServiceRegistry
from recipe_bridge.services.serializer import dump_recipe, export_recipe
from recipe_bridge.storage.local_directory import LocalRecipeHandle

_LOGGER = logging.getLogger(__name__)


class EditingSession:
    """Load, edit, autosave and build one recipe at a time."""

    def __init__(self, registry: Optional[ServiceRegistry] = None) -> None:
        self._registry = registry or ServiceRegistry()
        self._recipe: Recipe = new_recipe()
        self._source: Optional[str] = None

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def recipe(self) -> Recipe:
        """A copy of the editable recipe."""
        return copy.deepcopy(self._recipe)

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def autosave_id(self) -> Optional[str]:
        return self._registry.autosave.current_id

    def new_recipe(self) -> Recipe:
        self._switch_to(new_recipe(), source=None, autosave_id=None)
        return self.recipe

    def load_remote(self, name: str) -> Recipe:
        """Load the published recipe ``name`` and record it as the baseline."""
        snapshot = self._registry.remote_cache.get_snapshot()
        descriptor = snapshot.find(name)
        if descriptor is None:
            raise RecipeNotFound(f"No published recipe named {name!r}")

        loaded = load_remote_recipe(self._registry.github_client, descriptor)
        self._switch_to(loaded.recipe, source=loaded.source, autosave_id=None)
        drift = self._registry.drift_detector
        drift.check_published(descriptor.recipe_name, snapshot.files)
        # Baseline from the migrated recipe, so migration alone is not drift.
        drift.record_published_baseline(dump_recipe(self._recipe))
        return self.recipe

    def load_local(self, name: str) -> Recipe:
        loaded = load_local_recipe(self._registry.local_bridge, name)
        if loaded is None:
            raise RecipeNotFound(f"No local recipe named {name!r}")
        self._switch_to(loaded.recipe, source=loaded.source, autosave_id=None)
        return self.recipe

    def load_autosaved(self, entry_id: str) -> Recipe:
        entry = self._registry.autosave_store.get(entry_id)
        if entry is None:
            raise RecipeNotFound(f"No autosaved recipe with id {entry_id!r}")
        self._switch_to(entry.recipe, source="autosave", autosave_id=entry.id)
        return self.recipe

    def update(self, recipe: Mapping[str, Any]) -> None:
        """Replace the editable recipe and schedule an autosave."""
        self._recipe = copy.deepcopy(dict(recipe))
        self._registry.autosave.schedule(self._recipe)

    def flush_autosave(self) -> Optional[str]:
        return self._registry.autosave.flush()

    def save_local(self) -> LocalRecipeHandle:
        """Write the recipe into the open local checkout."""
        name = recipe_name(self._recipe)
        if not name:
            raise ValueError("A recipe needs a name before it can be saved")
        return self._registry.local_bridge.write_recipe(
            name, dump_recipe(self._recipe)
        )

    def is_modified(self) -> bool:
        return self._registry.drift_detector.is_modified(self._recipe)

    def generate(
        self,
        options: Optional[BuildOptions] = None,
        output_dir: str = config.DEFAULT_OUTPUT_DIR,
    ) -> Optional[BuildResult]:
        return self._registry.orchestrator.generate(
            self._recipe, output_dir, options
        )

    def validate(self, options: Optional[BuildOptions] = None) -> ValidationOutcome:
        return self._registry.orchestrator.validate(self._recipe, options)

    def export(self, directory: Union[str, Path]) -> Path:
        return export_recipe(self._recipe, directory)

    def publish_link(self) -> PublishLink:
        return build_publish_link(self._recipe, dump_recipe(self._recipe))

    def readme_preview(self) -> str:
        """Module help text for the recipe.

        Built from ``structured_readme`` when present, else the plain
        ``readme`` text.
        """
        structured = self._recipe.get("structured_readme")
        if isinstance(structured, Mapping):
            return structured_readme_to_text(
                structured,
                recipe_name(self._recipe),
                recipe_version(self._recipe),
            )
        readme = self._recipe.get("readme")
        return readme if isinstance(readme, str) else ""

    def _switch_to(
        self,
        recipe: Recipe,
        *,
        source: Optional[str],
        autosave_id: Optional[str],
    ) -> None:
        autosave = self._registry.autosave
        autosave.flush()
        autosave.current_id = autosave_id
        self._registry.drift_detector.reset_baseline()
        self._recipe = copy.deepcopy(recipe)
        self._source = source
        _LOGGER.debug(
            "Editing %s from %s", recipe_name(recipe) or "new recipe", source
        )
