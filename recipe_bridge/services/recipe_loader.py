"""Load recipes from the remote repository or the local checkout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from recipe_bridge import config
from recipe_bridge.models.recipe import (Recipe, merge_additional_files,
                                         migrate_legacy_recipe)
from recipe_bridge.models.repository import RemoteFileDescriptor
from recipe_bridge.services.serializer import load_recipe
from recipe_bridge.storage.local_directory import LocalDirectoryBridge

_LOGGER = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"


class TextFetcher(Protocol):
    def fetch_text(self, url: str) -> str:
        ...


@dataclass(frozen=True)
class LoadedRecipe:
    """A parsed recipe together with the exact text it was parsed from."""

    recipe: Recipe
    raw_text: str
    source: str


def _prepare(raw_text: str, fetch_file) -> Recipe:
    recipe = migrate_legacy_recipe(load_recipe(raw_text))
    return merge_additional_files(recipe, fetch_file)


def load_remote_recipe(
    client: TextFetcher, descriptor: RemoteFileDescriptor
) -> LoadedRecipe:
    """Download, parse and migrate the recipe behind ``descriptor``.

    Files referenced by ``file`` directives are fetched from the same remote
    directory as the recipe.
    """
    raw_text = client.fetch_text(descriptor.download_url)
    base_url = descriptor.download_url
    if base_url.endswith(config.RECIPE_FILENAME):
        base_url = base_url[: -len(config.RECIPE_FILENAME)]

    def _fetch(filename: str) -> str:
        return client.fetch_text(f"{base_url}{filename}")

    _LOGGER.info("Loaded remote recipe %s", descriptor.recipe_name)
    return LoadedRecipe(
        recipe=_prepare(raw_text, _fetch),
        raw_text=raw_text,
        source=SOURCE_REMOTE,
    )


def load_local_recipe(
    bridge: LocalDirectoryBridge, name: str
) -> Optional[LoadedRecipe]:
    """Read recipe ``name`` from the open checkout; None when absent."""
    handle = bridge.read_recipe(name)
    if handle is None:
        return None

    def _fetch(filename: str) -> Optional[str]:
        return bridge.read_auxiliary_file(handle.name, filename)

    _LOGGER.info("Loaded local recipe %s", handle.name)
    return LoadedRecipe(
        recipe=_prepare(handle.content, _fetch),
        raw_text=handle.content,
        source=SOURCE_LOCAL,
    )
