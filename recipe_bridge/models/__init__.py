"""Domain model package exports."""

from .recipe import (Recipe, merge_additional_files, migrate_legacy_recipe,
                     new_recipe, recipe_name, recipe_version,
                     structured_readme_to_text)
from .repository import (CacheStatus, RemoteFileDescriptor, RepositoryInfo,
                         RepositorySnapshot, is_recipe_path)

__all__ = [
    "CacheStatus",
    "Recipe",
    "RemoteFileDescriptor",
    "RepositoryInfo",
    "RepositorySnapshot",
    "is_recipe_path",
    "merge_additional_files",
    "migrate_legacy_recipe",
    "new_recipe",
    "recipe_name",
    "recipe_version",
    "structured_readme_to_text",
]
