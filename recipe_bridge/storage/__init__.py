"""Persistence for autosaves, cached listings and the local checkout."""

from .autosave import (AutosaveStore, DebouncedAutosave, SavedRecipeEntry,
                       SaveStatus, age_label)
from .kv_store import InMemoryKeyValueStore, KeyValueStore, LocalKeyValueStore
from .local_directory import (DirectoryGrant, DirectoryHandle,
                              DirectoryPicker, LocalDirectoryBridge,
                              LocalRecipeHandle, StaticDirectoryPicker)
from .snapshot_cache import RemoteRepositoryCache, snapshot_key

__all__ = [
    "AutosaveStore",
    "DebouncedAutosave",
    "SavedRecipeEntry",
    "SaveStatus",
    "age_label",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "LocalKeyValueStore",
    "DirectoryGrant",
    "DirectoryHandle",
    "DirectoryPicker",
    "LocalDirectoryBridge",
    "LocalRecipeHandle",
    "StaticDirectoryPicker",
    "RemoteRepositoryCache",
    "snapshot_key",
]
