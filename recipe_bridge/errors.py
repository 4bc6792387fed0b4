"""Common errors raised across recipe sources and the build bridge."""

from __future__ import annotations

from typing import Optional


class RecipeBridgeError(RuntimeError):
    """Base class for subsystem failures."""


class PermissionDenied(RecipeBridgeError):
    """Raised when the user declines a directory grant."""


class Unsupported(RecipeBridgeError):
    """Raised when directory grants are unavailable in this context."""


class InsecureContext(RecipeBridgeError):
    """Raised when a directory grant is requested without a secure context."""


class InvalidRepository(RecipeBridgeError):
    """Raised when a granted directory is not a usable recipe repository."""


class DirectoryNotOpen(RecipeBridgeError):
    """Raised when a local operation runs without an open directory grant."""


class StaleHandleError(RecipeBridgeError):
    """Raised when a handle issued under a previous grant is used."""


class RecipeNotFound(RecipeBridgeError, LookupError):
    """Raised when a named recipe is not present in the requested source."""


class TransientFetchFailure(RecipeBridgeError):
    """Raised when the remote repository cannot be reached or answers badly."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SandboxError(RecipeBridgeError):
    """Raised when a sandbox operation fails after provisioning."""


class SandboxProvisioningFailure(SandboxError):
    """Raised when the sandbox cannot be provisioned; the instance is dead."""


class SerializationFailure(RecipeBridgeError):
    """Raised when a recipe cannot be parsed or serialized."""
