"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Central configuration constants for recipe acquisition and the build bridge.
"""

from __future__ import annotations

# Remote repository ---------------------------------------------------------

REPO_OWNER = "neurodesk"
"""Default owner of the published recipe repository."""

REPO_NAME = "neurocontainers"
"""Default name of the published recipe repository."""

REPO_BRANCH = "main"
"""Branch whose tree is listed for recipe discovery."""

GITHUB_API_URL = "https://api.github.com"
GITHUB_WEB_URL = "https://github.com"
RAW_CONTENT_URL = "https://raw.githubusercontent.com"

API_TIMEOUT_SECONDS = 10
RAW_TIMEOUT_SECONDS = 30

# Repository layout ---------------------------------------------------------

RECIPES_DIR = "recipes"
RECIPE_FILENAME = "build.yaml"
BUILDER_DIR = "builder"
BUILDER_SCRIPT = "build.py"
BUILDER_SCRIPT_PATH = f"{BUILDER_DIR}/{BUILDER_SCRIPT}"

REPOSITORY_MARKERS = ("README.md", ".github", "builder")
"""Soft signals that a granted directory is a full recipe repository."""

MIN_REPOSITORY_MARKERS = 2

# Local persistence ---------------------------------------------------------

AUTOSAVE_KEY = "neurocontainers-builder-saved"
SNAPSHOT_KEY = "github-build-yaml-files"

AUTOSAVE_CAPACITY = 10
AUTOSAVE_DEBOUNCE_SECONDS = 0.5

SNAPSHOT_TTL_SECONDS = 24 * 60 * 60
"""A day-long TTL amortizes the recursive tree walk across a session."""

DEFAULT_STATE_DIR = "~/.cache/recipe-bridge"

# Build sandbox -------------------------------------------------------------

SUPPORTED_ARCHITECTURES = ("x86_64", "aarch64")
DEFAULT_ARCHITECTURE = "x86_64"
DEFAULT_MAX_PARALLEL_JOBS = 4
DEFAULT_OUTPUT_DIR = "/tmp/build"

SANDBOX_PACKAGES = ("pyyaml", "jinja2", "neurodocker")
"""Add-on packages needed for YAML parsing and Dockerfile generation."""

SANDBOX_REPO_PATH = "/repo"
SANDBOX_RECIPE_PATH = "/recipe"
SANDBOX_TMP_PATH = "/tmp"
SANDBOX_BUILDER_PATH = f"{SANDBOX_REPO_PATH}/{BUILDER_DIR}"
SANDBOX_MODULE_NAME = "builder"

TOOLCHAIN_REF = "refs/heads/main"
TOOLCHAIN_DATA_FILES = (
    "builder/licenses.json",
    "macros/openrecon/neurodocker.yaml",
)
TOOLCHAIN_FILES = (BUILDER_SCRIPT_PATH, *TOOLCHAIN_DATA_FILES)

# Publishing ----------------------------------------------------------------

PUBLISH_URL_SIZE_LIMIT = 6 * 1024
"""Recipes larger than this are copied by hand instead of sent in the URL."""
