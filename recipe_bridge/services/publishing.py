"""Links that hand a recipe over to the hosted repository for publishing."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlencode

from recipe_bridge import config
from recipe_bridge.models.recipe import recipe_name
from recipe_bridge.utils.env import repository_coordinates

_UNSAFE_URL_CHARS = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True)
class PublishLink:
    """New-file link; ``requires_clipboard`` means the YAML was left out."""

    url: str
    requires_clipboard: bool


def _repository_url() -> str:
    owner, repo, _ = repository_coordinates()
    return f"{config.GITHUB_WEB_URL}/{owner}/{repo}"


def container_url_name(
    recipe: Mapping[str, Any], today: Optional[dt.date] = None
) -> str:
    name = recipe_name(recipe)
    if name:
        return _UNSAFE_URL_CHARS.sub("-", name.lower())
    day = today or dt.date.today()
    return f"untitled-{day.isoformat()}"


def github_tree_url(recipe: Mapping[str, Any]) -> str:
    """Browse URL of the recipe directory, or "" for an unnamed recipe."""
    if not recipe_name(recipe):
        return ""
    _, _, branch = repository_coordinates()
    return (
        f"{_repository_url()}/tree/{branch}/{config.RECIPES_DIR}/"
        f"{container_url_name(recipe)}"
    )


def build_publish_link(recipe: Mapping[str, Any], yaml_text: str) -> PublishLink:
    """Build the "create new file" URL for ``recipe``.

    The YAML travels in the URL only when it fits within the size limit;
    otherwise the caller has to paste it by hand.
    """
    _, _, branch = repository_coordinates()
    too_large = len(yaml_text.encode("utf-8")) > config.PUBLISH_URL_SIZE_LIMIT
    params = {"filename": config.RECIPE_FILENAME}
    if not too_large:
        params["value"] = yaml_text
    url = (
        f"{_repository_url()}/new/{branch}/{config.RECIPES_DIR}/"
        f"{quote(recipe_name(recipe))}?{urlencode(params)}"
    )
    return PublishLink(url=url, requires_clipboard=too_large)
