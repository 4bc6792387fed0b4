from __future__ import annotations

import datetime as dt
from urllib.parse import parse_qs, urlparse

import pytest

from recipe_bridge.services.publishing import (build_publish_link,
                                               container_url_name,
                                               github_tree_url)

RECIPE = {"name": "exampletool", "version": "1.0"}


def test_small_recipe_is_embedded_in_url() -> None:
    yaml_text = "name: exampletool\nversion: '1.0'\n"

    link = build_publish_link(RECIPE, yaml_text)

    parsed = urlparse(link.url)
    assert not link.requires_clipboard
    assert parsed.netloc == "github.com"
    assert parsed.path == (
        "/neurodesk/neurocontainers/new/main/recipes/exampletool"
    )
    query = parse_qs(parsed.query)
    assert query["filename"] == ["build.yaml"]
    assert query["value"] == [yaml_text]


def test_recipe_name_is_quoted_in_url_path() -> None:
    link = build_publish_link({"name": "my tool#1"}, "name: my tool#1\n")

    parsed = urlparse(link.url)
    assert parsed.path.endswith("/recipes/my%20tool%231")
    assert parse_qs(parsed.query)["filename"] == ["build.yaml"]
    assert not parsed.fragment


def test_recipe_at_limit_is_still_embedded() -> None:
    link = build_publish_link(RECIPE, "x" * 6144)

    assert not link.requires_clipboard
    assert "value=" in link.url


def test_recipe_over_limit_requires_clipboard() -> None:
    link = build_publish_link(RECIPE, "x" * 6145)

    assert link.requires_clipboard
    assert "value=" not in link.url
    assert link.url.endswith("?filename=build.yaml")


def test_limit_counts_utf8_bytes() -> None:
    # 2049 three-byte characters exceed the 6 KiB limit.
    link = build_publish_link(RECIPE, "€" * 2049)

    assert link.requires_clipboard


def test_publish_link_follows_configured_repository(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("RECIPE_BRIDGE_REPO_OWNER", "me")
    monkeypatch.setenv("RECIPE_BRIDGE_REPO_BRANCH", "dev")

    link = build_publish_link(RECIPE, "name: exampletool\n")

    assert link.url.startswith(
        "https://github.com/me/neurocontainers/new/dev/recipes/exampletool?"
    )


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("ExampleTool", "exampletool"),
        ("my tool_v2", "my-tool-v2"),
        ("  fsl  ", "fsl"),
    ],
)
def test_container_url_name_sanitizes(name: str, expected: str) -> None:
    assert container_url_name({"name": name}) == expected


def test_container_url_name_for_unnamed_recipe() -> None:
    assert (
        container_url_name({"name": ""}, today=dt.date(2024, 5, 17))
        == "untitled-2024-05-17"
    )


def test_github_tree_url() -> None:
    assert github_tree_url(RECIPE) == (
        "https://github.com/neurodesk/neurocontainers/tree/main/"
        "recipes/exampletool"
    )
    assert github_tree_url({"name": "  "}) == ""
