from __future__ import annotations

from typing import Any, Dict

from recipe_bridge.models.repository import RemoteFileDescriptor
from recipe_bridge.services.drift import PublishDriftDetector
from recipe_bridge.services.serializer import load_recipe

PUBLISHED_TEXT = """\
name: exampletool
version: "1.0"
build:
  kind: neurodocker
  directives: []
"""


def _descriptor(name: str) -> RemoteFileDescriptor:
    path = f"recipes/{name}/build.yaml"
    return RemoteFileDescriptor(
        path=path, content_hash="s", web_url="w", download_url="d"
    )


def _published_detector() -> PublishDriftDetector:
    detector = PublishDriftDetector()
    assert detector.check_published("exampletool", [_descriptor("exampletool")])
    detector.record_published_baseline(PUBLISHED_TEXT)
    return detector


def test_unchanged_recipe_is_not_modified() -> None:
    detector = _published_detector()

    assert not detector.is_modified(load_recipe(PUBLISHED_TEXT))


def test_edit_and_revert_toggle_modified() -> None:
    detector = _published_detector()
    recipe: Dict[str, Any] = load_recipe(PUBLISHED_TEXT)

    recipe["version"] = "1.1"
    assert detector.is_modified(recipe)

    recipe["version"] = "1.0"
    assert not detector.is_modified(recipe)


def test_key_order_is_not_a_modification() -> None:
    detector = _published_detector()
    recipe = load_recipe(PUBLISHED_TEXT)
    reordered = dict(reversed(list(recipe.items())))

    assert not detector.is_modified(reordered)


def test_unpublished_recipe_is_never_modified() -> None:
    detector = PublishDriftDetector()

    assert not detector.check_published("newtool", [_descriptor("exampletool")])
    detector.record_published_baseline(PUBLISHED_TEXT)

    assert not detector.is_modified({"name": "newtool"})


def test_check_published_matches_case_insensitively() -> None:
    detector = PublishDriftDetector()

    assert detector.check_published(
        " ExampleTool ", [{"path": "recipes/exampletool/build.yaml"}]
    )
    assert detector.is_published
    assert not detector.check_published("", [_descriptor("exampletool")])
    assert not detector.is_published


def test_unserializable_recipe_reports_unmodified() -> None:
    detector = _published_detector()

    assert not detector.is_modified({"name": object()})


def test_reset_baseline_clears_state() -> None:
    detector = _published_detector()

    detector.reset_baseline()

    assert detector.baseline is None
    assert not detector.is_published
    assert not detector.is_modified({"name": "changed"})
