"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Tests for canonical recipe serialization.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from recipe_bridge.errors import SerializationFailure
from recipe_bridge.services.serializer import (dump_recipe, export_recipe,
                                               load_recipe, normalize)

RECIPE_TEXT = """\
name: tool
version: "1.0"
build:
  kind: neurodocker
  directives:
    - run:
        - echo one
"""

REORDERED_TEXT = """\

build:
    directives:
    -   run:
        -   echo one
    kind: neurodocker
version:    "1.0"
name: tool

"""


def test_normalize_is_idempotent() -> None:
    once = normalize(RECIPE_TEXT)

    assert normalize(once) == once


def test_normalize_ignores_key_order_and_whitespace() -> None:
    assert normalize(RECIPE_TEXT) == normalize(REORDERED_TEXT)


def test_normalize_accepts_mapping_and_text_alike() -> None:
    assert normalize(load_recipe(RECIPE_TEXT)) == normalize(RECIPE_TEXT)


def test_normalize_output_is_sorted_and_trimmed() -> None:
    text = normalize(RECIPE_TEXT)

    assert text.splitlines()[0] == "build:"
    assert text == text.strip()


def test_normalize_returns_trimmed_text_when_unparseable() -> None:
    assert normalize("  key: [unclosed\n") == "key: [unclosed"
    assert normalize("  - just\n  - a list\n") == "- just\n  - a list"


def test_normalize_never_emits_aliases() -> None:
    shared = ["a", "b"]
    text = normalize({"first": shared, "second": shared})

    assert "&" not in text and "*" not in text


def test_normalize_keeps_long_lines_unwrapped() -> None:
    long_command = "echo " + "x" * 300

    text = normalize({"run": long_command})

    assert long_command in text


def test_normalize_raises_for_unserializable_mapping() -> None:
    with pytest.raises(SerializationFailure):
        normalize({"bad": object()})


def test_dump_recipe_keeps_insertion_order() -> None:
    text = dump_recipe({"name": "tool", "build": {"kind": "neurodocker"}})

    assert text.index("name:") < text.index("build:")
    assert "  kind: neurodocker" in text


@pytest.mark.parametrize("text", ["key: [unclosed", "- a\n- b\n", "plain"])
def test_load_recipe_rejects_non_mappings(text: str) -> None:
    with pytest.raises(SerializationFailure):
        load_recipe(text)


def test_export_recipe_names_file_after_recipe(tmp_path: Path) -> None:
    path = export_recipe({"name": "tool", "version": "1.0"}, tmp_path / "out")

    assert path == tmp_path / "out" / "tool.yaml"
    assert load_recipe(path.read_text())["version"] == "1.0"


def test_export_recipe_falls_back_for_unnamed(tmp_path: Path) -> None:
    path = export_recipe({"name": "  "}, tmp_path)

    assert path.name == "container.yaml"
