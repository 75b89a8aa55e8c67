"""Tests for undo/redo change summaries."""

from __future__ import annotations

from cartostyle.editor.diff_messages import diff_messages, diff_styles, redo_messages, undo_messages

from tests.helpers import make_layer, make_style


def test_identical_documents_produce_no_messages(sample_style: dict) -> None:
    assert diff_styles(sample_style, sample_style).is_empty()
    assert diff_messages(sample_style, dict(sample_style)) == []


def test_added_and_removed_layers() -> None:
    before = make_style([make_layer("water")])
    after = make_style([make_layer("roads", layer_type="line")])

    assert diff_messages(before, after) == ["added layer roads", "removed layer water"]


def test_rename_is_reported_instead_of_add_and_remove() -> None:
    before = make_style([make_layer("water")])
    after = make_style([make_layer("lakes")])

    diff = diff_styles(before, after)

    assert diff.renamed_layers == [("water", "lakes")]
    assert diff.added_layers == []
    assert diff.removed_layers == []
    assert diff_messages(before, after) == ["renamed layer water to lakes"]


def test_moving_one_layer_reports_only_that_layer() -> None:
    layers = [make_layer("a"), make_layer("b"), make_layer("c")]
    before = make_style(layers)
    after = make_style([layers[1], layers[2], layers[0]])

    assert diff_messages(before, after) == ["reordered layer a"]


def test_changed_layer_and_style_properties() -> None:
    before = make_style([make_layer("water")], glyphs="", sprite="")
    after = make_style(
        [make_layer("water", paint={"fill-color": "#00f"})],
        glyphs="https://fonts.example.com/{fontstack}/{range}.pbf",
        sprite="https://sprites.example.com/base",
    )

    assert diff_messages(before, after) == [
        "changed layer water",
        "changed style properties sprite, glyphs",
    ]


def test_source_changes() -> None:
    before = make_style(sources={"osm": {"type": "vector", "url": "https://a"}, "old": {"type": "geojson", "data": {}}})
    after = make_style(sources={"osm": {"type": "vector", "url": "https://b"}, "new": {"type": "geojson", "data": {}}})

    assert diff_messages(before, after) == ["added source new", "removed source old", "changed source osm"]


def test_undo_and_redo_messages_are_prefixed() -> None:
    before = make_style([make_layer("water")])
    after = make_style([make_layer("water"), make_layer("parks")])

    assert undo_messages(after, before) == ["Undo: removed layer parks"]
    assert redo_messages(before, after) == ["Redo: added layer parks"]
