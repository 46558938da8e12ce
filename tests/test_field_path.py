"""Tests for field path resolution against resolved entities."""

import logging
from typing import Any

import pytest

from itemdeck.models.definition import SortDirection, SortSpec
from itemdeck.models.entity import Entity, EntityGraph
from itemdeck.parsers.definition import parse_definition
from itemdeck.services.field_path import (
    FilterStep,
    IndexStep,
    PropertyStep,
    group_entities,
    parse_path,
    resolve_as_number,
    resolve_as_string,
    resolve_field_path,
    resolve_images,
    sort_entities,
)
from itemdeck.services.relationship_resolver import resolve_graph


@pytest.fixture
def graph(
    game_definition: dict[str, Any],
    games: list[dict[str, Any]],
    platforms: list[dict[str, Any]],
) -> EntityGraph:
    definition = parse_definition(game_definition)
    games = [*games, {"id": "orphan", "title": "Orphan", "platform": "n64", "rank": "3"}]
    return resolve_graph(
        definition,
        {
            "game": [Entity.from_json(game) for game in games],
            "platform": [Entity.from_json(platform) for platform in platforms],
        },
    )


class TestParsePath:
    def test_steps(self) -> None:
        assert parse_path("images[type=cover][0].url") == (
            PropertyStep("images"),
            FilterStep("type", "cover"),
            IndexStep(0),
            PropertyStep("url"),
        )

    def test_relationship_traversal(self) -> None:
        assert parse_path("platform.title") == (PropertyStep("platform"), PropertyStep("title"))

    @pytest.mark.parametrize(
        "path",
        ["", "a..b", ".a", "a.", "images[", "images[]", "images[-1]", "images[x]", "a b"],
    )
    def test_malformed(self, path: str) -> None:
        assert parse_path(path) is None

    def test_malformed_logged_once(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="itemdeck.services.field_path"):
            parse_path("a..b")
            parse_path("a..b")
        assert len([r for r in caplog.records if "a..b" in r.getMessage()]) == 1


class TestResolveFieldPath:
    def test_plain_field(self, graph: EntityGraph) -> None:
        assert resolve_field_path(graph.get("game", "super-metroid"), "title") == "Super Metroid"

    def test_relationship_traversal(self, graph: EntityGraph) -> None:
        game = graph.get("game", "super-metroid")
        assert resolve_field_path(game, "platform.title") == "SNES"
        assert resolve_field_path(game, "platform") is graph.get("platform", "snes")

    def test_snes_scenario(self, graph: EntityGraph) -> None:
        game = graph.get("game", "super-metroid")
        assert resolve_field_path(game, 'platform.title ?? "Unknown"') == "SNES"
        assert game.get("rank") == 2
        assert game.get("platform") == "snes"

    def test_unresolved_relationship_yields_no_value(self, graph: EntityGraph) -> None:
        orphan = graph.get("game", "orphan")
        assert resolve_field_path(orphan, "platform.title") is None
        assert resolve_field_path(orphan, 'platform.title ?? "Unknown"') == "Unknown"

    def test_fallback_order(self, graph: EntityGraph) -> None:
        game = graph.get("game", "zelda-lttp")
        assert resolve_field_path(game, "verdict ?? title ?? platform.title") == "A Link to the Past"

    def test_short_circuit_skips_later_traversal(
        self, graph: EntityGraph, caplog: pytest.LogCaptureFixture
    ) -> None:
        game = graph.get("game", "zelda-lttp")
        with caplog.at_level(logging.WARNING):
            assert resolve_field_path(game, "title ?? developer..name") == "A Link to the Past"
        # The malformed second path was never parsed
        assert not [r for r in caplog.records if r.name == "itemdeck.services.field_path"]

    def test_index_and_filter(self, graph: EntityGraph) -> None:
        game = graph.get("game", "super-metroid")
        assert resolve_field_path(game, "images[0].type") == "screenshot"
        assert resolve_field_path(game, "images[type=cover][0].url") == "https://img.example.com/sm-cover.jpg"
        assert resolve_field_path(game, "images[5]") is None
        assert resolve_field_path(game, "images[type=logo]") is None

    def test_empty_filter_falls_back_but_empty_array_is_data(self) -> None:
        entity = {"images": [{"url": "a.jpg", "type": "cover"}], "tags": []}
        assert resolve_field_path(entity, "images[type=logo]") is None
        assert resolve_field_path(entity, "images[type=logo] ?? images[0].url") == "a.jpg"
        assert resolve_field_path(entity, "tags") == []
        assert resolve_field_path(entity, "tags ?? images") == []

    def test_numeric_filter(self) -> None:
        entity = {"scores": [{"rank": 1, "name": "a"}, {"rank": 2, "name": "b"}]}
        assert resolve_field_path(entity, "scores[rank=2][0].name") == "b"
        assert resolve_field_path(entity, "scores[rank=\"1\"][0].name") is None

    def test_none_literal(self, graph: EntityGraph) -> None:
        game = graph.get("game", "sonic")
        assert resolve_field_path(game, "verdict ?? none") is None

    def test_absent_everywhere(self, graph: EntityGraph) -> None:
        assert resolve_field_path(graph.get("game", "sonic"), "verdict ?? images[0]") is None

    def test_plain_mapping(self) -> None:
        assert resolve_field_path({"a": {"b": [1, 2]}}, "a.b[1]") == 2

    def test_malformed_path_is_no_value(self, graph: EntityGraph) -> None:
        assert resolve_field_path(graph.get("game", "sonic"), "title[") is None


class TestTypedWrappers:
    def test_string_renders_numbers(self, graph: EntityGraph) -> None:
        game = graph.get("game", "sonic")
        assert resolve_as_string(game, "year") == "1991"
        assert resolve_as_string(game, "rank") == "1"

    def test_string_default(self, graph: EntityGraph) -> None:
        game = graph.get("game", "sonic")
        assert resolve_as_string(game, "verdict ?? developer", default="n/a") == "n/a"

    def test_empty_string_is_absent(self) -> None:
        entity = {"verdict": "", "title": "Fallback"}
        assert resolve_as_string(entity, "verdict ?? title") == "Fallback"

    def test_non_scalar_is_absent_for_string(self, graph: EntityGraph) -> None:
        game = graph.get("game", "super-metroid")
        assert resolve_as_string(game, "images ?? title") == "Super Metroid"

    def test_number_parses_strings(self, graph: EntityGraph) -> None:
        assert resolve_as_number(graph.get("game", "orphan"), "rank") == 3
        assert resolve_as_number({"score": "4.5"}, "score") == 4.5

    def test_number_default(self, graph: EntityGraph) -> None:
        assert resolve_as_number(graph.get("game", "sonic"), "title", default=0) == 0

    def test_number_fallback_skips_non_numeric(self) -> None:
        assert resolve_as_number({"a": "n/a", "b": 7}, "a ?? b") == 7

    def test_images(self, graph: EntityGraph) -> None:
        images = resolve_images(graph.get("game", "super-metroid"))
        assert [image.type for image in images] == ["screenshot", "cover"]
        assert resolve_images(graph.get("game", "sonic")) == []


class TestSortAndGroup:
    def test_sort_missing_last_both_directions(self, graph: EntityGraph) -> None:
        entities = [*graph.entities("game"), *graph.entities("platform")]

        ascending = sort_entities(entities, SortSpec(field="year"))
        assert [e.id for e in ascending] == ["zelda-lttp", "sonic", "super-metroid", "orphan", "snes", "genesis"]

        descending = sort_entities(entities, SortSpec(field="year", direction=SortDirection.DESC))
        assert [e.id for e in descending] == ["super-metroid", "zelda-lttp", "sonic", "orphan", "snes", "genesis"]

    def test_sort_strings_case_insensitive(self) -> None:
        entities = [{"title": "b"}, {"title": "A"}, {"title": "c"}]
        assert [e["title"] for e in sort_entities(entities, "title")] == ["A", "b", "c"]

    def test_sort_without_spec_keeps_order(self, graph: EntityGraph) -> None:
        assert sort_entities(graph.entities("game"), None) == list(graph.entities("game"))

    def test_group_by_related_title(self, graph: EntityGraph) -> None:
        groups = group_entities(graph.entities("game"), "platform.title")
        assert list(groups) == ["SNES", "Mega Drive", None]
        assert [e.id for e in groups["SNES"]] == ["super-metroid", "zelda-lttp"]
        assert [e.id for e in groups[None]] == ["orphan"]
