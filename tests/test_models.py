import dataclasses

import pytest

from itemdeck.models.entity import (
    Entity,
    EntityGraph,
    Reference,
    ResolvedEntity,
    UnresolvedReason,
    UnresolvedReference,
    normalise_id,
)
from itemdeck.models.failure import (
    FetchError,
    InvalidDefinitionError,
    LoadStage,
    LoadSupersededError,
    ParseError,
)
from itemdeck.models.image import Attribution, Image, parse_images
from itemdeck.models.rating import (
    RatingValue,
    format_rating,
    normalise_rating,
    rating_score,
    rating_to_percentage,
)


class TestEntity:
    def test_from_json_keeps_every_field(self) -> None:
        entity = Entity.from_json({"id": "snes", "title": "SNES", "year": 1990})
        assert entity.id == "snes"
        assert entity.get("title") == "SNES"
        assert entity.fields["id"] == "snes"

    def test_integer_id_is_converted(self) -> None:
        assert Entity.from_json({"id": 42}).id == "42"

    def test_missing_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            Entity.from_json({"title": "No id"})

    def test_fields_are_read_only(self) -> None:
        entity = Entity.from_json({"id": "a", "title": "A"})
        with pytest.raises(TypeError):
            entity.fields["title"] = "B"  # type: ignore[index]

    def test_source_dict_not_aliased(self) -> None:
        data = {"id": "a", "title": "A"}
        entity = Entity.from_json(data)
        data["title"] = "changed"
        assert entity.get("title") == "A"

    def test_normalise_id(self) -> None:
        assert normalise_id("x") == "x"
        assert normalise_id(7) == "7"
        assert normalise_id("") is None
        assert normalise_id(True) is None
        assert normalise_id(1.5) is None


class TestEntityGraph:
    def _entity(self, entity_type: str, entity_id: str, **fields) -> ResolvedEntity:
        return ResolvedEntity(entity_type=entity_type, id=entity_id, fields={"id": entity_id, **fields})

    def test_seal_once(self) -> None:
        graph = EntityGraph()
        graph.seal({"platform": [self._entity("platform", "snes")]}, [])
        with pytest.raises(RuntimeError):
            graph.seal({}, [])

    def test_lookup(self) -> None:
        graph = EntityGraph()
        snes = self._entity("platform", "snes", title="SNES")
        graph.seal({"platform": [snes]}, [])
        assert graph.get("platform", "snes") is snes
        assert graph.get("platform", "n64") is None
        assert graph.get("console", "snes") is None
        assert graph.entities("console") == ()
        assert len(graph) == 1
        assert list(graph) == [snes]

    def test_reference_follows_graph(self) -> None:
        graph = EntityGraph()
        snes = self._entity("platform", "snes", title="SNES")
        graph.seal({"platform": [snes]}, [])
        assert Reference("platform", "snes", graph).entity is snes

    def test_structural_equality(self) -> None:
        first, second = EntityGraph(), EntityGraph()
        first.seal({"platform": [self._entity("platform", "snes")]}, [])
        second.seal({"platform": [self._entity("platform", "snes")]}, [])
        assert first == second

    def test_resolved_entity_immutable(self) -> None:
        entity = self._entity("platform", "snes")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entity.id = "n64"  # type: ignore[misc]


class TestResolvedEntityLinks:
    def test_unresolved_marker_is_reported(self) -> None:
        marker = UnresolvedReference(
            source_type="game",
            source_id="sm",
            field="platform",
            target_type="platform",
            target_id="n64",
        )
        entity = ResolvedEntity(
            entity_type="game",
            id="sm",
            fields={"id": "sm", "platform": "n64"},
            links={"platform": marker},
        )
        assert entity.is_unresolved("platform")
        assert entity.related("platform") is None
        assert entity.unresolved_links == [marker]
        assert marker.reason == UnresolvedReason.MISSING_TARGET
        # Raw id kept for round-tripping
        assert entity.get("platform") == "n64"

    def test_non_relationship_field(self) -> None:
        entity = ResolvedEntity(entity_type="game", id="sm", fields={"id": "sm", "title": "SM"})
        assert entity.link("title") is None
        assert not entity.is_unresolved("title")
        assert "title" in entity
        assert entity.to_dict() == {"id": "sm", "title": "SM"}


class TestImage:
    def test_from_json(self) -> None:
        image = Image.from_json(
            {
                "url": "https://img.example.com/cover.jpg",
                "type": "cover",
                "isPrimary": True,
                "width": 640,
                "attribution": {"source": "Wikimedia Commons", "url": "https://commons.example.com"},
            }
        )
        assert image.is_primary is True
        assert image.width == 640
        assert image.attribution is not None
        assert image.attribution.source_url == "https://commons.example.com"

    def test_url_required(self) -> None:
        with pytest.raises(ValueError):
            Image.from_json({"type": "cover"})

    def test_attribute_by_json_name(self) -> None:
        image = Image(url="a.jpg", is_primary=True)
        assert image.attribute("isPrimary") is True
        assert image.attribute("unknown") is None

    def test_parse_images_skips_invalid(self) -> None:
        images = parse_images(["a.jpg", {"url": "b.jpg"}, {"type": "cover"}, 42, None])
        assert [image.url for image in images] == ["a.jpg", "b.jpg"]

    def test_parse_images_non_list(self) -> None:
        assert parse_images(None) == []
        assert parse_images({"url": "a.jpg"}) == []


class TestRating:
    def test_bare_number(self) -> None:
        assert normalise_rating(4) == RatingValue(score=4.0, max=5.0)

    def test_structured(self) -> None:
        rating = normalise_rating({"score": 8.5, "max": 10, "source": "MobyGames", "sourceCount": 12})
        assert rating == RatingValue(score=8.5, max=10.0, source="MobyGames", source_count=12)

    def test_not_a_rating(self) -> None:
        assert normalise_rating("great") is None
        assert normalise_rating(True) is None
        assert rating_score({"max": 5}) is None

    def test_format(self) -> None:
        assert format_rating(4.5) == "4.5/5"
        assert format_rating({"score": 8, "max": 10}) == "8.0/10"
        assert format_rating(None) == ""

    def test_percentage(self) -> None:
        assert rating_to_percentage({"score": 4, "max": 5}) == 80.0
        assert rating_to_percentage("x") is None


class TestLoadErrors:
    def test_stages(self) -> None:
        assert FetchError("x").stage == LoadStage.FETCH
        assert ParseError("x").stage == LoadStage.PARSE
        assert InvalidDefinitionError("x").stage == LoadStage.INVALID_DEFINITION

    def test_str_names_type_and_location(self) -> None:
        error = ParseError("Bad JSON", location="games.json", entity_type="game")
        assert str(error) == "Bad JSON | entity type: game | location: games.json"

    def test_failures_keep_order(self) -> None:
        first = FetchError("a", entity_type="game")
        second = ParseError("b", entity_type="platform")
        first.with_others([second])
        assert first.failures == (first, second)

    def test_to_detail(self) -> None:
        detail = FetchError("HTTP 500", location="x.json", detail="boom").to_detail()
        assert detail.stage == LoadStage.FETCH
        assert detail.model_dump()["location"] == "x.json"

    def test_missing_flag(self) -> None:
        assert FetchError("x").missing is False
        assert FetchError("x", missing=True).missing is True

    def test_superseded(self) -> None:
        error = LoadSupersededError("https://example.com/a")
        assert error.location == "https://example.com/a"
        assert "superseded" in str(error)


class TestAttribution:
    def test_source_url_preferred(self) -> None:
        attribution = Attribution.from_json({"sourceUrl": "https://a", "url": "https://b"})
        assert attribution.source_url == "https://a"
