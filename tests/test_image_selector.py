"""Tests for image selector expressions."""

from typing import Any

import pytest

from itemdeck.models.image import Attribution, Image
from itemdeck.services.image_selector import (
    format_attribution,
    image_urls,
    logo_url,
    primary_image,
    primary_image_url,
    select_image,
    select_images,
)


@pytest.fixture
def images() -> list[dict[str, Any]]:
    return [
        {"url": "https://img.example.com/shot.jpg", "type": "screenshot"},
        {"url": "https://img.example.com/cover.jpg", "type": "cover"},
        {"url": "https://img.example.com/logo.png", "type": "logo"},
    ]


class TestSelectImages:
    def test_index(self, images: list[dict[str, Any]]) -> None:
        assert [i.url for i in select_images(images, "images[1]")] == ["https://img.example.com/cover.jpg"]

    def test_filter(self, images: list[dict[str, Any]]) -> None:
        assert [i.type for i in select_images(images, "images[type=cover]")] == ["cover"]

    def test_filter_then_index(self, images: list[dict[str, Any]]) -> None:
        image = select_image(images, "images[type=cover][0]")
        assert image is not None
        assert image.url == "https://img.example.com/cover.jpg"

    def test_bare_name_selects_all(self, images: list[dict[str, Any]]) -> None:
        assert len(select_images(images, "images")) == 3

    def test_out_of_range_index_is_empty(self) -> None:
        two = [{"url": "a.jpg"}, {"url": "b.jpg"}]
        assert select_images(two, "images[5]") == []

    def test_unknown_type_is_empty(self, images: list[dict[str, Any]]) -> None:
        assert select_images(images, "images[type=boxart]") == []

    def test_fallback_to_unfiltered_index(self) -> None:
        no_cover = [{"url": "a.jpg", "type": "screenshot"}, {"url": "b.jpg", "type": "logo"}]
        image = select_image(no_cover, "images[type=cover][0] ?? images[0]")
        assert image == Image(url="a.jpg", type="screenshot")

    def test_empty_input(self) -> None:
        assert select_images([], "images[type=cover][0] ?? images[0]") == []
        assert select_images(None, "images[0]") == []
        assert select_image([], "images[0]") is None

    def test_boolean_filter(self) -> None:
        flagged = [{"url": "a.jpg"}, {"url": "b.jpg", "isPrimary": True}]
        assert select_image(flagged, "images[isPrimary=true][0]").url == "b.jpg"

    def test_property_step_selects_nothing(self, images: list[dict[str, Any]]) -> None:
        assert select_images(images, "images[0].url") == []

    def test_accepts_image_objects_and_urls(self) -> None:
        mixed = [Image(url="a.jpg", type="cover"), "b.jpg"]
        assert [i.url for i in select_images(mixed, "images[1]")] == ["b.jpg"]


class TestPrimaryImage:
    def test_flagged_primary_first(self, images: list[dict[str, Any]]) -> None:
        images[2]["isPrimary"] = True
        assert primary_image(images).type == "logo"

    def test_cover_before_first(self, images: list[dict[str, Any]]) -> None:
        assert primary_image(images).type == "cover"

    def test_first_when_nothing_else(self) -> None:
        assert primary_image([{"url": "a.jpg"}, {"url": "b.jpg"}]).url == "a.jpg"

    def test_custom_expression(self, images: list[dict[str, Any]]) -> None:
        assert primary_image(images, "images[type=logo][0]").type == "logo"

    def test_url_with_fallback(self) -> None:
        assert primary_image_url([], fallback_url="placeholder.png") == "placeholder.png"
        assert primary_image_url([{"url": "a.jpg"}]) == "a.jpg"


class TestImageHelpers:
    def test_image_urls_absolute_only(self) -> None:
        mixed = ["https://a.example.com/1.jpg", "relative.jpg", {"url": "http://b.example.com/2.jpg"}, {}]
        assert image_urls(mixed) == ["https://a.example.com/1.jpg", "http://b.example.com/2.jpg"]

    def test_logo_url(self, images: list[dict[str, Any]]) -> None:
        assert logo_url(images) == "https://img.example.com/logo.png"
        assert logo_url([{"url": "a.jpg"}]) is None


class TestFormatAttribution:
    def test_full(self) -> None:
        image = Image(
            url="a.jpg",
            attribution=Attribution(source="Wikimedia Commons", author="Jane Doe", licence="CC BY-SA 4.0"),
        )
        assert format_attribution(image) == "Image from Wikimedia Commons by Jane Doe (CC BY-SA 4.0)"

    def test_compact(self) -> None:
        attribution = Attribution(source="Wikimedia Commons", licence="CC BY-SA 4.0")
        assert format_attribution(attribution, compact=True) == "Wikimedia Commons • CC BY-SA 4.0"

    def test_nothing_to_show(self) -> None:
        assert format_attribution(Image(url="a.jpg")) is None
        assert format_attribution(Attribution(source_url="https://x")) is None
        assert format_attribution(None) is None
