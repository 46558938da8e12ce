import json
from collections.abc import Callable
from typing import Any

import pytest

from itemdeck.models.failure import FetchError
from itemdeck.services import expressions as expressions_module
from itemdeck.services import field_path as field_path_module

BASE = "https://example.com/collections/games"


@pytest.fixture(autouse=True)
def clear_expression_caches():
    """Clear parsed-expression caches between tests.

    Malformed paths are logged once per distinct path; without clearing,
    a test asserting on that log would depend on test order.
    """
    field_path_module.parse_path.cache_clear()
    expressions_module.split_fallbacks.cache_clear()
    yield
    field_path_module.parse_path.cache_clear()
    expressions_module.split_fallbacks.cache_clear()


class MemoryFetch:
    """In-memory fetch capability: location -> JSON document.

    Unknown locations raise a missing FetchError, like an HTTP 404.
    Every requested location is recorded in `requested`.
    """

    def __init__(self, documents: dict[str, Any], base: str = BASE) -> None:
        self.base = base
        self.documents = {f"{base}/{name}": doc for name, doc in documents.items()}
        self.requested: list[str] = []

    async def __call__(self, location: str) -> bytes:
        self.requested.append(location)
        if location not in self.documents:
            raise FetchError("Not found", location=location, missing=True)
        document = self.documents[location]
        if isinstance(document, bytes):
            return document
        return json.dumps(document).encode()


@pytest.fixture
def memory_fetch() -> Callable[..., MemoryFetch]:
    """Factory for in-memory fetch capabilities."""

    def make(documents: dict[str, Any], base: str = BASE) -> MemoryFetch:
        return MemoryFetch(documents, base)

    return make


@pytest.fixture
def game_definition() -> dict[str, Any]:
    """Current-format definition: games ranked within platforms."""
    return {
        "id": "retro-games",
        "name": "Retro Games",
        "schemaVersion": "2.0",
        "entityTypes": {
            "game": {
                "primary": True,
                "label": "Game",
                "fields": [
                    {"name": "title", "type": "string", "required": True},
                    {"name": "platform", "type": "string", "ref": "platform"},
                    {"name": "rank", "type": "number"},
                    {"name": "images", "type": "images"},
                ],
            },
            "platform": {
                "label": "Platform",
                "fields": [{"name": "title", "type": "string"}],
            },
        },
        "primaryType": "game",
        "relationships": [
            {
                "sourceType": "game",
                "sourceField": "platform",
                "targetType": "platform",
                "cardinality": "one",
                "ordinalField": "rank",
            }
        ],
        "display": {
            "groupBy": "platform.title",
            "sortWithinGroup": "rank",
            "card": {
                "front": {
                    "title": "title",
                    "subtitle": "platform.title ?? \"Unknown\"",
                    "badge": "rank",
                },
            },
        },
    }


@pytest.fixture
def games() -> list[dict[str, Any]]:
    return [
        {
            "id": "super-metroid",
            "title": "Super Metroid",
            "platform": "snes",
            "rank": 2,
            "year": 1994,
            "images": [
                {"url": "https://img.example.com/sm-shot.jpg", "type": "screenshot"},
                {"url": "https://img.example.com/sm-cover.jpg", "type": "cover"},
            ],
        },
        {
            "id": "zelda-lttp",
            "title": "A Link to the Past",
            "platform": "snes",
            "rank": 1,
            "year": 1991,
            "images": [{"url": "https://img.example.com/lttp.jpg", "type": "cover"}],
        },
        {
            "id": "sonic",
            "title": "Sonic the Hedgehog",
            "platform": "genesis",
            "rank": 1,
            "year": 1991,
        },
    ]


@pytest.fixture
def platforms() -> list[dict[str, Any]]:
    return [
        {"id": "snes", "title": "SNES"},
        {"id": "genesis", "title": "Mega Drive"},
    ]


@pytest.fixture
def legacy_items() -> list[dict[str, Any]]:
    return [
        {
            "id": "pacman",
            "title": "Pac-Man",
            "year": "1980",
            "imageUrl": "https://img.example.com/pacman.jpg",
            "metadata": {"category": "arcade", "rank": "1", "device": "Cabinet"},
        },
        {
            "id": "galaga",
            "title": "Galaga",
            "year": "1981",
            "imageUrls": [
                "https://img.example.com/galaga-1.jpg",
                "https://img.example.com/galaga-2.jpg",
            ],
            "metadata": {"category": "arcade", "rank": "2"},
        },
    ]


@pytest.fixture
def legacy_categories() -> list[dict[str, Any]]:
    return [{"id": "arcade", "title": "Arcade", "year": "1980s"}]
