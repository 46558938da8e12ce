"""
Entity document parser.

Entity documents are JSON arrays of objects, each carrying an `id` unique
within its type. A document holding a single object is read as a one-entity
array. Index documents (directory layout) list the ids whose per-entity
files make up the type.
"""

from collections.abc import Mapping
from typing import Any

from itemdeck.models.entity import Entity
from itemdeck.models.failure import ParseError
from itemdeck.parsers.definition import decode_json

# Keys tried, after the type names, when an index document is an object
_INDEX_KEYS = ("items", "entities", "ids")


def parse_entities(
    document: Any,
    entity_type: str,
    location: str | None = None,
) -> list[Entity]:
    """
    Parse an entity document.

    Args:
        document: Decoded JSON, or raw bytes / str to decode
        entity_type: Entity type the document belongs to
        location: Where the document came from, for error reporting

    Returns:
        Entities in document order

    Raises:
        ParseError: If the document is not JSON, not an array of objects,
            or an object lacks an id
    """
    if isinstance(document, (bytes, str)):
        document = decode_json(document, location=location, entity_type=entity_type)

    if isinstance(document, Mapping):
        document = [document]

    if not isinstance(document, list):
        raise ParseError(
            "Entity document must be an array of objects",
            location=location,
            entity_type=entity_type,
            detail=f"Got {type(document).__name__}",
        )

    entities: list[Entity] = []
    for position, item in enumerate(document):
        if not isinstance(item, Mapping):
            raise ParseError(
                f"Entry {position} is not an object",
                location=location,
                entity_type=entity_type,
            )
        try:
            entities.append(Entity.from_json(item))
        except ValueError as e:
            raise ParseError(
                f"Entry {position} has no usable id",
                location=location,
                entity_type=entity_type,
                detail=str(e),
            ) from e

    return entities


def extract_entity_ids(document: Any, plural_type: str) -> list[str]:
    """
    Read entity ids from an index document.

    Supports a bare array of ids, or an object whose plural type name,
    singular type name, `items`, `entities` or `ids` key holds the array.
    Non-string entries are ignored.

    Args:
        document: Decoded index JSON
        plural_type: Plural form of the entity type (e.g., "games")

    Returns:
        Ids in index order (empty if none found)
    """
    ids: Any = None

    if isinstance(document, list):
        ids = document
    elif isinstance(document, Mapping):
        singular_type = plural_type.removesuffix("s")
        for key in (plural_type, singular_type, *_INDEX_KEYS):
            if isinstance(document.get(key), list):
                ids = document[key]
                break

    if ids is None:
        return []
    return [entity_id for entity_id in ids if isinstance(entity_id, str) and entity_id]
