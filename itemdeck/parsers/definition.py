"""
Collection definition parser.

Decodes `collection.json`, decides which schema generation it belongs to,
and validates current-format definitions in two passes: shape (pydantic)
then internal consistency.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from itemdeck.models.collection import CollectionFormat
from itemdeck.models.definition import CollectionDefinition
from itemdeck.models.failure import InvalidDefinitionError, ParseError

logger = logging.getLogger(__name__)


def decode_json(data: bytes | str, location: str | None = None, entity_type: str | None = None) -> Any:
    """
    Decode JSON bytes.

    Raises:
        ParseError: If the bytes are not valid UTF-8 JSON
    """
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(
            "Document is not valid JSON",
            location=location,
            entity_type=entity_type,
            detail=str(e),
        ) from e


def detect_format(document: Any) -> CollectionFormat:
    """
    Detect the schema generation of a decoded definition document.

    CURRENT if the document declares a non-empty `entityTypes` object whose
    values are all objects; LEGACY otherwise. Pure and deterministic.
    """
    if not isinstance(document, Mapping):
        return CollectionFormat.LEGACY

    entity_types = document.get("entityTypes")
    if not isinstance(entity_types, Mapping) or not entity_types:
        return CollectionFormat.LEGACY

    if not all(isinstance(spec, Mapping) for spec in entity_types.values()):
        return CollectionFormat.LEGACY

    return CollectionFormat.CURRENT


def parse_definition(document: Any, location: str | None = None) -> CollectionDefinition:
    """
    Validate a decoded current-format definition document.

    Args:
        document: Decoded JSON (bytes and str are decoded first)
        location: Where the document came from, for error reporting

    Returns:
        Validated, internally consistent CollectionDefinition

    Raises:
        ParseError: If the document is not valid JSON or has the wrong shape
        InvalidDefinitionError: If the definition contradicts itself
    """
    if isinstance(document, (bytes, str)):
        document = decode_json(document, location=location)

    try:
        definition = CollectionDefinition.model_validate(document)
    except ValidationError as e:
        raise ParseError(
            "Collection definition has an invalid shape",
            location=location,
            detail=_format_validation_error(e),
        ) from e

    validate_definition(definition, location=location)
    return definition


def validate_definition(definition: CollectionDefinition, location: str | None = None) -> None:
    """
    Check a definition for internal consistency.

    Raises:
        InvalidDefinitionError: On the first inconsistency found
    """
    declared = set(definition.entity_types)

    if not declared:
        raise InvalidDefinitionError(
            "Collection declares no entity types",
            location=location,
        )

    if definition.primary_type not in declared:
        raise InvalidDefinitionError(
            f"Primary type '{definition.primary_type}' is not a declared entity type",
            location=location,
            detail=f"Declared: {', '.join(sorted(declared))}",
        )

    seen: set[tuple[str, str]] = set()
    for rel in definition.relationships:
        for role, type_name in (("source", rel.source_type), ("target", rel.target_type)):
            if type_name not in declared:
                raise InvalidDefinitionError(
                    f"Relationship {rel.source_type}.{rel.source_field} references "
                    f"undeclared {role} type '{type_name}'",
                    location=location,
                    entity_type=rel.source_type,
                )
        if rel.key in seen:
            raise InvalidDefinitionError(
                f"Relationship {rel.source_type}.{rel.source_field} is declared more than once",
                location=location,
                entity_type=rel.source_type,
            )
        seen.add(rel.key)

    logger.debug(
        "Definition valid: %d entity types, %d relationships, primary=%s",
        len(declared),
        len(definition.relationships),
        definition.primary_type,
    )


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"{path}: {item['msg']}")
    return "; ".join(lines)
