from itemdeck.parsers.definition import (
    decode_json,
    detect_format,
    parse_definition,
    validate_definition,
)
from itemdeck.parsers.entities import extract_entity_ids, parse_entities
from itemdeck.parsers.legacy import build_legacy_definition, normalise_legacy_item

__all__ = [
    "build_legacy_definition",
    "decode_json",
    "detect_format",
    "extract_entity_ids",
    "normalise_legacy_item",
    "parse_definition",
    "parse_entities",
    "validate_definition",
]
