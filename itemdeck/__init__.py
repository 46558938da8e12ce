"""
itemdeck: collection resolution engine.

Loads card collections described by a JSON definition plus entity documents,
resolves the relationships between entities, and evaluates display
expressions against the result.
"""

from itemdeck.models import (
    Collection,
    CollectionDefinition,
    CollectionFormat,
    EntityGraph,
    FetchError,
    Image,
    InvalidDefinitionError,
    LoadError,
    LoadSupersededError,
    ParseError,
    ResolvedEntity,
    UnresolvedReference,
)
from itemdeck.parsers import detect_format, parse_definition
from itemdeck.services import (
    CollectionSession,
    DisplayCard,
    FileFetcher,
    HttpFetcher,
    build_card,
    build_cards,
    load_collection,
    primary_image,
    resolve_as_number,
    resolve_as_string,
    resolve_field_path,
    resolve_graph,
    select_image,
    select_images,
)

__all__ = [
    "Collection",
    "CollectionDefinition",
    "CollectionFormat",
    "CollectionSession",
    "DisplayCard",
    "EntityGraph",
    "FetchError",
    "FileFetcher",
    "HttpFetcher",
    "Image",
    "InvalidDefinitionError",
    "LoadError",
    "LoadSupersededError",
    "ParseError",
    "ResolvedEntity",
    "UnresolvedReference",
    "build_card",
    "build_cards",
    "detect_format",
    "load_collection",
    "parse_definition",
    "primary_image",
    "resolve_as_number",
    "resolve_as_string",
    "resolve_field_path",
    "resolve_graph",
    "select_image",
    "select_images",
]
