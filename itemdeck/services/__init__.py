"""
itemdeck services.

Loading, relationship resolution and render-time expression evaluation.
"""

from itemdeck.services.card_builder import (
    DisplayCard,
    build_card,
    build_card_groups,
    build_cards,
)
from itemdeck.services.collection_loader import (
    CollectionSession,
    CurrentFormat,
    DocumentSource,
    FormatStrategy,
    LegacyFormat,
    load_collection,
    resolve_collection,
    strategy_for,
)
from itemdeck.services.expressions import evaluate_fallbacks, split_fallbacks
from itemdeck.services.fetch import (
    Fetch,
    FileFetcher,
    HttpFetcher,
    call_fetch,
    fetcher_for,
    join_location,
)
from itemdeck.services.field_path import (
    group_entities,
    parse_path,
    resolve_as_number,
    resolve_as_string,
    resolve_field_path,
    resolve_images,
    sort_entities,
)
from itemdeck.services.image_selector import (
    format_attribution,
    image_urls,
    logo_url,
    primary_image,
    primary_image_url,
    select_image,
    select_images,
)
from itemdeck.services.relationship_resolver import (
    build_indexes,
    explicit_relationships,
    find_relationship,
    get_entity_rank,
    infer_relationships,
    resolve_graph,
    scoped_ranking,
)

__all__ = [
    # Loading
    "CollectionSession",
    "CurrentFormat",
    "DocumentSource",
    "FormatStrategy",
    "LegacyFormat",
    "load_collection",
    "resolve_collection",
    "strategy_for",
    # Fetch capability
    "Fetch",
    "FileFetcher",
    "HttpFetcher",
    "call_fetch",
    "fetcher_for",
    "join_location",
    # Relationship resolution
    "build_indexes",
    "explicit_relationships",
    "find_relationship",
    "get_entity_rank",
    "infer_relationships",
    "resolve_graph",
    "scoped_ranking",
    # Expressions (render time)
    "evaluate_fallbacks",
    "split_fallbacks",
    "group_entities",
    "parse_path",
    "resolve_as_number",
    "resolve_as_string",
    "resolve_field_path",
    "resolve_images",
    "sort_entities",
    "format_attribution",
    "image_urls",
    "logo_url",
    "primary_image",
    "primary_image_url",
    "select_image",
    "select_images",
    # Cards
    "DisplayCard",
    "build_card",
    "build_card_groups",
    "build_cards",
]
