from itemdeck.models.collection import Collection, CollectionFormat, RawCollection
from itemdeck.models.definition import (
    Cardinality,
    CardBackConfig,
    CardDisplayConfig,
    CardFrontConfig,
    CollectionDefinition,
    DisplayConfig,
    EntityTypeDefinition,
    FieldDefinition,
    ImageMapping,
    RelationshipDefinition,
    SortDirection,
    SortSpec,
)
from itemdeck.models.entity import (
    Entity,
    EntityGraph,
    JsonValue,
    Link,
    LinkValue,
    Reference,
    ResolvedEntity,
    UnresolvedReason,
    UnresolvedReference,
)
from itemdeck.models.failure import (
    FailureDetail,
    FetchError,
    InvalidDefinitionError,
    LoadError,
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

__all__ = [
    "Attribution",
    "CardBackConfig",
    "CardDisplayConfig",
    "CardFrontConfig",
    "Cardinality",
    "Collection",
    "CollectionDefinition",
    "CollectionFormat",
    "DisplayConfig",
    "Entity",
    "EntityGraph",
    "EntityTypeDefinition",
    "FailureDetail",
    "FetchError",
    "FieldDefinition",
    "Image",
    "ImageMapping",
    "InvalidDefinitionError",
    "JsonValue",
    "Link",
    "LinkValue",
    "LoadError",
    "LoadStage",
    "LoadSupersededError",
    "ParseError",
    "RatingValue",
    "RawCollection",
    "Reference",
    "RelationshipDefinition",
    "ResolvedEntity",
    "SortDirection",
    "SortSpec",
    "UnresolvedReason",
    "UnresolvedReference",
    "format_rating",
    "normalise_rating",
    "parse_images",
    "rating_score",
    "rating_to_percentage",
]
