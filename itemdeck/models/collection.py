from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from itemdeck.models.definition import CollectionDefinition, DisplayConfig
from itemdeck.models.entity import Entity, EntityGraph, ResolvedEntity, UnresolvedReference


class CollectionFormat(str, Enum):
    """Schema generation of a collection, fixed once per load."""

    CURRENT = "current"
    LEGACY = "legacy"


@dataclass(frozen=True)
class RawCollection:
    """
    A definition plus raw entity sets, before relationship resolution.

    Both formats normalise to this shape; nothing downstream depends on
    which format produced it.
    """

    definition: CollectionDefinition
    entity_sets: Mapping[str, list[Entity]]
    format: CollectionFormat
    location: str | None = None


@dataclass(frozen=True)
class Collection:
    """
    A fully loaded collection.

    Attributes:
        definition: Validated (or synthesized, for legacy) definition
        format: Schema generation the collection was loaded from
        graph: Resolved entity graph shared by every entity
        location: Base location the collection was loaded from
    """

    definition: CollectionDefinition
    format: CollectionFormat
    graph: EntityGraph = field(repr=False)
    location: str | None = None

    @property
    def primary_type(self) -> str:
        return self.definition.primary_type

    @property
    def display_config(self) -> DisplayConfig | None:
        return self.definition.display

    @property
    def entities(self) -> Mapping[str, tuple[ResolvedEntity, ...]]:
        """Entity type -> resolved entities."""
        return self.graph.as_mapping()

    @property
    def cards(self) -> tuple[ResolvedEntity, ...]:
        """Entities of the primary type, in source order."""
        return self.graph.entities(self.primary_type)

    @property
    def unresolved(self) -> tuple[UnresolvedReference, ...]:
        return self.graph.unresolved

    @property
    def is_degraded(self) -> bool:
        """True if any relationship target could not be found."""
        return bool(self.graph.unresolved)
