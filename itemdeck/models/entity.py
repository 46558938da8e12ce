"""
Entity Models.

Raw entities come straight from entity documents. Resolved entities are the
same records with relationship fields linked into a shared EntityGraph.

INVARIANTS:
- Raw field values are never modified; a resolved entity keeps every raw
  value (including the raw id held by a relationship field)
- Links are lookups into the graph, not owning pointers, so entity types
  may reference each other in cycles
- An unresolved link is an explicit marker, never a missing key
- All models are frozen; the graph is sealed once populated
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeAlias

JsonValue: TypeAlias = (
    str | int | float | bool | None | list["JsonValue"] | dict[str, "JsonValue"]
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def normalise_id(value: Any) -> str | None:
    """Entity ids are strings; integer ids are accepted and converted."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value if value else None
    if isinstance(value, int):
        return str(value)
    return None


@dataclass(frozen=True, slots=True)
class Entity:
    """
    A raw record of one entity type.

    Attributes:
        id: Identifier, unique within the entity type
        fields: Every raw field of the record, `id` included
    """

    id: str
    fields: Mapping[str, JsonValue]

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Entity":
        """
        Build from a decoded JSON object.

        Raises:
            ValueError: If the object has no usable id
        """
        entity_id = normalise_id(data.get("id"))
        if entity_id is None:
            raise ValueError("Entity requires a non-empty string or integer id")
        return cls(id=entity_id, fields=MappingProxyType(dict(data)))

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


class UnresolvedReason(str, Enum):
    """Why a relationship field could not be linked."""

    MISSING_TARGET = "missing_target"
    SHAPE_MISMATCH = "shape_mismatch"


@dataclass(frozen=True, slots=True)
class UnresolvedReference:
    """
    Marker left on a relationship field whose target could not be linked.

    The load still succeeds; callers decide whether to show the card
    degraded or filter it out.
    """

    source_type: str
    source_id: str
    field: str
    target_type: str
    target_id: Any
    reason: UnresolvedReason = UnresolvedReason.MISSING_TARGET


@dataclass(frozen=True, slots=True)
class Reference:
    """A resolved link: the target's type and id, looked up in the owning graph."""

    target_type: str
    target_id: str
    graph: "EntityGraph" = field(repr=False, compare=False)

    @property
    def entity(self) -> "ResolvedEntity | None":
        return self.graph.get(self.target_type, self.target_id)


Link: TypeAlias = Reference | UnresolvedReference
LinkValue: TypeAlias = Link | tuple[Link, ...]


def _follow(link: Link) -> "ResolvedEntity | None":
    if isinstance(link, Reference):
        return link.entity
    return None


@dataclass(frozen=True, slots=True)
class ResolvedEntity:
    """
    An entity whose relationship fields are linked into the graph.

    Attributes:
        entity_type: Type the entity belongs to
        id: Identifier, unique within the entity type
        fields: Raw fields, unchanged
        links: Relationship field name -> link (one) or tuple of links (many)
    """

    entity_type: str
    id: str
    fields: Mapping[str, JsonValue]
    links: Mapping[str, LinkValue] = field(default_factory=lambda: _EMPTY)

    def get(self, name: str, default: Any = None) -> Any:
        """Raw value of a field."""
        return self.fields.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.fields or name in self.links

    def link(self, name: str) -> LinkValue | None:
        """Link stored for a relationship field, or None if the field is not a relationship."""
        return self.links.get(name)

    def related(self, name: str) -> "ResolvedEntity | list[ResolvedEntity | None] | None":
        """
        Follow a relationship field.

        Returns the target entity for a single link, a list (with None for
        unresolved entries) for a many link, and None when the field is not
        a relationship or its single link is unresolved.
        """
        link = self.links.get(name)
        if link is None:
            return None
        if isinstance(link, tuple):
            return [_follow(item) for item in link]
        return _follow(link)

    def is_unresolved(self, name: str) -> bool:
        """True if the relationship field holds at least one unresolved marker."""
        return bool(self._unresolved_in(name))

    @property
    def unresolved_links(self) -> list[UnresolvedReference]:
        """Every unresolved marker on this entity."""
        markers: list[UnresolvedReference] = []
        for name in self.links:
            markers.extend(self._unresolved_in(name))
        return markers

    def _unresolved_in(self, name: str) -> list[UnresolvedReference]:
        link = self.links.get(name)
        items = link if isinstance(link, tuple) else (link,)
        return [item for item in items if isinstance(item, UnresolvedReference)]

    def to_dict(self, depth: int = 1) -> dict[str, Any]:
        """
        Plain dict of the raw fields.

        With depth > 0 a `_resolved` key maps each relationship field to the
        related entity's dict (None where unresolved), nested `depth` levels.
        """
        data: dict[str, Any] = dict(self.fields)
        if depth <= 0 or not self.links:
            return data

        resolved: dict[str, Any] = {}
        for name in self.links:
            target = self.related(name)
            if isinstance(target, list):
                resolved[name] = [t.to_dict(depth - 1) if t else None for t in target]
            else:
                resolved[name] = target.to_dict(depth - 1) if target else None
        data["_resolved"] = resolved
        return data


class EntityGraph:
    """
    Every resolved entity of one load, indexed by type and id.

    Created empty, populated exactly once by the relationship resolver, and
    read-only afterwards. Equality is structural: entities per type and the
    unresolved markers.
    """

    def __init__(self) -> None:
        self._entities: Mapping[str, tuple[ResolvedEntity, ...]] = _EMPTY
        self._index: Mapping[str, Mapping[str, ResolvedEntity]] = _EMPTY
        self._unresolved: tuple[UnresolvedReference, ...] = ()
        self._sealed = False

    def seal(
        self,
        entities: Mapping[str, list[ResolvedEntity]],
        unresolved: list[UnresolvedReference],
    ) -> None:
        """
        Populate the graph. Allowed once.

        Raises:
            RuntimeError: If the graph was already sealed
        """
        if self._sealed:
            raise RuntimeError("EntityGraph is already sealed")
        self._entities = MappingProxyType(
            {type_name: tuple(items) for type_name, items in entities.items()}
        )
        self._index = MappingProxyType(
            {
                type_name: MappingProxyType({entity.id: entity for entity in items})
                for type_name, items in self._entities.items()
            }
        )
        self._unresolved = tuple(unresolved)
        self._sealed = True

    @property
    def entity_types(self) -> tuple[str, ...]:
        return tuple(self._entities)

    @property
    def unresolved(self) -> tuple[UnresolvedReference, ...]:
        return self._unresolved

    def entities(self, entity_type: str) -> tuple[ResolvedEntity, ...]:
        """Entities of one type in source order (empty for unknown types)."""
        return self._entities.get(entity_type, ())

    def get(self, entity_type: str, entity_id: str) -> ResolvedEntity | None:
        index = self._index.get(entity_type)
        if index is None:
            return None
        return index.get(entity_id)

    def as_mapping(self) -> Mapping[str, tuple[ResolvedEntity, ...]]:
        """Read-only view of entity type -> entities."""
        return self._entities

    def __iter__(self) -> Iterator[ResolvedEntity]:
        for items in self._entities.values():
            yield from items

    def __len__(self) -> int:
        return sum(len(items) for items in self._entities.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityGraph):
            return NotImplemented
        return (
            dict(self._entities) == dict(other._entities)
            and self._unresolved == other._unresolved
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        counts = ", ".join(f"{name}={len(items)}" for name, items in self._entities.items())
        return f"EntityGraph({counts})"
