"""
Relationship Resolver.

Links the raw entity sets of one load into an EntityGraph.

Resolution runs in fixed phases:
1. Index every entity type by id (duplicate ids within a type are a
   ParseError)
2. Index the declared relationships by (source type, source field)
3. Infer implicit relationships, only for fields absent from that index:
   a field named exactly like an entity type and holding a single id
4. Link every entity through the combined index

INVARIANTS:
- Explicit declarations always win over inference for the same field
- Inputs are never modified; each call builds a new graph, and repeated
  calls on the same inputs produce equal graphs
- A target id that is not found becomes an UnresolvedReference marker on
  the field and on the graph; resolution never raises for it
- Ordinal fields (e.g. rank within a platform) are kept unchanged; their
  scoping is applied by readers via get_entity_rank / scoped_ranking
"""

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Any

from itemdeck.config import FALLBACK_ORDINAL_FIELDS, IMPLICIT_EXCLUDED_FIELDS
from itemdeck.models.definition import (
    Cardinality,
    CollectionDefinition,
    RelationshipDefinition,
    SortSpec,
)
from itemdeck.models.entity import (
    Entity,
    EntityGraph,
    Link,
    LinkValue,
    Reference,
    ResolvedEntity,
    UnresolvedReason,
    UnresolvedReference,
    normalise_id,
)
from itemdeck.models.failure import ParseError
from itemdeck.services.field_path import as_number, sort_entities

logger = logging.getLogger(__name__)

RelationshipIndex = Mapping[tuple[str, str], RelationshipDefinition]


def build_indexes(
    entity_sets: Mapping[str, Sequence[Entity]],
) -> dict[str, dict[str, Entity]]:
    """
    Index each entity type by id.

    Raises:
        ParseError: If an id appears twice within one entity type
    """
    indexes: dict[str, dict[str, Entity]] = {}
    for type_name, entities in entity_sets.items():
        index: dict[str, Entity] = {}
        for entity in entities:
            if entity.id in index:
                raise ParseError(
                    f"Duplicate id '{entity.id}'",
                    entity_type=type_name,
                    detail="Entity ids must be unique within their type",
                )
            index[entity.id] = entity
        indexes[type_name] = index
    return indexes


def explicit_relationships(definition: CollectionDefinition) -> dict[tuple[str, str], RelationshipDefinition]:
    """Declared relationships keyed by (source type, source field)."""
    return {rel.key: rel for rel in definition.relationships}


def infer_relationships(
    entity_sets: Mapping[str, Sequence[Entity]],
    explicit: RelationshipIndex,
) -> dict[tuple[str, str], RelationshipDefinition]:
    """
    Infer one-cardinality relationships from field names.

    A field is inferred as a reference when its name equals a loaded entity
    type, it is not excluded (`id`, `images`) and no explicit relationship
    covers it. Whether each value is a usable id is decided per entity.
    """
    type_names = set(entity_sets)
    inferred: dict[tuple[str, str], RelationshipDefinition] = {}

    for source_type, entities in entity_sets.items():
        for entity in entities:
            for field_name in entity.fields:
                key = (source_type, field_name)
                if (
                    field_name not in type_names
                    or field_name in IMPLICIT_EXCLUDED_FIELDS
                    or key in explicit
                    or key in inferred
                ):
                    continue
                inferred[key] = RelationshipDefinition(
                    source_type=source_type,
                    source_field=field_name,
                    target_type=field_name,
                    cardinality=Cardinality.ONE,
                    implicit=True,
                )
                logger.debug("Inferred relationship %s.%s -> %s", source_type, field_name, field_name)

    return inferred


def resolve_graph(
    definition: CollectionDefinition,
    entity_sets: Mapping[str, Sequence[Entity]],
) -> EntityGraph:
    """
    Resolve every relationship of one load.

    Args:
        definition: Validated collection definition
        entity_sets: Entity type -> raw entities in source order

    Returns:
        A new sealed EntityGraph

    Raises:
        ParseError: If an id is duplicated within an entity type
    """
    indexes = build_indexes(entity_sets)
    explicit = explicit_relationships(definition)
    inferred = infer_relationships(entity_sets, explicit)
    relationships = {**inferred, **explicit}

    graph = EntityGraph()
    resolved: dict[str, list[ResolvedEntity]] = {}
    unresolved: list[UnresolvedReference] = []

    for type_name, entities in entity_sets.items():
        type_relationships = [rel for key, rel in relationships.items() if key[0] == type_name]
        resolved[type_name] = [
            _resolve_entity(type_name, entity, type_relationships, indexes, graph, unresolved)
            for entity in entities
        ]

    graph.seal(resolved, unresolved)

    logger.info(
        "Resolved %d entities across %d types (%d explicit, %d implicit relationships, %d unresolved)",
        len(graph),
        len(resolved),
        len(explicit),
        len(inferred),
        len(unresolved),
    )
    return graph


def _resolve_entity(
    type_name: str,
    entity: Entity,
    relationships: list[RelationshipDefinition],
    indexes: Mapping[str, Mapping[str, Entity]],
    graph: EntityGraph,
    unresolved: list[UnresolvedReference],
) -> ResolvedEntity:
    links: dict[str, LinkValue] = {}

    for rel in relationships:
        value = entity.fields.get(rel.source_field)
        if value is None:
            continue

        link = _link_value(type_name, entity.id, rel, value, indexes, graph)
        if link is None:
            continue

        links[rel.source_field] = link
        items = link if isinstance(link, tuple) else (link,)
        unresolved.extend(item for item in items if isinstance(item, UnresolvedReference))

    return ResolvedEntity(
        entity_type=type_name,
        id=entity.id,
        fields=entity.fields,
        links=MappingProxyType(links),
    )


def _link_value(
    type_name: str,
    entity_id: str,
    rel: RelationshipDefinition,
    value: Any,
    indexes: Mapping[str, Mapping[str, Entity]],
    graph: EntityGraph,
) -> LinkValue | None:
    def link_to(target: Any) -> Link:
        target_id = normalise_id(target)
        if target_id is None:
            return _shape_mismatch(type_name, entity_id, rel, target)
        if target_id in indexes.get(rel.target_type, {}):
            return Reference(target_type=rel.target_type, target_id=target_id, graph=graph)
        logger.warning(
            "Unresolved reference %s[%s].%s -> %s '%s'",
            type_name,
            entity_id,
            rel.source_field,
            rel.target_type,
            target_id,
        )
        return UnresolvedReference(
            source_type=type_name,
            source_id=entity_id,
            field=rel.source_field,
            target_type=rel.target_type,
            target_id=target_id,
            reason=UnresolvedReason.MISSING_TARGET,
        )

    if rel.implicit:
        # Inference applies only to single ids; other values stay plain data
        return link_to(value) if normalise_id(value) is not None else None

    if rel.cardinality == Cardinality.MANY:
        if isinstance(value, list):
            return tuple(link_to(item) for item in value)
        if normalise_id(value) is not None:
            logger.info(
                "%s[%s].%s declares many but holds a single id; treating as one-element list",
                type_name,
                entity_id,
                rel.source_field,
            )
            return (link_to(value),)
        return _shape_mismatch(type_name, entity_id, rel, value)

    if isinstance(value, list):
        return _shape_mismatch(type_name, entity_id, rel, value)
    return link_to(value)


def _shape_mismatch(
    type_name: str,
    entity_id: str,
    rel: RelationshipDefinition,
    value: Any,
) -> UnresolvedReference:
    logger.warning(
        "%s[%s].%s declares %s cardinality but holds %s; left unresolved",
        type_name,
        entity_id,
        rel.source_field,
        rel.cardinality.value,
        type(value).__name__,
    )
    return UnresolvedReference(
        source_type=type_name,
        source_id=entity_id,
        field=rel.source_field,
        target_type=rel.target_type,
        target_id=value,
        reason=UnresolvedReason.SHAPE_MISMATCH,
    )


def find_relationship(
    definition: CollectionDefinition,
    entity_type: str,
    field_name: str,
) -> RelationshipDefinition | None:
    """Declared relationship for one source field, if any."""
    for rel in definition.relationships:
        if rel.key == (entity_type, field_name):
            return rel
    return None


def get_entity_rank(
    entity: ResolvedEntity | Entity,
    definition: CollectionDefinition | None = None,
    entity_type: str | None = None,
) -> int | float | None:
    """
    Ordinal rank of an entity.

    Reads the ordinal field declared on the entity's relationships first,
    then the conventional `rank` / `myRank` fields. Numeric strings are
    parsed.

    Args:
        entity: Entity to read
        definition: Definition declaring ordinal fields (optional)
        entity_type: Entity type, required for raw entities

    Returns:
        The rank, or None if the entity is unranked
    """
    if entity_type is None and isinstance(entity, ResolvedEntity):
        entity_type = entity.entity_type

    declared: list[str] = []
    if definition is not None and entity_type is not None:
        declared = [
            rel.ordinal_field for rel in definition.relationships_for(entity_type) if rel.ordinal_field
        ]

    for field_name in (*declared, *FALLBACK_ORDINAL_FIELDS):
        rank = as_number(entity.get(field_name))
        if rank is not None:
            return rank
    return None


def scoped_ranking(
    graph: EntityGraph,
    relationship: RelationshipDefinition,
) -> dict[str, list[ResolvedEntity]]:
    """
    Group the relationship's sources by target id, ordered by the ordinal.

    Sources whose link is unresolved or absent are left out. Without an
    ordinal field each group keeps source order.

    Returns:
        Target id -> source entities, lowest ordinal first
    """
    groups: dict[str, list[ResolvedEntity]] = {}
    for entity in graph.entities(relationship.source_type):
        link = entity.link(relationship.source_field)
        targets = link if isinstance(link, tuple) else (link,)
        for target in targets:
            if isinstance(target, Reference):
                groups.setdefault(target.target_id, []).append(entity)

    if relationship.ordinal_field:
        spec = SortSpec(field=relationship.ordinal_field)
        return {target_id: sort_entities(members, spec) for target_id, members in groups.items()}
    return groups
