"""
Collection Definition Models.

Validated, immutable form of a collection's `collection.json`: the entity
types it declares, how they relate, and how cards are displayed.

Two document shapes are accepted and normalise to the same models:
- Relationships as a list of `{sourceType, sourceField, targetType,
  cardinality, ordinalField?}` objects
- Relationships as an object keyed "sourceType.sourceField", where ordinal
  entries (`{"type": "ordinal", "scope": ...}`) annotate the relationship
  pointing at their scope

Consistency between the parts (primary type exists, relationships name
declared types) is checked separately by `validate_definition`, so that a
shape problem and an inconsistent definition are reported as different
failures.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class Cardinality(str, Enum):
    """How many targets a relationship field refers to."""

    ONE = "one"
    MANY = "many"


_CARDINALITY_ALIASES: dict[str, Cardinality] = {
    "one": Cardinality.ONE,
    "many": Cardinality.MANY,
    "one-to-one": Cardinality.ONE,
    "many-to-one": Cardinality.ONE,
    "one-to-many": Cardinality.MANY,
    "many-to-many": Cardinality.MANY,
}

_KNOWN_FIELD_KEYS = frozenset({"name", "type", "required", "description", "ref", "enum", "label"})


class FieldDefinition(_DefinitionModel):
    """A field declared on an entity type. Unrecognised keys are kept as constraints."""

    name: str
    type: str = "string"
    required: bool = False
    description: str | None = None
    label: str | None = None
    ref: str | None = None
    enum: tuple[str, ...] | None = None
    constraints: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_constraints(cls, data: Any) -> Any:
        # Shorthand: a bare name declares a string field
        if isinstance(data, str):
            return {"name": data}
        if not isinstance(data, Mapping) or "constraints" in data:
            return data
        known = {k: v for k, v in data.items() if k in _KNOWN_FIELD_KEYS}
        known["constraints"] = {k: v for k, v in data.items() if k not in _KNOWN_FIELD_KEYS}
        return known


class EntityTypeDefinition(_DefinitionModel):
    """
    A named category of records in a collection.

    `file` names the entity document explicitly; without it the loader tries
    the conventional names. `layout` selects between one array file and a
    directory of per-entity files listed by an index.
    """

    name: str
    fields: tuple[FieldDefinition, ...] = ()
    primary: bool = False
    label: str | None = None
    label_plural: str | None = None
    description: str | None = None
    file: str | None = None
    layout: str = "file"

    @field_validator("fields", mode="before")
    @classmethod
    def _fields_as_list(cls, value: Any) -> Any:
        # Object form: {"title": {"type": "string"}} or {"title": "string"}
        if isinstance(value, Mapping):
            return [
                {"name": name, **spec} if isinstance(spec, Mapping) else {"name": name, "type": spec}
                for name, spec in value.items()
            ]
        return value

    @field_validator("layout")
    @classmethod
    def _known_layout(cls, value: str) -> str:
        if value not in ("file", "directory"):
            raise ValueError(f"layout must be 'file' or 'directory', got {value!r}")
        return value

    def field(self, name: str) -> FieldDefinition | None:
        """Look up a declared field by name."""
        for field_def in self.fields:
            if field_def.name == name:
                return field_def
        return None


class RelationshipDefinition(_DefinitionModel):
    """
    A reference from one entity type's field to another entity type.

    `ordinal_field` names a numeric field on the source entity whose value is
    only meaningful among sources sharing the same target (e.g. rank within a
    platform). `implicit` is set by the resolver for inferred relationships.
    """

    source_type: str
    source_field: str
    target_type: str
    cardinality: Cardinality = Cardinality.ONE
    ordinal_field: str | None = None
    required: bool = False
    implicit: bool = False

    @field_validator("cardinality", mode="before")
    @classmethod
    def _normalise_cardinality(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return _CARDINALITY_ALIASES[value.lower()]
            except KeyError:
                raise ValueError(f"Unknown cardinality: {value}") from None
        return value

    @property
    def key(self) -> tuple[str, str]:
        """(source_type, source_field) identity of the relationship."""
        return (self.source_type, self.source_field)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(_DefinitionModel):
    """Field path plus direction. Accepts "field", ["field", "desc"] or an object."""

    field: str
    direction: SortDirection = SortDirection.ASC

    @model_validator(mode="before")
    @classmethod
    def _from_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"field": data}
        if isinstance(data, (list, tuple)) and len(data) == 2:
            return {"field": data[0], "direction": data[1]}
        return data


class ImageMapping(_DefinitionModel):
    """Image selector with an optional fallback selector."""

    source: str
    fallback: str | None = None

    @property
    def expression(self) -> str:
        """The mapping as a single fallback chain."""
        if self.fallback:
            return f"{self.source} ?? {self.fallback}"
        return self.source


class CardFrontConfig(_DefinitionModel):
    title: str | None = None
    subtitle: str | None = None
    image: ImageMapping | str | None = None
    badge: str | None = None
    secondary_badge: str | None = None
    footer: tuple[str, ...] = ()

    @property
    def image_expression(self) -> str | None:
        if isinstance(self.image, ImageMapping):
            return self.image.expression
        return self.image


class CardBackConfig(_DefinitionModel):
    logo: str | None = None
    title: str | None = None
    text: str | None = None


class CardDisplayConfig(_DefinitionModel):
    front: CardFrontConfig = Field(default_factory=CardFrontConfig)
    back: CardBackConfig = Field(default_factory=CardBackConfig)


class DisplayConfig(_DefinitionModel):
    """
    How cards are grouped, ordered and laid out.

    Every mapping is an expression string evaluated at render time by the
    field path resolver or the image selector.
    """

    primary_entity: str | None = None
    group_by: str | None = None
    sort_by: SortSpec | None = None
    sort_within_group: SortSpec | None = None
    card: CardDisplayConfig = Field(default_factory=CardDisplayConfig)
    theme: str | None = None


class CollectionDefinition(_DefinitionModel):
    """The root of a current-format collection."""

    id: str | None = None
    name: str | None = None
    description: str | None = None
    schema_version: str | None = None
    version: str | None = None
    entity_types: dict[str, EntityTypeDefinition]
    primary_type: str
    relationships: tuple[RelationshipDefinition, ...] = ()
    display: DisplayConfig | None = None

    @field_validator("id", "schema_version", "version", mode="before")
    @classmethod
    def _number_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="before")
    @classmethod
    def _normalise_document(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        types_key = "entityTypes" if "entityTypes" in data else "entity_types"
        entity_types = data.get(types_key)
        if isinstance(entity_types, Mapping):
            data[types_key] = {
                name: {**spec, "name": name} if isinstance(spec, Mapping) else spec
                for name, spec in entity_types.items()
            }
            if "primaryType" not in data and "primary_type" not in data:
                data["primaryType"] = _default_primary_type(entity_types)

        relationships = data.get("relationships")
        if isinstance(relationships, Mapping):
            data["relationships"] = _relationships_from_object(relationships)
        elif isinstance(relationships, list):
            data["relationships"] = [
                {k: v for k, v in rel.items() if k != "implicit"} if isinstance(rel, Mapping) else rel
                for rel in relationships
            ]
        return data

    @property
    def entity_type_names(self) -> tuple[str, ...]:
        """Entity type names in declaration order."""
        return tuple(self.entity_types)

    def relationships_for(self, source_type: str) -> tuple[RelationshipDefinition, ...]:
        """Relationships declared on one source type."""
        return tuple(rel for rel in self.relationships if rel.source_type == source_type)


def _default_primary_type(entity_types: Mapping[str, Any]) -> str | None:
    for name, spec in entity_types.items():
        primary = spec.get("primary") if isinstance(spec, Mapping) else getattr(spec, "primary", False)
        if primary is True:
            return name
    return next(iter(entity_types), None)


def _relationships_from_object(relationships: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Convert the "type.field"-keyed relationship object to the list form."""
    references: list[dict[str, Any]] = []
    ordinals: list[tuple[str, str, Any]] = []

    for key, spec in relationships.items():
        source_type, _, source_field = key.partition(".")
        if not source_type or not source_field:
            raise ValueError(f"Relationship key must be 'sourceType.sourceField', got {key!r}")
        spec = spec if isinstance(spec, Mapping) else {}

        if spec.get("type") == "ordinal":
            ordinals.append((source_type, source_field, spec.get("scope")))
            continue

        references.append(
            {
                "sourceType": source_type,
                "sourceField": source_field,
                "targetType": spec.get("target") or source_field,
                "cardinality": spec.get("cardinality", "one"),
                "required": spec.get("required", False),
            }
        )

    for source_type, ordinal_field, scope in ordinals:
        if not isinstance(scope, str) or not scope:
            raise ValueError(f"Ordinal relationship {source_type}.{ordinal_field} needs a scope")
        scoped = next(
            (
                ref
                for ref in references
                if ref["sourceType"] == source_type and ref["targetType"] == scope
            ),
            None,
        )
        if scoped is not None:
            scoped["ordinalField"] = ordinal_field
        else:
            # Scope without a declared reference: the field named after the scope is the reference
            references.append(
                {
                    "sourceType": source_type,
                    "sourceField": scope,
                    "targetType": scope,
                    "cardinality": "one",
                    "ordinalField": ordinal_field,
                }
            )

    return references
