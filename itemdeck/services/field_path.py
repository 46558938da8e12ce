"""
Field Path Resolver.

Evaluates dot/bracket path expressions against resolved entities:

    title                     -> raw field
    images[0].url             -> array index, then property
    images[type=cover][0]     -> filter an array by an item attribute
    platform.title            -> follow the resolved `platform` link
    verdict ?? title ?? "?"   -> fallback chain ending in a literal

A path that runs into a missing field, an unresolved or absent
relationship, an out-of-range index or a value of the wrong shape yields
no value (None). Only the whole fallback chain decides what the caller
sees; nothing here raises on caller data.

These are pure functions evaluated per card at render time.
"""

import json
import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from itemdeck.models.definition import SortDirection, SortSpec
from itemdeck.models.entity import Entity, Reference, ResolvedEntity
from itemdeck.models.image import Image, parse_images
from itemdeck.services.expressions import NOT_LITERAL, evaluate_fallbacks, parse_literal

logger = logging.getLogger(__name__)

_PROPERTY_PATTERN = re.compile(r"[A-Za-z_$][\w$-]*")
_INDEX_PATTERN = re.compile(r"\d+")


@dataclass(frozen=True, slots=True)
class PropertyStep:
    name: str


@dataclass(frozen=True, slots=True)
class IndexStep:
    index: int


@dataclass(frozen=True, slots=True)
class FilterStep:
    field: str
    value: str


PathStep = PropertyStep | IndexStep | FilterStep


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[PathStep, ...] | None:
    """
    Parse a single path (no fallbacks) into steps.

    Returns None for a malformed path. Each distinct malformed path is
    logged once.
    """
    steps: list[PathStep] = []
    i = 0
    expect_property = True

    while i < len(path):
        char = path[i]

        if char == "[":
            end = path.find("]", i)
            if end == -1:
                return _malformed(path, "unclosed bracket")
            content = path[i + 1 : end].strip()
            step = _parse_bracket(content)
            if step is None:
                return _malformed(path, f"invalid bracket [{content}]")
            steps.append(step)
            i = end + 1
            expect_property = False
            continue

        if char == ".":
            if expect_property:
                return _malformed(path, "empty property name")
            i += 1
            expect_property = True
            continue

        match = _PROPERTY_PATTERN.match(path, i)
        if match is None or not expect_property:
            return _malformed(path, f"unexpected character {char!r}")
        steps.append(PropertyStep(match.group()))
        i = match.end()
        expect_property = False

    if not steps or expect_property:
        return _malformed(path, "path is empty or ends with '.'")
    return tuple(steps)


def _parse_bracket(content: str) -> PathStep | None:
    if _INDEX_PATTERN.fullmatch(content):
        return IndexStep(int(content))
    field, sep, value = content.partition("=")
    field = field.strip()
    if sep and _PROPERTY_PATTERN.fullmatch(field):
        return FilterStep(field, value.strip())
    return None


def _malformed(path: str, reason: str) -> None:
    logger.warning("Ignoring malformed field path %r: %s", path, reason)
    return None


def resolve_field_path(entity: Any, expression: str) -> Any:
    """
    Resolve an expression against an entity.

    Args:
        entity: ResolvedEntity (raw Entity or plain mapping also accepted)
        expression: Path expression, possibly with `??` fallbacks

    Returns:
        The first present value in the chain, or None
    """
    return evaluate_fallbacks(expression, lambda alternative: _evaluate(entity, alternative))


def resolve_as_string(entity: Any, expression: str, default: str | None = None) -> str | None:
    """
    Resolve an expression to display text.

    Numbers are rendered as text; empty strings and non-scalar values count
    as absent, so the chain moves on to the next alternative.
    """
    result = evaluate_fallbacks(
        expression, lambda alternative: _as_string(_evaluate(entity, alternative))
    )
    return default if result is None else result


def resolve_as_number(
    entity: Any, expression: str, default: float | None = None
) -> int | float | None:
    """
    Resolve an expression to a number.

    Numeric strings are parsed; anything else non-numeric counts as absent.
    """
    result = evaluate_fallbacks(
        expression, lambda alternative: as_number(_evaluate(entity, alternative))
    )
    return default if result is None else result


def resolve_images(entity: Any, expression: str = "images") -> list[Image]:
    """Resolve an expression to a list of images (empty if absent)."""
    return parse_images(resolve_field_path(entity, expression))


def sort_entities(
    entities: Iterable[ResolvedEntity],
    spec: SortSpec | str | None,
) -> list[ResolvedEntity]:
    """
    Sort entities by the value at a field path.

    Entities without a value go last in either direction, in their original
    order. Numbers compare numerically, strings case-insensitively, other
    values by their JSON text. The sort is stable.
    """
    items = list(entities)
    if spec is None:
        return items
    if isinstance(spec, str):
        spec = SortSpec(field=spec)

    present: list[tuple[tuple[int, Any], ResolvedEntity]] = []
    missing: list[ResolvedEntity] = []
    for entity in items:
        value = resolve_field_path(entity, spec.field)
        if value is None:
            missing.append(entity)
        else:
            present.append((_sort_key(value), entity))

    present.sort(key=lambda pair: pair[0], reverse=spec.direction == SortDirection.DESC)
    return [entity for _, entity in present] + missing


def group_entities(
    entities: Iterable[ResolvedEntity],
    expression: str,
) -> dict[str | None, list[ResolvedEntity]]:
    """
    Group entities by the text value of an expression.

    Groups appear in order of first occurrence; entities without a value are
    grouped under None.
    """
    groups: dict[str | None, list[ResolvedEntity]] = {}
    for entity in entities:
        groups.setdefault(resolve_as_string(entity, expression), []).append(entity)
    return groups


def as_number(value: Any) -> int | float | None:
    """A number, or a string holding one; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _as_string(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return None


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, str):
        return (1, value.casefold())
    if isinstance(value, ResolvedEntity):
        return (2, value.id)
    return (3, json.dumps(value, sort_keys=True, default=str))


def _evaluate(root: Any, alternative: str) -> Any:
    literal = parse_literal(alternative)
    if literal is not NOT_LITERAL:
        return literal

    steps = parse_path(alternative)
    if steps is None:
        return None

    current = root
    for step in steps:
        if current is None:
            return None
        if isinstance(step, PropertyStep):
            current = _property(current, step.name)
        elif isinstance(step, IndexStep):
            if not isinstance(current, Sequence) or isinstance(current, str):
                return None
            current = current[step.index] if step.index < len(current) else None
        else:
            if not isinstance(current, Sequence) or isinstance(current, str):
                return None
            current = [item for item in current if matches_filter(item, step.field, step.value)]
            # No match is no value, so `??` moves on
            if not current:
                return None
    return current


def _property(current: Any, name: str) -> Any:
    if isinstance(current, ResolvedEntity):
        link = current.link(name)
        if link is None:
            return current.get(name)
        if isinstance(link, tuple):
            followed = [item.entity for item in link if isinstance(item, Reference)]
            return [entity for entity in followed if entity is not None]
        return link.entity if isinstance(link, Reference) else None
    if isinstance(current, Entity):
        return current.get(name)
    if isinstance(current, Image):
        return current.attribute(name)
    if isinstance(current, Mapping):
        return current.get(name)
    return None


def matches_filter(item: Any, field: str, expected: str) -> bool:
    """
    Test one array item against a `[field=value]` filter.

    `true` / `false` compare as booleans, quoted values as text and numeric
    values numerically against numeric attributes.
    """
    actual = _property(item, field)
    if actual is None:
        return False

    literal = parse_literal(expected)
    if literal is NOT_LITERAL:
        if expected in ("true", "false"):
            literal = expected == "true"
        else:
            literal = expected

    if isinstance(actual, bool) or isinstance(literal, bool):
        return actual is literal
    if isinstance(actual, (int, float)):
        return isinstance(literal, (int, float)) and literal == actual
    return actual == literal or actual == expected
