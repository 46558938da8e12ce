"""
Collection Loader.

Turns a base location into a resolved Collection:

1. Fetch `collection.json` and detect the schema generation
2. Pick the matching format strategy (CurrentFormat / LegacyFormat)
3. The strategy fetches every entity document concurrently and returns a
   RawCollection, the one shape both generations share
4. The relationship resolver links the raw sets into an EntityGraph

Only step 3 knows which generation is being loaded.

FAILURE SEMANTICS:
- Fetch, parse and definition errors abort the load; nothing is retried
- Entity types are fetched together and the load waits for all of them;
  if several fail, the first in declaration order is raised with every
  failure attached (`error.failures`)
- A definition document that is missing (not found) means a legacy
  collection without metadata
"""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from itemdeck.config import (
    LEGACY_CATEGORY_TYPE,
    LEGACY_PRIMARY_TYPE,
    settings,
)
from itemdeck.models.collection import Collection, CollectionFormat, RawCollection
from itemdeck.models.definition import CollectionDefinition, EntityTypeDefinition
from itemdeck.models.entity import Entity
from itemdeck.models.failure import FetchError, LoadError, LoadSupersededError
from itemdeck.parsers.definition import decode_json, detect_format, parse_definition
from itemdeck.parsers.entities import extract_entity_ids, parse_entities
from itemdeck.parsers.legacy import build_legacy_definition, normalise_legacy_item
from itemdeck.services.fetch import Fetch, HttpFetcher, call_fetch, fetcher_for, join_location
from itemdeck.services.relationship_resolver import resolve_graph

logger = logging.getLogger(__name__)


class DocumentSource:
    """
    One load's view of the fetch capability.

    Resolves names against the base location and bounds the number of
    fetches in flight.
    """

    def __init__(self, base_location: str, fetch: Fetch, max_concurrent: int | None = None) -> None:
        self.base_location = base_location
        self._fetch = fetch
        self._semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_fetches)

    def location(self, *parts: str) -> str:
        return join_location(self.base_location, *parts)

    async def fetch(self, location: str, entity_type: str | None = None) -> bytes:
        async with self._semaphore:
            return await call_fetch(self._fetch, location, entity_type=entity_type)


class FormatStrategy(Protocol):
    """Loads the raw entity sets of one schema generation."""

    format: CollectionFormat

    async def load_raw(self, source: DocumentSource) -> RawCollection: ...


@dataclass(frozen=True, slots=True)
class _Candidate:
    path: str
    is_index: bool = False


class CurrentFormat:
    """
    Entity types declared in `entityTypes`, one document (or directory) each.

    Candidate documents per type, first found wins:
        explicit `file`, {type}.json, {type}s.json,
        {type}s/index.json, {type}s/_index.json
    Directory layouts try the index documents first.
    """

    format = CollectionFormat.CURRENT

    def __init__(self, definition: CollectionDefinition) -> None:
        self.definition = definition

    async def load_raw(self, source: DocumentSource) -> RawCollection:
        names = self.definition.entity_type_names
        results = await asyncio.gather(
            *(self._load_type(source, name) for name in names),
            return_exceptions=True,
        )
        entity_sets = _collect(names, results)
        return RawCollection(
            definition=self.definition,
            entity_sets=entity_sets,
            format=self.format,
            location=source.base_location,
        )

    def candidates(self, type_name: str) -> list[_Candidate]:
        """Documents to try for one entity type, in order."""
        spec: EntityTypeDefinition = self.definition.entity_types[type_name]
        plural = f"{type_name}s"

        files = [_Candidate(f"{type_name}.json"), _Candidate(f"{plural}.json")]
        directories = [
            _Candidate(f"{plural}/index.json", is_index=True),
            _Candidate(f"{plural}/_index.json", is_index=True),
        ]

        ordered = directories + files if spec.layout == "directory" else files + directories
        if spec.file:
            ordered.insert(0, _Candidate(spec.file, is_index=spec.layout == "directory"))

        unique: list[_Candidate] = []
        for candidate in ordered:
            if candidate.path not in (c.path for c in unique):
                unique.append(candidate)
        return unique

    async def _load_type(self, source: DocumentSource, type_name: str) -> list[Entity]:
        tried: list[str] = []

        for candidate in self.candidates(type_name):
            location = source.location(candidate.path)
            tried.append(location)
            try:
                data = await source.fetch(location, entity_type=type_name)
            except FetchError as e:
                if not e.missing:
                    raise
                logger.debug("No %s document at %s", type_name, location)
                continue

            if candidate.is_index:
                entities = await self._load_directory(source, type_name, location, data)
            else:
                entities = parse_entities(data, type_name, location)
            logger.info("Loaded %d %s entities from %s", len(entities), type_name, location)
            return entities

        raise FetchError(
            f"No entity document found for type '{type_name}'",
            location=tried[0] if tried else None,
            entity_type=type_name,
            detail=f"Tried: {', '.join(tried)}",
            missing=True,
        )

    async def _load_directory(
        self,
        source: DocumentSource,
        type_name: str,
        index_location: str,
        data: bytes,
    ) -> list[Entity]:
        ids = extract_entity_ids(
            decode_json(data, location=index_location, entity_type=type_name),
            f"{type_name}s",
        )
        directory = index_location.rsplit("/", 1)[0]

        async def load_one(entity_id: str) -> list[Entity]:
            location = join_location(directory, f"{entity_id}.json")
            try:
                raw = await source.fetch(location, entity_type=type_name)
            except FetchError as e:
                if not e.missing:
                    raise
                logger.warning("Skipping %s '%s': %s not found", type_name, entity_id, location)
                return []
            return parse_entities(raw, type_name, location)

        # Wait for every file before failing, so no fetch outlives the load
        batches = await asyncio.gather(
            *(load_one(entity_id) for entity_id in ids),
            return_exceptions=True,
        )
        entities: list[Entity] = []
        for batch in batches:
            if isinstance(batch, BaseException):
                raise batch
            entities.extend(batch)
        return entities


class LegacyFormat:
    """
    A flat `items.json` plus `categories.json`.

    Items become the primary `item` type and categories the `category`
    type, linked by `item.category` with `rank` as the ordinal. A missing
    categories document leaves every item's category unresolved rather than
    failing the load.
    """

    format = CollectionFormat.LEGACY

    def __init__(self, meta: Mapping[str, Any] | None = None) -> None:
        self.meta = meta

    async def load_raw(self, source: DocumentSource) -> RawCollection:
        names = (LEGACY_PRIMARY_TYPE, LEGACY_CATEGORY_TYPE)
        results = await asyncio.gather(
            self._load_document(
                source,
                settings.legacy_items_filename,
                LEGACY_PRIMARY_TYPE,
                normalise_legacy_item,
            ),
            self._load_document(
                source,
                settings.legacy_categories_filename,
                LEGACY_CATEGORY_TYPE,
                optional=True,
            ),
            return_exceptions=True,
        )
        return RawCollection(
            definition=build_legacy_definition(self.meta),
            entity_sets=_collect(names, results),
            format=self.format,
            location=source.base_location,
        )

    async def _load_document(
        self,
        source: DocumentSource,
        filename: str,
        type_name: str,
        normalise: Callable[[Mapping[str, Any]], Mapping[str, Any]] | None = None,
        optional: bool = False,
    ) -> list[Entity]:
        location = source.location(filename)
        try:
            data = await source.fetch(location, entity_type=type_name)
        except FetchError as e:
            if not (optional and e.missing):
                raise
            logger.warning("Legacy collection has no %s; %s links stay unresolved", filename, type_name)
            return []

        document = decode_json(data, location=location, entity_type=type_name)
        if normalise is not None and isinstance(document, list):
            document = [normalise(item) if isinstance(item, Mapping) else item for item in document]

        entities = parse_entities(document, type_name, location)
        logger.info("Loaded %d legacy %s entities from %s", len(entities), type_name, location)
        return entities


def _collect(
    names: Sequence[str],
    results: Sequence[list[Entity] | BaseException],
) -> dict[str, list[Entity]]:
    """Join per-type results; raise the first failure (declaration order) with the rest attached."""
    failures: list[LoadError] = []
    entity_sets: dict[str, list[Entity]] = {}

    for name, result in zip(names, results, strict=True):
        if isinstance(result, LoadError):
            failures.append(result)
        elif isinstance(result, BaseException):
            raise result
        else:
            entity_sets[name] = result

    if failures:
        for failure in failures:
            logger.error("Loading %s failed: %s", failure.entity_type or "collection", failure)
        raise failures[0].with_others(failures[1:])
    return entity_sets


def strategy_for(document: Any, location: str | None = None) -> FormatStrategy:
    """
    Select the format strategy for a decoded definition document.

    Args:
        document: Decoded `collection.json`, or None if there is none
        location: Where the document came from, for error reporting

    Raises:
        ParseError: If a current-format definition has an invalid shape
        InvalidDefinitionError: If it contradicts itself
    """
    if detect_format(document) == CollectionFormat.CURRENT:
        return CurrentFormat(parse_definition(document, location=location))
    return LegacyFormat(document if isinstance(document, Mapping) else None)


def resolve_collection(raw: RawCollection) -> Collection:
    """Resolve a RawCollection's relationships into a Collection."""
    graph = resolve_graph(raw.definition, raw.entity_sets)
    return Collection(
        definition=raw.definition,
        format=raw.format,
        graph=graph,
        location=raw.location,
    )


async def load_collection(
    base_location: str,
    fetch: Fetch | None = None,
    max_concurrent: int | None = None,
) -> Collection:
    """
    Load and resolve a collection.

    Args:
        base_location: Base URL or directory of the collection
        fetch: Fetch capability (default: HTTP or filesystem by location)
        max_concurrent: Upper bound on fetches in flight

    Returns:
        The resolved Collection

    Raises:
        FetchError: If a required document cannot be retrieved
        ParseError: If a document is not valid JSON of the expected shape
        InvalidDefinitionError: If the definition contradicts itself
    """
    if fetch is None:
        fetch = fetcher_for(base_location)
        if isinstance(fetch, HttpFetcher):
            async with fetch:
                return await _load(base_location, fetch, max_concurrent)
    return await _load(base_location, fetch, max_concurrent)


async def _load(base_location: str, fetch: Fetch, max_concurrent: int | None) -> Collection:
    source = DocumentSource(base_location, fetch, max_concurrent)
    definition_location = source.location(settings.definition_filename)
    logger.info("Loading collection from %s", base_location)

    document: Any = None
    try:
        data = await source.fetch(definition_location)
    except FetchError as e:
        if not e.missing:
            raise
        logger.info("No %s at %s; loading as legacy collection", settings.definition_filename, base_location)
    else:
        document = decode_json(data, location=definition_location)

    strategy = strategy_for(document, location=definition_location)
    logger.info("Detected %s format", strategy.format.value)

    raw = await strategy.load_raw(source)
    collection = resolve_collection(raw)

    logger.info(
        "Loaded collection %s: %d %s cards%s",
        collection.definition.name or base_location,
        len(collection.cards),
        collection.primary_type,
        f", {len(collection.unresolved)} unresolved references" if collection.is_degraded else "",
    )
    return collection


class CollectionSession:
    """
    Holds the collection currently being browsed.

    `switch` starts a new load and cancels any load still in flight. A
    superseded load never replaces the current collection: its caller gets
    LoadSupersededError. A failed load leaves the current collection as it
    was.
    """

    def __init__(self, fetch: Fetch | None = None, max_concurrent: int | None = None) -> None:
        self._fetch = fetch
        self._max_concurrent = max_concurrent
        self._current: Collection | None = None
        self._generation = 0
        self._task: asyncio.Task[Collection] | None = None

    @property
    def current(self) -> Collection | None:
        return self._current

    @property
    def is_loading(self) -> bool:
        return self._task is not None and not self._task.done()

    async def switch(self, base_location: str) -> Collection:
        """
        Load a collection and make it current.

        Raises:
            LoadSupersededError: If another switch started before this one finished
            LoadError: If the load failed (current collection unchanged)
        """
        self.cancel()
        self._generation += 1
        generation = self._generation

        task = asyncio.create_task(load_collection(base_location, self._fetch, self._max_concurrent))
        self._task = task

        try:
            collection = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if generation != self._generation and not (current and current.cancelling()):
                raise LoadSupersededError(base_location) from None
            raise
        except LoadError as e:
            if generation != self._generation:
                raise LoadSupersededError(base_location) from e
            raise
        finally:
            if self._task is task:
                self._task = None

        if generation != self._generation:
            logger.info("Discarding superseded load of %s", base_location)
            raise LoadSupersededError(base_location)

        self._current = collection
        return collection

    def cancel(self) -> None:
        """Cancel the load in flight, if any. Its caller gets LoadSupersededError."""
        if self._task is not None and not self._task.done():
            self._generation += 1
            logger.info("Cancelling in-flight collection load")
            self._task.cancel()
        self._task = None
