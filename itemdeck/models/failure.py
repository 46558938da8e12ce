"""
Load Failure Taxonomy: Typed Errors for Collection Loading.

Every failure that aborts a load is classified by the stage that failed
and, where applicable, the document and entity type responsible.

Failure stages:
- Fetch: a location could not be retrieved (network / IO)
- Parse: bytes retrieved but not valid structured data, or missing a
  required field
- InvalidDefinition: the collection definition contradicts itself

NOT failures:
- Unresolved references (a relationship target id was not found). These
  are recorded on the resolved graph and the load still succeeds.
- Expression misses (a field path or image selector yields nothing). These
  are the designed "absent" outcome and surface as None / empty lists.

INVARIANT: none of these errors is retried inside the engine.
"""

from enum import Enum

from pydantic import BaseModel, Field


class LoadStage(str, Enum):
    """Stage of the load pipeline that failed."""

    FETCH = "fetch"
    PARSE = "parse"
    INVALID_DEFINITION = "invalid_definition"


class FailureDetail(BaseModel):
    """Serializable description of a load failure."""

    stage: LoadStage = Field(
        ...,
        description="Pipeline stage that failed",
    )
    message: str = Field(
        ...,
        description="Explanation of what went wrong",
    )
    location: str | None = Field(
        default=None,
        description="Document location responsible, if known",
    )
    entity_type: str | None = Field(
        default=None,
        description="Entity type being loaded, if applicable",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )


class LoadError(Exception):
    """
    Base class for failures that abort a collection load.

    Subclasses fix the stage; callers may catch LoadError to handle every
    stage at once and inspect `stage` to tell them apart.
    """

    stage: LoadStage = LoadStage.FETCH

    def __init__(
        self,
        message: str,
        location: str | None = None,
        entity_type: str | None = None,
        detail: str | None = None,
    ):
        self.message = message
        self.location = location
        self.entity_type = entity_type
        self.detail = detail
        self._others: tuple["LoadError", ...] = ()
        super().__init__(message)

    @property
    def failures(self) -> tuple["LoadError", ...]:
        """This failure followed by any failures from the same load, in declaration order."""
        return (self, *self._others)

    def with_others(self, others: list["LoadError"]) -> "LoadError":
        """Attach failures from sibling entity types that failed in the same load."""
        self._others = tuple(others)
        return self

    def to_detail(self) -> FailureDetail:
        """Convert to a FailureDetail."""
        return FailureDetail(
            stage=self.stage,
            message=self.message,
            location=self.location,
            entity_type=self.entity_type,
            detail=self.detail,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.entity_type:
            parts.append(f"entity type: {self.entity_type}")
        if self.location:
            parts.append(f"location: {self.location}")
        return " | ".join(parts)


class FetchError(LoadError):
    """
    A document could not be retrieved.

    `missing` marks a definite "not found" answer (HTTP 404, missing file).
    Missing documents let the loader try the next naming convention; any
    other fetch failure is fatal immediately.
    """

    stage = LoadStage.FETCH

    def __init__(
        self,
        message: str,
        location: str | None = None,
        entity_type: str | None = None,
        detail: str | None = None,
        missing: bool = False,
    ):
        self.missing = missing
        super().__init__(message, location=location, entity_type=entity_type, detail=detail)


class ParseError(LoadError):
    """Bytes were retrieved but are not a valid document of the expected shape."""

    stage = LoadStage.PARSE


class InvalidDefinitionError(LoadError):
    """The collection definition is internally inconsistent."""

    stage = LoadStage.INVALID_DEFINITION


class LoadSupersededError(Exception):
    """
    A load finished (or was cancelled) after a newer load was requested.

    Its result has been discarded; the newer load owns the session state.
    """

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"Load of {location} was superseded by a newer load")
