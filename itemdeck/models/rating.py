"""
Rating values.

A rating field holds either a bare number (score out of 5) or a structured
object carrying the scale and where the score came from.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

DEFAULT_RATING_MAX = 5.0


@dataclass(frozen=True, slots=True)
class RatingValue:
    """
    A normalised rating.

    Attributes:
        score: The rating score
        max: Top of the scale
        source: Who produced the rating (e.g., "MobyGames")
        source_url: Link to the rating source
        source_count: Number of reviews the score is based on
    """

    score: float
    max: float = DEFAULT_RATING_MAX
    source: str | None = None
    source_url: str | None = None
    source_count: int | None = None


def is_structured_rating(value: Any) -> bool:
    """True if value is a rating object with a numeric score."""
    return isinstance(value, Mapping) and _is_number(value.get("score"))


def normalise_rating(value: Any, default_max: float = DEFAULT_RATING_MAX) -> RatingValue | None:
    """
    Normalise a raw rating to a RatingValue.

    Returns None for values that are neither a number nor a rating object.
    """
    if isinstance(value, RatingValue):
        return value
    if _is_number(value):
        return RatingValue(score=float(value), max=default_max)
    if not is_structured_rating(value):
        return None

    raw_max = value.get("max")
    source_count = value.get("sourceCount")
    return RatingValue(
        score=float(value["score"]),
        max=float(raw_max) if _is_number(raw_max) and raw_max > 0 else default_max,
        source=value.get("source") if isinstance(value.get("source"), str) else None,
        source_url=value.get("sourceUrl") if isinstance(value.get("sourceUrl"), str) else None,
        source_count=int(source_count) if _is_number(source_count) else None,
    )


def rating_score(value: Any) -> float | None:
    """Score of a raw rating, or None."""
    rating = normalise_rating(value)
    return rating.score if rating else None


def format_rating(value: Any, precision: int = 1) -> str:
    """
    Format a rating for display, e.g. "4.5/5".

    Returns an empty string if value is not a rating.
    """
    rating = normalise_rating(value)
    if rating is None:
        return ""
    return f"{rating.score:.{precision}f}/{rating.max:g}"


def rating_to_percentage(value: Any) -> float | None:
    """Convert a rating to 0-100."""
    rating = normalise_rating(value)
    if rating is None:
        return None
    if rating.max == 0:
        return 0.0
    return rating.score / rating.max * 100


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
