"""
Image Selector.

Picks images out of an entity's image array with selector expressions:

    images[0]                  -> first image
    images[type=cover]         -> every cover image
    images[type=cover][0]      -> first cover image
    images[isPrimary=true][0]  -> image flagged primary
    images[type=cover][0] ?? images[0]

Bracket tokens apply left to right. Each alternative of a `??` chain is
evaluated against the full array; the first non-empty result wins. An
out-of-range index or a filter that matches nothing gives an empty result
for that alternative, never an error, and an empty array gives an empty
result overall.
"""

import logging
from typing import Any

from itemdeck.config import DEFAULT_IMAGE_EXPRESSION
from itemdeck.models.image import Attribution, Image, parse_images
from itemdeck.services.expressions import evaluate_fallbacks
from itemdeck.services.field_path import (
    FilterStep,
    IndexStep,
    PropertyStep,
    matches_filter,
    parse_path,
)

logger = logging.getLogger(__name__)

_LOGO_EXPRESSION = "images[type=logo][0]"


def select_images(images: Any, expression: str) -> list[Image]:
    """
    Select images with an expression.

    Args:
        images: Image array (Image objects, JSON objects or bare URLs)
        expression: Selector expression, possibly with `??` fallbacks

    Returns:
        Selected images (empty if nothing matches)
    """
    candidates = parse_images(images)
    if not candidates:
        return []

    selected = evaluate_fallbacks(
        expression,
        lambda alternative: _apply(candidates, alternative),
        is_present=bool,
    )
    return selected or []


def select_image(images: Any, expression: str) -> Image | None:
    """First image selected by an expression, or None."""
    selected = select_images(images, expression)
    return selected[0] if selected else None


def primary_image(images: Any, expression: str | None = None) -> Image | None:
    """
    The entity's main image.

    Defaults to: flagged primary, then first cover, then first image.
    """
    return select_image(images, expression or DEFAULT_IMAGE_EXPRESSION)


def primary_image_url(images: Any, expression: str | None = None, fallback_url: str = "") -> str:
    image = primary_image(images, expression)
    return image.url if image else fallback_url


def image_urls(images: Any) -> list[str]:
    """URLs of every image, keeping only absolute http(s) URLs."""
    return [image.url for image in parse_images(images) if _is_absolute_url(image.url)]


def logo_url(images: Any) -> str | None:
    image = select_image(images, _LOGO_EXPRESSION)
    return image.url if image else None


def format_attribution(source: Image | Attribution | None, compact: bool = False) -> str | None:
    """
    Credit line for an image.

    Full form: "Image from Wikimedia Commons by Jane Doe (CC BY-SA 4.0)".
    Compact form: "Wikimedia Commons • CC BY-SA 4.0".

    Returns None when there is no source, author or licence to show.
    """
    attribution = source.attribution if isinstance(source, Image) else source
    if attribution is None:
        return None
    if not (attribution.source or attribution.author or attribution.licence):
        return None

    if compact:
        return " • ".join(part for part in (attribution.source, attribution.licence) if part)

    parts = []
    if attribution.source:
        parts.append(f"Image from {attribution.source}")
    if attribution.author:
        parts.append(f"by {attribution.author}")
    if attribution.licence:
        parts.append(f"({attribution.licence})")
    return " ".join(parts)


def _apply(images: list[Image], alternative: str) -> list[Image]:
    steps = parse_path(alternative)
    if steps is None:
        return []

    # Leading name (normally "images") only labels the array
    if isinstance(steps[0], PropertyStep):
        steps = steps[1:]

    result = images
    for step in steps:
        if not result:
            break
        if isinstance(step, IndexStep):
            result = [result[step.index]] if step.index < len(result) else []
        elif isinstance(step, FilterStep):
            result = [image for image in result if matches_filter(image, step.field, step.value)]
        else:
            logger.debug("Image selector %r has a property step; selecting nothing", alternative)
            return []
    return result


def _is_absolute_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")
