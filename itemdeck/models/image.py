"""
Image Models.

Images embedded in entity records, with optional provenance metadata.
Parsing is lenient: entries without a URL are skipped rather than
rejected, since image arrays are caller data the engine does not own.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# JSON attribute names accepted by selector filters, mapped to Image attributes
_ATTRIBUTE_NAMES = {
    "url": "url",
    "type": "type",
    "alt": "alt",
    "isPrimary": "is_primary",
    "is_primary": "is_primary",
    "width": "width",
    "height": "height",
}


@dataclass(frozen=True, slots=True)
class Attribution:
    """
    Provenance of an image.

    Attributes:
        source: Where the image came from (e.g., "Wikimedia Commons")
        source_url: Link to the original source page
        author: Creator of the image
        licence: Licence name (e.g., "CC BY-SA 4.0")
        licence_url: Link to the licence text
    """

    source: str | None = None
    source_url: str | None = None
    author: str | None = None
    licence: str | None = None
    licence_url: str | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Attribution":
        """Build from a JSON object. A bare `url` key is read as source_url."""
        return cls(
            source=_optional_str(data.get("source")),
            source_url=_optional_str(data.get("sourceUrl", data.get("url"))),
            author=_optional_str(data.get("author")),
            licence=_optional_str(data.get("licence")),
            licence_url=_optional_str(data.get("licenceUrl")),
        )


@dataclass(frozen=True, slots=True)
class Image:
    """
    A single image of an entity.

    Attributes:
        url: Image location
        type: Free-form type tag ("cover", "logo", "screenshot", ...)
        alt: Accessibility text
        is_primary: Explicitly marked as the entity's main image
        width: Width in pixels
        height: Height in pixels
        attribution: Provenance metadata
    """

    url: str
    type: str | None = None
    alt: str | None = None
    is_primary: bool = False
    width: int | None = None
    height: int | None = None
    attribution: Attribution | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Image":
        """Build from a JSON object. Raises ValueError if `url` is missing."""
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("Image requires a url")

        attribution = data.get("attribution")
        return cls(
            url=url,
            type=_optional_str(data.get("type")),
            alt=_optional_str(data.get("alt")),
            is_primary=data.get("isPrimary") is True,
            width=_optional_int(data.get("width")),
            height=_optional_int(data.get("height")),
            attribution=(
                Attribution.from_json(attribution) if isinstance(attribution, Mapping) else None
            ),
        )

    def attribute(self, name: str) -> Any:
        """
        Look up an attribute by its JSON name.

        Unknown names return None so selector filters on them match nothing.
        """
        attr = _ATTRIBUTE_NAMES.get(name)
        if attr is None:
            return None
        return getattr(self, attr)


def parse_images(value: Any) -> list[Image]:
    """
    Parse a JSON image array.

    Accepts image objects and bare URL strings. Anything else, including
    objects without a URL, is skipped.

    Args:
        value: Raw JSON value, normally a list

    Returns:
        List of images in source order (empty if value is not a list)
    """
    if isinstance(value, Image):
        return [value]
    if not isinstance(value, (list, tuple)):
        return []

    images: list[Image] = []
    for item in value:
        if isinstance(item, Image):
            images.append(item)
        elif isinstance(item, str) and item:
            images.append(Image(url=item))
        elif isinstance(item, Mapping):
            try:
                images.append(Image.from_json(item))
            except ValueError:
                continue
    return images


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
