"""
Legacy collection normalisation.

Legacy collections are a flat `items.json` plus `categories.json`, with the
item's category id, rank and device tucked inside a string `metadata`
object and images given as bare URLs. This module rewrites them into the
entity/relationship shape of current collections:

    items.json       -> entity type "item" (primary)
    categories.json  -> entity type "category"
    metadata.category -> relationship item.category -> category
    metadata.rank    -> ordinal field "rank", scoped to the category

Raw keys are kept as they were; lifted values are only added where the
item does not already define them.
"""

from collections.abc import Mapping
from typing import Any

from itemdeck.config import (
    LEGACY_CATEGORY_TYPE,
    LEGACY_ORDINAL_FIELD,
    LEGACY_PRIMARY_TYPE,
    settings,
)
from itemdeck.models.definition import CollectionDefinition


def build_legacy_definition(meta: Mapping[str, Any] | None = None) -> CollectionDefinition:
    """
    Synthesize the definition of a legacy collection.

    Args:
        meta: Optional legacy `collection.json` (name, description, version)

    Returns:
        Definition with the item and category types and their relationship
    """
    meta = meta if isinstance(meta, Mapping) else {}

    return CollectionDefinition.model_validate(
        {
            "id": _text(meta, "id"),
            "name": _text(meta, "name"),
            "description": _text(meta, "description"),
            "version": _text(meta, "version"),
            "entityTypes": {
                LEGACY_PRIMARY_TYPE: {
                    "primary": True,
                    "label": "Item",
                    "labelPlural": "Items",
                    "file": settings.legacy_items_filename,
                    "fields": {
                        "title": {"type": "string", "required": True},
                        "year": "string",
                        "summary": "text",
                        "detailUrl": "url",
                        "images": "images",
                        LEGACY_CATEGORY_TYPE: {"type": "string", "ref": LEGACY_CATEGORY_TYPE},
                        LEGACY_ORDINAL_FIELD: "number",
                        "device": "string",
                    },
                },
                LEGACY_CATEGORY_TYPE: {
                    "label": "Category",
                    "labelPlural": "Categories",
                    "file": settings.legacy_categories_filename,
                    "fields": {
                        "title": {"type": "string", "required": True},
                        "year": "string",
                        "summary": "text",
                        "detailUrl": "url",
                    },
                },
            },
            "primaryType": LEGACY_PRIMARY_TYPE,
            "relationships": [
                {
                    "sourceType": LEGACY_PRIMARY_TYPE,
                    "sourceField": LEGACY_CATEGORY_TYPE,
                    "targetType": LEGACY_CATEGORY_TYPE,
                    "cardinality": "one",
                    "ordinalField": LEGACY_ORDINAL_FIELD,
                }
            ],
            "display": {
                "groupBy": f"{LEGACY_CATEGORY_TYPE}.title",
                "sortWithinGroup": LEGACY_ORDINAL_FIELD,
            },
        }
    )


def normalise_legacy_item(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Rewrite one legacy item into current entity shape.

    Lifts `metadata.category`, `metadata.rank` (as a number) and
    `metadata.device` to top-level fields and builds an `images` array from
    `imageUrls` / `imageUrl` / `logoUrl`.
    """
    item = dict(raw)
    metadata = raw.get("metadata")
    metadata = metadata if isinstance(metadata, Mapping) else {}

    category = metadata.get("category")
    if LEGACY_CATEGORY_TYPE not in item and isinstance(category, str) and category:
        item[LEGACY_CATEGORY_TYPE] = category

    rank = _parse_rank(metadata.get("rank"))
    if LEGACY_ORDINAL_FIELD not in item and rank is not None:
        item[LEGACY_ORDINAL_FIELD] = rank

    device = metadata.get("device")
    if "device" not in item and isinstance(device, str) and device:
        item["device"] = device

    if "images" not in item:
        item["images"] = _legacy_images(raw)

    return item


def _legacy_images(raw: Mapping[str, Any]) -> list[dict[str, Any]]:
    urls = raw.get("imageUrls")
    if not isinstance(urls, list) or not urls:
        urls = [raw["imageUrl"]] if isinstance(raw.get("imageUrl"), str) else []

    images: list[dict[str, Any]] = [{"url": url} for url in urls if isinstance(url, str) and url]

    logo = raw.get("logoUrl")
    if isinstance(logo, str) and logo:
        images.append({"url": logo, "type": "logo"})

    return images


def _text(meta: Mapping[str, Any], key: str) -> str | None:
    value = meta.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return value if isinstance(value, str) and value else None


def _parse_rank(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
