"""
Inspect a collection.

Loads a collection from a URL or directory, resolves it, and prints a
summary: detected format, entity counts, unresolved references and the
first few cards. Useful for checking a collection before publishing it.
"""

import argparse
import asyncio
import json
import logging
from typing import Any

from itemdeck.models.collection import Collection
from itemdeck.models.failure import LoadError
from itemdeck.services.card_builder import build_cards
from itemdeck.services.collection_loader import load_collection
from itemdeck.services.fetch import Fetch

logger = logging.getLogger(__name__)


def summarize_collection(collection: Collection, card_limit: int = 5) -> dict[str, Any]:
    """Plain summary of a loaded collection."""
    cards = build_cards(collection)[:card_limit] if card_limit > 0 else []
    return {
        "name": collection.definition.name,
        "location": collection.location,
        "format": collection.format.value,
        "primaryType": collection.primary_type,
        "entities": {name: len(items) for name, items in collection.entities.items()},
        "unresolved": [
            {
                "source": f"{ref.source_type}[{ref.source_id}].{ref.field}",
                "target": f"{ref.target_type}:{ref.target_id}",
                "reason": ref.reason.value,
            }
            for ref in collection.unresolved
        ],
        "cards": [
            {
                "id": card.id,
                "title": card.title,
                "imageUrl": card.image_url,
                "rank": card.rank,
            }
            for card in cards
        ],
    }


async def run_inspect(
    base_location: str,
    card_limit: int = 5,
    fetch: Fetch | None = None,
) -> dict[str, Any]:
    """Load a collection and summarize it."""
    logger.info("Inspecting collection at %s", base_location)

    try:
        collection = await load_collection(base_location, fetch=fetch)
    except LoadError as e:
        for failure in e.failures:
            logger.error("Load failed (%s): %s", failure.stage.value, failure)
        raise

    if collection.is_degraded:
        logger.warning("%d references could not be resolved", len(collection.unresolved))
    return summarize_collection(collection, card_limit)


def format_summary(summary: dict[str, Any]) -> str:
    """Human-readable rendering of a summary."""
    lines = [
        f"Collection: {summary['name'] or '(unnamed)'}",
        f"Location:   {summary['location']}",
        f"Format:     {summary['format']}",
        f"Primary:    {summary['primaryType']}",
        "Entities:",
    ]
    lines.extend(f"  {name}: {count}" for name, count in summary["entities"].items())

    if summary["unresolved"]:
        lines.append(f"Unresolved references ({len(summary['unresolved'])}):")
        lines.extend(
            f"  {ref['source']} -> {ref['target']} ({ref['reason']})" for ref in summary["unresolved"]
        )

    if summary["cards"]:
        lines.append("Cards:")
        for card in summary["cards"]:
            rank = f"#{card['rank']} " if card["rank"] is not None else ""
            lines.append(f"  {rank}{card['title']} [{card['id']}]")

    return "\n".join(lines)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Load a collection and summarize it")
    parser.add_argument(
        "location",
        help="Base URL or directory of the collection",
    )
    parser.add_argument(
        "--cards",
        type=int,
        default=5,
        help="Number of cards to list (0 for none)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        summary = asyncio.run(run_inspect(args.location, card_limit=args.cards))
    except LoadError:
        raise SystemExit(1) from None

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(format_summary(summary))


if __name__ == "__main__":
    main()
