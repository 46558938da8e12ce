"""
Card builder.

Evaluates a collection's display mappings against resolved entities to
produce plain, display-ready card records. Runs at render time, so a change
to the display configuration never requires reloading the collection.
"""

from dataclasses import dataclass, field

from itemdeck.config import DEFAULT_LOGO_EXPRESSION, DEFAULT_TITLE_EXPRESSION
from itemdeck.models.collection import Collection
from itemdeck.models.definition import CardDisplayConfig, CollectionDefinition, DisplayConfig
from itemdeck.models.entity import ResolvedEntity
from itemdeck.models.image import Image
from itemdeck.models.rating import format_rating
from itemdeck.services.field_path import (
    group_entities,
    resolve_as_string,
    resolve_images,
    sort_entities,
)
from itemdeck.services.image_selector import format_attribution, image_urls, primary_image
from itemdeck.services.relationship_resolver import get_entity_rank

RATING_FIELD = "rating"


@dataclass(frozen=True, slots=True)
class DisplayCard:
    """
    Display-ready values for one card.

    Attributes:
        id: Entity id
        entity_type: Entity type of the card
        title: Front title (falls back to the entity id)
        subtitle: Front subtitle
        image: Selected front image
        image_urls: Every absolute image URL, for galleries
        badge: Primary badge text
        secondary_badge: Secondary badge text
        footer: Footer lines, absent values skipped
        logo_url: Back logo
        back_title: Back title
        back_text: Back text
        rank: Ordinal rank within its scope
        rating: Formatted rating (e.g. "4.5/5")
        attribution: Credit line for the front image
    """

    id: str
    entity_type: str
    title: str
    subtitle: str | None = None
    image: Image | None = None
    image_urls: tuple[str, ...] = ()
    badge: str | None = None
    secondary_badge: str | None = None
    footer: tuple[str, ...] = ()
    logo_url: str | None = None
    back_title: str | None = None
    back_text: str | None = None
    rank: int | float | None = None
    rating: str | None = None
    attribution: str | None = None
    entity: ResolvedEntity | None = field(default=None, repr=False, compare=False)

    @property
    def image_url(self) -> str | None:
        return self.image.url if self.image else None


def build_card(
    entity: ResolvedEntity,
    display: DisplayConfig | None = None,
    definition: CollectionDefinition | None = None,
) -> DisplayCard:
    """
    Build the display card of one entity.

    Args:
        entity: Resolved entity to show
        display: Display configuration (defaults apply where unset)
        definition: Definition declaring ordinal fields, for the rank

    Returns:
        The DisplayCard
    """
    card = display.card if display else CardDisplayConfig()
    front = card.front
    back = card.back

    images = resolve_images(entity)
    image = primary_image(images, front.image_expression)

    def optional(expression: str | None) -> str | None:
        return resolve_as_string(entity, expression) if expression else None

    footer = tuple(
        value for value in (resolve_as_string(entity, expression) for expression in front.footer) if value
    )

    return DisplayCard(
        id=entity.id,
        entity_type=entity.entity_type,
        title=resolve_as_string(entity, front.title or DEFAULT_TITLE_EXPRESSION, default=entity.id),
        subtitle=optional(front.subtitle),
        image=image,
        image_urls=tuple(image_urls(images)),
        badge=optional(front.badge),
        secondary_badge=optional(front.secondary_badge),
        footer=footer,
        logo_url=resolve_as_string(entity, back.logo or DEFAULT_LOGO_EXPRESSION),
        back_title=optional(back.title),
        back_text=optional(back.text),
        rank=get_entity_rank(entity, definition),
        rating=format_rating(entity.get(RATING_FIELD)) or None,
        attribution=format_attribution(image),
        entity=entity,
    )


def build_cards(collection: Collection) -> list[DisplayCard]:
    """Cards of the collection's primary type, ordered by `display.sortBy`."""
    display = collection.display_config
    entities = list(collection.cards)
    if display and display.sort_by:
        entities = sort_entities(entities, display.sort_by)
    return [build_card(entity, display, collection.definition) for entity in entities]


def build_card_groups(collection: Collection) -> dict[str | None, list[DisplayCard]]:
    """
    Cards grouped by `display.groupBy`, each group ordered by `display.sortWithinGroup`.

    Without a groupBy every card lands in a single None group.
    """
    display = collection.display_config
    entities = list(collection.cards)
    if display and display.sort_by:
        entities = sort_entities(entities, display.sort_by)

    if not (display and display.group_by):
        groups: dict[str | None, list[ResolvedEntity]] = {None: entities}
    else:
        groups = group_entities(entities, display.group_by)

    within = display.sort_within_group if display else None
    return {
        key: [build_card(entity, display, collection.definition) for entity in sort_entities(members, within)]
        for key, members in groups.items()
    }
