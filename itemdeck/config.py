from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="ITEMDECK_")

    # HTTP fetching
    request_timeout: float = 30.0
    user_agent: str = "itemdeck/1.0"

    # Upper bound on fetches in flight for a single load
    max_concurrent_fetches: int = 8

    definition_filename: str = "collection.json"
    legacy_items_filename: str = "items.json"
    legacy_categories_filename: str = "categories.json"


settings = Settings()


# =============================================================================
# EXPRESSION DEFAULTS
# =============================================================================

# Primary image: flagged primary, then cover art, then whatever comes first
DEFAULT_IMAGE_EXPRESSION = "images[isPrimary=true][0] ?? images[type=cover][0] ?? images[0]"

DEFAULT_LOGO_EXPRESSION = "images[type=logo][0].url"

DEFAULT_TITLE_EXPRESSION = "title"


# =============================================================================
# RELATIONSHIP RESOLUTION
# =============================================================================

# Fields never treated as implicit references, even if an entity type shares the name
IMPLICIT_EXCLUDED_FIELDS = frozenset({"id", "images"})

# Ordinal fields consulted when no relationship declares one
FALLBACK_ORDINAL_FIELDS = ("rank", "myRank")


# =============================================================================
# LEGACY FORMAT
# =============================================================================

LEGACY_PRIMARY_TYPE = "item"
LEGACY_CATEGORY_TYPE = "category"
LEGACY_ORDINAL_FIELD = "rank"
