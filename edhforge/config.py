from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "EDHForge"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/edhforge"

    scryfall_api_url: str = "https://api.scryfall.com"
    scryfall_user_agent: str = "EDHForge/1.0"

    anthropic_api_key: str = ""
    generator_model: str = "claude-sonnet-4-20250514"
    generator_max_tokens: int = 4000

    # Serialized deck records above this size are rejected, never truncated
    max_deck_payload_chars: int = 12_000

    # Card data cached by id for 7 days
    card_cache_ttl_seconds: int = 7 * 24 * 60 * 60
    card_cache_max_size: int = 20_000

    # Builder sessions expire after an hour without use
    session_ttl_seconds: int = 60 * 60
    session_max_count: int = 1_000

    # Shared retry policy for the card data and generator collaborators
    retry_max_attempts: int = 3
    retry_base_delay: float = 0.25
    retry_max_delay: float = 2.0

    # Replacement proposals tried per violating slot before a basic land is used
    max_replacement_attempts: int = 2


settings = Settings()


# =============================================================================
# COMMANDER DECK CONSTRUCTION LIMITS
# =============================================================================

# Mainboard size, commander excluded
MAIN_DECK_SIZE = 99

# Full deck size, commander included
COMMANDER_DECK_SIZE = 100

# Upper bound on a single entry's quantity (basic lands only in a legal deck)
MAX_CARD_QUANTITY = 99
