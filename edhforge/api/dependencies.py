"""
Shared FastAPI dependencies for the external collaborators.

One Scryfall client (and its card cache) is shared by every request. Tests
replace these through app.dependency_overrides.
"""

from edhforge.services.deck_generator import AnthropicDeckGenerator, DeckGenerator
from edhforge.services.deck_session import DeckSessionRegistry
from edhforge.services.scryfall_client import ScryfallClient

_card_source: ScryfallClient | None = None
_session_registry = DeckSessionRegistry()


def get_card_source() -> ScryfallClient:
    global _card_source
    if _card_source is None:
        _card_source = ScryfallClient()
    return _card_source


async def close_card_source() -> None:
    global _card_source
    if _card_source is not None:
        await _card_source.aclose()
        _card_source = None


def get_generator() -> DeckGenerator:
    """
    Deck generator for assembly requests.

    Raises:
        GeneratorError: If no Anthropic API key is configured
    """
    return AnthropicDeckGenerator()


def get_session_registry() -> DeckSessionRegistry:
    return _session_registry
