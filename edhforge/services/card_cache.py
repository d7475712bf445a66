"""
In-memory card cache.

Stores card data by id with an expiry, so rehydrating saved decks and
re-validating assembled ones does not refetch every card. Bounded in size:
the least recently used card is evicted once the cache is full.
"""

import time
from collections.abc import Callable, Iterable

from cachetools import TTLCache

from edhforge.config import settings
from edhforge.models.card import Card


class CardCache:
    """Card id -> Card with a time-to-live and a size bound."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        maxsize: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = settings.card_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.maxsize = settings.card_cache_max_size if maxsize is None else maxsize
        self._entries: TTLCache[str, Card] = TTLCache(
            maxsize=self.maxsize, ttl=self.ttl_seconds, timer=clock
        )

    def get(self, card_id: str) -> Card | None:
        """Cached card, or None if absent or expired."""
        return self._entries.get(card_id)

    def put(self, cards: Card | Iterable[Card]) -> None:
        """Cache one card or several; cards without an id are ignored."""
        for card in [cards] if isinstance(cards, Card) else cards:
            if card.id:
                # Quantity and category are deck-scoped, not card data
                self._entries[card.id] = card.with_quantity(1).with_category(None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
