"""
Deck card counting.

Pure functions over a mainboard card list and an optional commander. Nothing
is cached; callers memoise against content_key() if they need to.
"""

import hashlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from edhforge.config import COMMANDER_DECK_SIZE, MAIN_DECK_SIZE
from edhforge.models.card import Card
from edhforge.models.deck import Deck

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionInfo:
    """How close a deck is to a complete 100-card Commander deck."""

    main_deck_count: int
    total_count: int
    has_commander: bool
    is_complete: bool
    is_main_deck_full: bool
    remaining_main_slots: int
    remaining_total_slots: int


def _entry_quantity(entry: Any) -> int:
    """Quantity of a Card or raw mapping entry; missing or zero counts as 1."""
    if isinstance(entry, Card):
        quantity: Any = entry.quantity
    elif isinstance(entry, Mapping):
        quantity = entry.get("quantity")
    else:
        quantity = None
    return quantity if isinstance(quantity, int) and quantity else 1


def cards_of(deck_or_cards: Any) -> Sequence[Any]:
    """
    Boundary adapter for legacy call shapes.

    Accepts a Deck, a deck-shaped mapping with a "cards" list, or a bare
    card list. Anything else is treated as an empty mainboard.
    """
    if isinstance(deck_or_cards, Deck):
        return deck_or_cards.cards
    if isinstance(deck_or_cards, Mapping):
        deck_or_cards = deck_or_cards.get("cards")
    if isinstance(deck_or_cards, list | tuple):
        return deck_or_cards
    if deck_or_cards is not None:
        logger.warning("Card list is not a sequence: %r", type(deck_or_cards).__name__)
    return ()


def main_deck_count(cards: Any) -> int:
    """Total copies in the mainboard, commander excluded."""
    return sum(_entry_quantity(card) for card in cards_of(cards))


def total_count(cards: Any, commander: Card | None = None) -> int:
    """Mainboard copies plus one for the commander if present."""
    return main_deck_count(cards) + (1 if commander else 0)


def is_complete(cards: Any, commander: Card | None = None) -> bool:
    """True if the deck holds exactly 100 cards including the commander."""
    return total_count(cards, commander) == COMMANDER_DECK_SIZE


def is_main_deck_full(cards: Any) -> bool:
    """True once the mainboard has reached 99 cards."""
    return main_deck_count(cards) >= MAIN_DECK_SIZE


def completion_info(cards: Any, commander: Card | None = None) -> CompletionInfo:
    """Collect all count-derived completion fields in one pass."""
    main = main_deck_count(cards)
    total = main + (1 if commander else 0)
    return CompletionInfo(
        main_deck_count=main,
        total_count=total,
        has_commander=commander is not None,
        is_complete=total == COMMANDER_DECK_SIZE,
        is_main_deck_full=main >= MAIN_DECK_SIZE,
        remaining_main_slots=max(0, MAIN_DECK_SIZE - main),
        remaining_total_slots=max(0, COMMANDER_DECK_SIZE - total),
    )


def content_key(cards: Any) -> str:
    """Stable hash of the (id, quantity) list, usable as a memoisation key."""
    digest = hashlib.sha256()
    for card in cards_of(cards):
        if isinstance(card, Card):
            card_id = card.id
        elif isinstance(card, Mapping):
            card_id = str(card.get("id", ""))
        else:
            card_id = ""
        digest.update(f"{card_id}:{_entry_quantity(card)};".encode())
    return digest.hexdigest()
