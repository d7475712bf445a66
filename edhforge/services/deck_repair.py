"""
Structural repair of deck records.

Decks loaded from storage or rebuilt from the minimized wire format can be
malformed. repair_deck() returns a best-effort corrected Deck; it fails
(returns None) only when the input is not deck-shaped at all.

INVARIANTS after repair:
- The commander's id never appears among mainboard entries
- Every mainboard entry has quantity >= 1 and a non-empty id
- card_categories only holds overrides for cards still in the deck

Repair is idempotent.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from edhforge.models.card import Card
from edhforge.models.deck import DEFAULT_DECK_NAME, Deck, utc_timestamp

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    """What repair_deck changed."""

    cards_reset: bool = False
    invalid_entries_dropped: int = 0
    commander_discarded: bool = False
    commander_duplicates_removed: int = 0
    quantities_fixed: int = 0
    categories_pruned: int = 0
    defaults_filled: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(
            self.cards_reset
            or self.invalid_entries_dropped
            or self.commander_discarded
            or self.commander_duplicates_removed
            or self.quantities_fixed
            or self.categories_pruned
            or self.defaults_filled
        )


def repair_deck(deck_like: Any) -> Deck | None:
    """
    Repair a possibly malformed deck record.

    Args:
        deck_like: A Deck or a deck-shaped mapping (as produced by Deck.to_dict)

    Returns:
        The corrected Deck, or None if the input is not deck-shaped.
    """
    result = repair_deck_with_report(deck_like)
    return result[0] if result else None


def repair_deck_with_report(deck_like: Any) -> tuple[Deck, RepairReport] | None:
    """Repair a deck record and report what was changed."""
    if isinstance(deck_like, Deck):
        deck_like = deck_like.to_dict()
    if not isinstance(deck_like, Mapping):
        logger.warning("Invalid deck object provided to repair: %r", type(deck_like).__name__)
        return None

    report = RepairReport()

    raw_cards = deck_like.get("cards")
    if not isinstance(raw_cards, list | tuple):
        logger.warning("Deck cards is not a list, using an empty mainboard")
        raw_cards = []
        report.cards_reset = True

    # Invalid entries are filtered before commander dedup so a malformed
    # duplicate cannot hide behind the missing-id check.
    entries: list[Mapping[str, Any]] = []
    for entry in raw_cards:
        if not isinstance(entry, Mapping) or not entry.get("id"):
            logger.warning("Removing invalid card entry: %r", entry)
            report.invalid_entries_dropped += 1
            continue
        entries.append(entry)

    commander: Card | None = None
    raw_commander = deck_like.get("commander")
    if raw_commander is not None:
        if isinstance(raw_commander, Card):
            commander = raw_commander
        elif isinstance(raw_commander, Mapping):
            commander = Card.from_dict(raw_commander)
        else:
            logger.warning("Commander is not a card object, discarding it")
            report.commander_discarded = True

    if commander is not None:
        before = len(entries)
        entries = [e for e in entries if str(e.get("id")) != commander.id]
        report.commander_duplicates_removed = before - len(entries)
        if report.commander_duplicates_removed:
            logger.info(
                "Removed commander %s from main deck to prevent double counting",
                commander.name,
            )

    cards: list[Card] = []
    for entry in entries:
        card = Card.from_dict(entry)
        quantity = entry.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            card = card.with_quantity(1)
            report.quantities_fixed += 1
        cards.append(card)

    defaults: list[str] = []
    name = deck_like.get("name")
    if not name:
        name = DEFAULT_DECK_NAME
        defaults.append("name")
    description = deck_like.get("description")
    if not description:
        description = ""
        if "description" not in deck_like:
            defaults.append("description")
    raw_categories = deck_like.get("card_categories")
    if not isinstance(raw_categories, Mapping):
        raw_categories = {}
        defaults.append("card_categories")
    last_updated = deck_like.get("last_updated")
    if not last_updated:
        last_updated = utc_timestamp()
        defaults.append("last_updated")
    report.defaults_filled = tuple(defaults)

    live_ids = {card.id for card in cards}
    if commander is not None:
        live_ids.add(commander.id)
    card_categories = {
        str(card_id): str(category)
        for card_id, category in raw_categories.items()
        if card_id in live_ids and category
    }
    report.categories_pruned = len(raw_categories) - len(card_categories)

    deck = Deck(
        commander=commander,
        cards=tuple(cards),
        card_categories=card_categories,
        name=str(name),
        description=str(description),
        last_updated=str(last_updated),
    )
    return deck, report
