"""
Deck statistics: mana curve, color spread and card types.

All counts are weighted by quantity. Lands are excluded from the mana
curve and the average mana value.
"""

from collections.abc import Sequence
from typing import Any

from edhforge.models.card import COLOR_ORDER, Card
from edhforge.models.deck import Deck

# Mana values of 7 and above share the top bucket
CURVE_CAP = 7

# Checked in order; the first type found in the type line wins
_BREAKDOWN_TYPES = (
    "Creature",
    "Instant",
    "Sorcery",
    "Artifact",
    "Enchantment",
    "Planeswalker",
    "Land",
)


def _is_land(card: Card) -> bool:
    return "Land" in (card.type_line or "")


def _quantity(card: Card) -> int:
    return card.quantity or 1


def mana_curve(cards: Sequence[Card]) -> dict[int, int]:
    """Non-land card count per mana value, 0 through 7+."""
    curve = {cmc: 0 for cmc in range(CURVE_CAP + 1)}
    for card in cards:
        if _is_land(card):
            continue
        bucket = min(int(card.cmc or 0), CURVE_CAP)
        curve[bucket] += _quantity(card)
    return curve


def color_distribution(cards: Sequence[Card]) -> dict[str, int]:
    """
    Count of cards per color.

    A multicolored card counts once for each of its colors. Cards with no
    colors count as Colorless.
    """
    distribution = {color: 0 for color in COLOR_ORDER}
    distribution["Colorless"] = 0
    for card in cards:
        if not card.colors:
            distribution["Colorless"] += _quantity(card)
            continue
        for color in card.colors:
            if color in distribution:
                distribution[color] += _quantity(card)
    return distribution


def type_breakdown(cards: Sequence[Card]) -> dict[str, int]:
    """Count of cards per primary type; artifact creatures count as Creature."""
    breakdown = {card_type: 0 for card_type in _BREAKDOWN_TYPES}
    breakdown["Other"] = 0
    for card in cards:
        type_line = card.type_line or ""
        card_type = next((t for t in _BREAKDOWN_TYPES if t in type_line), "Other")
        breakdown[card_type] += _quantity(card)
    return breakdown


def average_cmc(cards: Sequence[Card]) -> float:
    """Average mana value of the non-land cards, rounded to 2 places."""
    total = 0.0
    count = 0
    for card in cards:
        if _is_land(card):
            continue
        total += (card.cmc or 0) * _quantity(card)
        count += _quantity(card)
    return round(total / count, 2) if count else 0.0


def analyze_deck(deck: Deck) -> dict[str, Any]:
    """Full statistics bundle for a deck."""
    cards = list(deck.cards)
    return {
        "deck_name": deck.name,
        "commander": deck.commander.name if deck.commander else "Unknown",
        "total_cards": sum(_quantity(card) for card in cards),
        "mana_curve": mana_curve(cards),
        "color_distribution": color_distribution(cards),
        "type_breakdown": type_breakdown(cards),
        "average_cmc": average_cmc(cards),
    }
