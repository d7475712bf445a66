"""
Card classification.

Maps a card's type line to the display category used to group a deck list.
A per-deck override always wins over the derived category.
"""

from collections.abc import Iterable, Mapping
from enum import Enum

from edhforge.models.card import Card


class Category(str, Enum):
    """Display and validation categories, in display order."""

    LANDS = "Lands"
    CREATURES = "Creatures"
    ARTIFACTS = "Artifacts"
    ENCHANTMENTS = "Enchantments"
    PLANESWALKERS = "Planeswalkers"
    INSTANTS = "Instants"
    SORCERIES = "Sorceries"
    OTHER = "Other"


# First match wins. Land outranks creature (artifact lands, dryad arbor),
# creature outranks artifact and enchantment.
_TYPE_PRIORITY: tuple[tuple[str, Category], ...] = (
    ("Land", Category.LANDS),
    ("Creature", Category.CREATURES),
    ("Artifact", Category.ARTIFACTS),
    ("Enchantment", Category.ENCHANTMENTS),
    ("Planeswalker", Category.PLANESWALKERS),
    ("Instant", Category.INSTANTS),
    ("Sorcery", Category.SORCERIES),
)


def classify(card: Card) -> Category:
    """
    Derive a card's category from its type line.

    Case-sensitive substring checks against the canonical English type line.
    A card without a type line (minimized record) is Other.
    """
    type_line = card.type_line or ""
    for token, category in _TYPE_PRIORITY:
        if token in type_line:
            return category
    return Category.OTHER


def effective_category(card: Card, card_categories: Mapping[str, str] | None = None) -> str:
    """
    Category to display for a card inside a deck.

    Precedence: deck-level override, then the card's own custom category,
    then the type-line derivation.
    """
    if card_categories:
        override = card_categories.get(card.id)
        if override:
            return override
    if card.custom_category:
        return card.custom_category
    return classify(card).value


def normalize_override(card: Card, category: str | None) -> str | None:
    """
    Override value to store for a card.

    Setting an override equal to the derived category clears it.
    """
    if not category or category == classify(card).value:
        return None
    return category


def group_by_category(
    cards: Iterable[Card],
    card_categories: Mapping[str, str] | None = None,
) -> dict[str, list[Card]]:
    """
    Group cards by effective category.

    Built-in categories come first in display order, custom categories
    follow alphabetically. Empty groups are omitted.
    """
    groups: dict[str, list[Card]] = {}
    for card in cards:
        groups.setdefault(effective_category(card, card_categories), []).append(card)

    builtin = [c.value for c in Category if c.value in groups]
    custom = sorted(name for name in groups if name not in builtin)
    return {name: groups[name] for name in builtin + custom}
