"""
Plain-text deck list export.

Two formats: an annotated list grouped by category, and the
Moxfield import format.
"""

import re

from edhforge.models.card import Card
from edhforge.models.deck import Deck
from edhforge.services.card_classifier import effective_category


def _require_commander(deck: Deck) -> Card:
    if deck.commander is None:
        raise ValueError("Cannot export a deck without a commander")
    return deck.commander


def _card_line(quantity: int, name: str) -> str:
    return f"{quantity or 1} {name}"


def export_text(deck: Deck) -> str:
    """
    Annotated deck list.

    Header comments, the commander section, then one "// <Category>"
    section per category in alphabetical order.

    Raises:
        ValueError: If the deck has no commander
    """
    commander = _require_commander(deck)

    lines = [f"// {deck.name}", f"// Commander: {commander.name}"]
    if deck.description:
        lines.append(f"// Description: {deck.description}")
    lines += ["", "// Commander", _card_line(1, commander.name)]

    groups: dict[str, list[str]] = {}
    for card in deck.cards:
        category = effective_category(card, deck.card_categories)
        groups.setdefault(category, []).append(_card_line(card.quantity, card.name))

    for category in sorted(groups):
        lines += ["", f"// {category}", *groups[category]]

    return "\n".join(lines) + "\n"


def export_moxfield(deck: Deck) -> str:
    """
    Moxfield import format: commander header, blank line, card lines.

    Raises:
        ValueError: If the deck has no commander
    """
    commander = _require_commander(deck)

    lines = [f"Commander: {commander.name}", ""]
    lines += [_card_line(card.quantity, card.name) for card in deck.cards]
    return "\n".join(lines) + "\n"


def export_deck(deck: Deck, export_format: str = "text") -> str:
    """Export in the named format ("text" or "moxfield")."""
    if export_format == "moxfield":
        return export_moxfield(deck)
    if export_format == "text":
        return export_text(deck)
    raise ValueError(f"Unknown export format: {export_format}")


def export_filename(deck: Deck) -> str:
    """File name for a downloaded deck list."""
    return re.sub(r"[^a-zA-Z0-9]", "_", deck.name).lower() + ".txt"
