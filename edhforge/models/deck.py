from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from edhforge.models.card import Card

DEFAULT_DECK_NAME = "Untitled Deck"
NEW_DECK_NAME = "New Deck"


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class Deck:
    """
    A Commander deck under construction.

    Attributes:
        commander: The commander card, never counted in the mainboard
        cards: Mainboard entries, each carrying its own quantity
        card_categories: Card id -> category override
        name: Deck name
        description: Free-text description
        last_updated: ISO-8601 timestamp refreshed on every transition
    """

    commander: Card | None = None
    cards: tuple[Card, ...] = ()
    card_categories: dict[str, str] = field(default_factory=dict)
    name: str = DEFAULT_DECK_NAME
    description: str = ""
    last_updated: str = field(default_factory=utc_timestamp)

    @classmethod
    def empty(cls, name: str = NEW_DECK_NAME) -> "Deck":
        """A fresh builder deck with no commander and no cards."""
        return cls(name=name)

    def touch(self) -> "Deck":
        """Copy of this deck with last_updated refreshed."""
        return replace(self, last_updated=utc_timestamp())

    def find_card(self, card_id: str) -> Card | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def card_ids(self) -> set[str]:
        return {card.id for card in self.cards}

    def card_names(self) -> set[str]:
        return {card.name for card in self.cards}

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping form, accepted by deck_repair.repair_deck."""
        return {
            "commander": self.commander.to_dict() if self.commander else None,
            "cards": [card.to_dict() for card in self.cards],
            "card_categories": dict(self.card_categories),
            "name": self.name,
            "description": self.description,
            "last_updated": self.last_updated,
        }
