"""
Card model.

A single printed Magic card as returned by the card data provider, plus the
deck-scoped fields (quantity, custom category) it carries inside a deck.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

# Canonical WUBRG ordering for rendering color sets
COLOR_ORDER = ("W", "U", "B", "R", "G")

FACE_SEPARATOR = " // "


def sort_colors(colors: frozenset[str] | set[str]) -> list[str]:
    """Return colors in WUBRG order; unknown symbols sort last."""
    return sorted(colors, key=lambda c: COLOR_ORDER.index(c) if c in COLOR_ORDER else 99)


@dataclass(frozen=True, slots=True)
class CardFace:
    """One face of a split, adventure or double-faced card."""

    name: str
    type_line: str | None = None
    mana_cost: str | None = None
    oracle_text: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CardFace":
        return cls(
            name=str(data.get("name") or ""),
            type_line=data.get("type_line"),
            mana_cost=data.get("mana_cost"),
            oracle_text=data.get("oracle_text"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type_line": self.type_line,
            "mana_cost": self.mana_cost,
            "oracle_text": self.oracle_text,
        }


@dataclass(frozen=True, slots=True)
class Card:
    """
    A card, optionally carrying a deck quantity.

    Attributes:
        id: Opaque identifier, stable per printing
        name: Display name (may carry an "A-" prefix or a " // " separator)
        type_line: Canonical English type line, absent on minimized records
        mana_cost: Mana cost using {SYMBOL} tokens, absent for lands
        cmc: Mana value
        colors: Colors of the card itself
        color_identity: Commander color footprint (cost, rules text and faces)
        legalities: Format name -> legal/not_legal/banned/restricted.
            None means legality is unknown.
        quantity: Copies in the deck (meaningful only inside a deck)
        custom_category: User-assigned display category
        card_faces: Face data for multi-faced cards
    """

    id: str
    name: str
    type_line: str | None = None
    mana_cost: str | None = None
    cmc: float | None = None
    colors: frozenset[str] = field(default_factory=frozenset)
    color_identity: frozenset[str] = field(default_factory=frozenset)
    legalities: dict[str, str] | None = None
    oracle_text: str | None = None
    quantity: int = 1
    custom_category: str | None = None
    card_faces: tuple[CardFace, ...] = ()
    image_uris: dict[str, str] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Card":
        """
        Build a Card from a Scryfall-shaped mapping.

        Missing quantity defaults to 1. Values are taken as given; repair of
        malformed quantities is the job of deck_repair.
        """
        faces = data.get("card_faces") or ()
        legalities = data.get("legalities")
        quantity = data.get("quantity")
        cmc = data.get("cmc")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            type_line=data.get("type_line"),
            mana_cost=data.get("mana_cost"),
            cmc=float(cmc) if isinstance(cmc, int | float) else None,
            colors=frozenset(data.get("colors") or ()),
            color_identity=frozenset(data.get("color_identity") or ()),
            legalities=dict(legalities) if isinstance(legalities, Mapping) else None,
            oracle_text=data.get("oracle_text"),
            quantity=quantity if isinstance(quantity, int) else 1,
            custom_category=data.get("custom_category"),
            card_faces=tuple(CardFace.from_dict(f) for f in faces if isinstance(f, Mapping)),
            image_uris=(
                dict(data["image_uris"]) if isinstance(data.get("image_uris"), Mapping) else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the Scryfall-shaped mapping accepted by from_dict."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type_line": self.type_line,
            "mana_cost": self.mana_cost,
            "cmc": self.cmc,
            "colors": sort_colors(self.colors),
            "color_identity": sort_colors(self.color_identity),
            "legalities": dict(self.legalities) if self.legalities is not None else None,
            "oracle_text": self.oracle_text,
            "quantity": self.quantity,
            "custom_category": self.custom_category,
        }
        if self.card_faces:
            data["card_faces"] = [face.to_dict() for face in self.card_faces]
        if self.image_uris is not None:
            data["image_uris"] = dict(self.image_uris)
        return data

    def with_quantity(self, quantity: int) -> "Card":
        return replace(self, quantity=quantity)

    def with_category(self, category: str | None) -> "Card":
        return replace(self, custom_category=category)

    @property
    def is_basic_land(self) -> bool:
        """Basic lands are exempt from the singleton rule."""
        type_line = self.type_line or ""
        return "Basic" in type_line and "Land" in type_line

    @property
    def face_names(self) -> list[str]:
        """Individual face names of a split or multi-faced card."""
        if self.card_faces:
            return [face.name for face in self.card_faces]
        return self.name.split(FACE_SEPARATOR)

    def commander_legality(self) -> str | None:
        """
        Legality status in the Commander format.

        Returns None when legality cannot be verified (no legalities map).
        A map without a commander entry is reported as "not_legal".
        """
        if self.legalities is None:
            return None
        return self.legalities.get("commander", "not_legal")
