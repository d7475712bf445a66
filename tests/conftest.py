from collections.abc import Callable
from typing import Any

import pytest
from factories import LEGAL, build_card

from edhforge.models.card import Card


@pytest.fixture
def make_card() -> Callable[..., Card]:
    """Factory for test cards."""
    return build_card


@pytest.fixture
def golgari_commander() -> Card:
    """Black-green legendary creature."""
    return build_card(
        "Meren of Clan Nel Toth",
        type_line="Legendary Creature — Human Shaman",
        color_identity="BG",
        card_id="meren",
    )


@pytest.fixture
def colorless_commander() -> Card:
    return build_card(
        "Kozilek, the Great Distortion",
        type_line="Legendary Creature — Eldrazi",
        card_id="kozilek",
    )


@pytest.fixture
def forest() -> Card:
    return build_card(
        "Forest", type_line="Basic Land — Forest", color_identity="G", card_id="forest"
    )


@pytest.fixture
def swamp() -> Card:
    return build_card(
        "Swamp", type_line="Basic Land — Swamp", color_identity="B", card_id="swamp"
    )


@pytest.fixture
def scryfall_card_json() -> Callable[..., dict[str, Any]]:
    """Factory for Scryfall-shaped card JSON."""

    def factory(name: str, card_id: str | None = None, **overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "object": "card",
            "id": card_id or name.lower().replace(" ", "-"),
            "name": name,
            "type_line": "Artifact",
            "mana_cost": "{1}",
            "cmc": 1.0,
            "colors": [],
            "color_identity": [],
            "legalities": dict(LEGAL),
            "oracle_text": "",
        }
        data.update(overrides)
        return data

    return factory

