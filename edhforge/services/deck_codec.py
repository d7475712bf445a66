"""
Minimized deck record codec.

Saved decks are stored as one JSON string with short keys so a full
100-card deck stays under the 12,000 character storage ceiling:

    {"v": "1.1_shortkeys", "adn": name, "dsc": description,
     "cmd": {"i", "n", "q", "t", "c"},
     "mb": [{"i", "n", "q", "t", "c", "ct"}, ...],
     "ls": last_updated}

i = id, n = name, q = quantity, t = type line, c = mana value,
ct = display category (override or derived).

Only enough is kept to re-fetch each card by id. A record over the ceiling
is rejected with PayloadTooLargeError; it is never truncated.
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from edhforge.config import settings
from edhforge.models.card import Card
from edhforge.models.deck import Deck, utc_timestamp
from edhforge.models.failure import CardNotFoundError, InvalidDeckRecordError, PayloadTooLargeError
from edhforge.services.card_classifier import effective_category, normalize_override
from edhforge.services.deck_repair import repair_deck
from edhforge.services.scryfall_client import CardSource

logger = logging.getLogger(__name__)

RECORD_VERSION = "1.1_shortkeys"


def minimize_card(card: Card) -> dict[str, Any]:
    return {
        "i": card.id,
        "n": card.name,
        "q": card.quantity or 1,
        "t": card.type_line,
        "c": card.cmc,
    }


def encode_deck(deck: Deck) -> dict[str, Any]:
    """Minimized mapping for a deck; ct carries each card's display category."""
    mainboard = []
    for card in deck.cards:
        entry = minimize_card(card)
        entry["ct"] = effective_category(card, deck.card_categories)
        mainboard.append(entry)

    return {
        "v": RECORD_VERSION,
        "adn": deck.name,
        "dsc": deck.description,
        "cmd": minimize_card(deck.commander) if deck.commander else None,
        "mb": mainboard,
        "ls": deck.last_updated or utc_timestamp(),
    }


def serialize_deck(deck: Deck, limit: int | None = None) -> str:
    """
    Encode a deck to its storage string.

    Raises:
        PayloadTooLargeError: If the JSON exceeds the size ceiling
    """
    limit = settings.max_deck_payload_chars if limit is None else limit
    payload = json.dumps(encode_deck(deck), separators=(",", ":"), ensure_ascii=False)
    if len(payload) > limit:
        logger.warning("Deck %r serializes to %d chars, limit %d", deck.name, len(payload), limit)
        raise PayloadTooLargeError(len(payload), limit)
    return payload


def decode_deck_record(payload: str | Mapping[str, Any]) -> dict[str, Any]:
    """
    Parse a stored record into its minimized mapping.

    Raises:
        InvalidDeckRecordError: If the payload is not a JSON object
    """
    if isinstance(payload, Mapping):
        return dict(payload)
    try:
        data = json.loads(payload)
    except (TypeError, json.JSONDecodeError) as e:
        raise InvalidDeckRecordError(str(e)) from e
    if not isinstance(data, dict):
        raise InvalidDeckRecordError(f"Expected a JSON object, got {type(data).__name__}")
    if data.get("v") != RECORD_VERSION:
        logger.info("Decoding deck record with version %r", data.get("v"))
    return data


def _card_from_minimized(entry: Mapping[str, Any]) -> Card:
    """Card built from minimized data alone, used when the card source fails."""
    cmc = entry.get("c")
    quantity = entry.get("q")
    return Card(
        id=str(entry.get("i") or ""),
        name=str(entry.get("n") or ""),
        type_line=entry.get("t"),
        cmc=float(cmc) if isinstance(cmc, int | float) else None,
        quantity=quantity if isinstance(quantity, int) else 1,
    )


async def _rehydrate_card(entry: Any, card_source: CardSource) -> Card | None:
    if not isinstance(entry, Mapping) or not entry.get("i"):
        return None

    minimized = _card_from_minimized(entry)
    try:
        full = await card_source.lookup_by_id(minimized.id)
    except (CardNotFoundError, httpx.HTTPError) as e:
        logger.warning(
            "Error fetching card %s (%s), keeping saved data: %s", minimized.name, minimized.id, e
        )
        return minimized
    return full.with_quantity(minimized.quantity)


async def rehydrate_deck(payload: str | Mapping[str, Any], card_source: CardSource) -> Deck | None:
    """
    Rebuild a full Deck from a stored record.

    Cards are re-fetched by id concurrently. A card the source cannot
    return is kept with its minimized data. Category overrides come back
    from ct values that differ from the derived category. The result goes
    through structural repair.
    """
    data = decode_deck_record(payload)

    raw_mainboard = data.get("mb")
    if not isinstance(raw_mainboard, list):
        raw_mainboard = []

    commander, *mainboard = await asyncio.gather(
        _rehydrate_card(data.get("cmd"), card_source),
        *(_rehydrate_card(entry, card_source) for entry in raw_mainboard),
    )

    card_categories: dict[str, str] = {}
    cards: list[Card] = []
    for entry, card in zip(raw_mainboard, mainboard):
        if card is None:
            continue
        cards.append(card)
        override = normalize_override(card, entry.get("ct"))
        if override is not None:
            card_categories[card.id] = override

    return repair_deck(
        {
            "commander": commander.to_dict() if commander else None,
            "cards": [card.to_dict() for card in cards],
            "card_categories": card_categories,
            "name": data.get("adn"),
            "description": data.get("dsc") or "",
            "last_updated": data.get("ls"),
        }
    )
