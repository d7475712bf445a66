"""Tests for the minimized deck record codec."""

import json

import httpx
import pytest
from factories import FakeCardSource, build_card

from edhforge.models.deck import Deck
from edhforge.models.failure import (
    FailureKind,
    InvalidDeckRecordError,
    PayloadTooLargeError,
)
from edhforge.services.deck_codec import (
    RECORD_VERSION,
    decode_deck_record,
    encode_deck,
    minimize_card,
    rehydrate_deck,
    serialize_deck,
)

SOL_RING = build_card("Sol Ring", type_line="Artifact", card_id="sol", cmc=1.0)
FOREST = build_card(
    "Forest", type_line="Basic Land — Forest", color_identity="G", card_id="forest", quantity=30
)


@pytest.fixture
def deck(golgari_commander) -> Deck:
    return Deck(
        commander=golgari_commander,
        cards=(SOL_RING, FOREST),
        card_categories={"sol": "Ramp"},
        name="Meren Recursion",
        description="Sac and return.",
        last_updated="2024-05-01T12:00:00+00:00",
    )


class TestEncode:
    def test_short_keys(self, deck) -> None:
        record = encode_deck(deck)

        assert record["v"] == RECORD_VERSION
        assert record["adn"] == "Meren Recursion"
        assert record["dsc"] == "Sac and return."
        assert record["ls"] == "2024-05-01T12:00:00+00:00"
        assert record["cmd"]["n"] == "Meren of Clan Nel Toth"

    def test_mainboard_carries_display_category(self, deck) -> None:
        mainboard = encode_deck(deck)["mb"]

        assert mainboard[0] == {
            "i": "sol",
            "n": "Sol Ring",
            "q": 1,
            "t": "Artifact",
            "c": 1.0,
            "ct": "Ramp",
        }
        assert mainboard[1]["q"] == 30
        assert mainboard[1]["ct"] == "Lands"

    def test_minimize_drops_everything_else(self) -> None:
        card = build_card("Sol Ring", oracle_text="{T}: Add {C}{C}.", card_id="sol")
        assert set(minimize_card(card)) == {"i", "n", "q", "t", "c"}

    def test_no_commander(self) -> None:
        assert encode_deck(Deck())["cmd"] is None


class TestSerialize:
    def test_compact_json(self, deck) -> None:
        payload = serialize_deck(deck)

        assert ", " not in payload
        assert json.loads(payload) == encode_deck(deck)

    def test_non_ascii_counted_as_written(self, golgari_commander) -> None:
        lim_dul = build_card("Lim-Dûl the Necromancer", type_line="Legendary Creature — Zombie")
        deck = Deck(commander=golgari_commander, cards=(lim_dul,))

        payload = serialize_deck(deck)

        assert "Lim-Dûl the Necromancer" in payload
        assert "\\u" not in payload
        assert len(payload) < len(json.dumps(encode_deck(deck), separators=(",", ":")))

    def test_full_deck_fits_ceiling(self, golgari_commander) -> None:
        cards = tuple(
            build_card(
                f"Filler {i}",
                type_line="Artifact",
                card_id=f"{i:08d}-0000-4000-8000-000000000000",
            )
            for i in range(99)
        )

        payload = serialize_deck(Deck(commander=golgari_commander, cards=cards))

        assert len(payload) <= 12_000

    def test_over_limit_rejected(self, deck) -> None:
        with pytest.raises(PayloadTooLargeError) as exc_info:
            serialize_deck(deck, limit=50)

        error = exc_info.value
        assert error.kind == FailureKind.PAYLOAD_TOO_LARGE
        assert error.status_code == 413
        assert error.limit == 50
        assert error.size > 50


class TestDecode:
    def test_mapping_passes_through(self) -> None:
        assert decode_deck_record({"v": RECORD_VERSION}) == {"v": RECORD_VERSION}

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", '"text"'])
    def test_corrupt_payload(self, payload: str) -> None:
        with pytest.raises(InvalidDeckRecordError):
            decode_deck_record(payload)

    def test_older_versions_still_decode(self) -> None:
        assert decode_deck_record('{"v": "1.0", "adn": "Old"}')["adn"] == "Old"


class TestRehydrate:
    async def test_round_trip_with_full_card_data(self, deck, golgari_commander) -> None:
        full_sol = build_card("Sol Ring", type_line="Artifact", card_id="sol", oracle_text="Tap.")
        source = FakeCardSource([golgari_commander, full_sol, FOREST.with_quantity(1)])

        restored = await rehydrate_deck(serialize_deck(deck), source)

        assert restored.name == "Meren Recursion"
        assert restored.description == "Sac and return."
        assert restored.commander == golgari_commander
        assert restored.find_card("sol").oracle_text == "Tap."
        assert restored.find_card("forest").quantity == 30
        assert restored.card_categories == {"sol": "Ramp"}

    async def test_missing_cards_keep_saved_data(self, deck, golgari_commander) -> None:
        source = FakeCardSource([golgari_commander])
        source.failures["sol"] = httpx.ConnectError("refused")

        restored = await rehydrate_deck(encode_deck(deck), source)

        sol = restored.find_card("sol")
        forest = restored.find_card("forest")
        assert sol.name == "Sol Ring"
        assert sol.cmc == 1.0
        assert sol.legalities is None
        assert forest.quantity == 30
        assert forest.type_line == "Basic Land — Forest"

    async def test_malformed_entries_skipped(self, golgari_commander) -> None:
        record = {
            "v": RECORD_VERSION,
            "adn": "Broken",
            "cmd": {"i": "meren", "n": "Meren of Clan Nel Toth"},
            "mb": [{"n": "No Id"}, "junk", {"i": "sol", "n": "Sol Ring", "q": 1}],
        }

        restored = await rehydrate_deck(record, FakeCardSource([golgari_commander, SOL_RING]))

        assert [card.id for card in restored.cards] == ["sol"]

    async def test_mainboard_not_a_list(self, golgari_commander) -> None:
        record = {"v": RECORD_VERSION, "cmd": {"i": "meren"}, "mb": "oops"}

        restored = await rehydrate_deck(record, FakeCardSource([golgari_commander]))

        assert restored.cards == ()
        assert restored.commander == golgari_commander

    async def test_corrupt_string_raises(self) -> None:
        with pytest.raises(InvalidDeckRecordError):
            await rehydrate_deck("{oops", FakeCardSource([]))
