"""
Tests for structural deck repair.

INVARIANTS:
1. The commander's id never appears among mainboard entries
2. Every entry has quantity >= 1 and an id
3. Repair is idempotent
"""

from factories import build_card

from edhforge.models.deck import DEFAULT_DECK_NAME, Deck
from edhforge.services.deck_repair import repair_deck, repair_deck_with_report


def _raw_deck(**overrides):
    deck = {
        "commander": build_card("Meren", card_id="meren", color_identity="BG").to_dict(),
        "cards": [
            build_card("Sol Ring", type_line="Artifact", card_id="sol").to_dict(),
            build_card(
                "Forest", type_line="Basic Land — Forest", card_id="forest", quantity=30
            ).to_dict(),
        ],
        "card_categories": {},
        "name": "Meren Recursion",
        "description": "Graveyard loops",
        "last_updated": "2024-01-01T00:00:00+00:00",
    }
    deck.update(overrides)
    return deck


class TestRepairShape:
    def test_non_mapping_fails(self) -> None:
        assert repair_deck(None) is None
        assert repair_deck("deck") is None
        assert repair_deck([1, 2]) is None

    def test_valid_deck_unchanged(self) -> None:
        deck, report = repair_deck_with_report(_raw_deck())

        assert not report.changed
        assert deck.name == "Meren Recursion"
        assert [c.id for c in deck.cards] == ["sol", "forest"]
        assert deck.cards[1].quantity == 30

    def test_cards_not_a_list_reset(self) -> None:
        deck, report = repair_deck_with_report(_raw_deck(cards="oops"))

        assert deck.cards == ()
        assert report.cards_reset

    def test_accepts_deck_value(self, golgari_commander) -> None:
        deck = Deck(commander=golgari_commander, cards=(golgari_commander,))
        repaired = repair_deck(deck)

        assert repaired is not None
        assert repaired.cards == ()


class TestRepairEntries:
    def test_invalid_entries_dropped(self) -> None:
        cards = [
            None,
            "Sol Ring",
            {"name": "No Id"},
            {"id": "", "name": "Empty"},
            {"id": "ok", "name": "Ok"},
        ]
        deck, report = repair_deck_with_report(_raw_deck(cards=cards))

        assert [c.id for c in deck.cards] == ["ok"]
        assert report.invalid_entries_dropped == 4

    def test_commander_removed_from_mainboard(self) -> None:
        commander = build_card("Meren", card_id="meren", color_identity="BG").to_dict()
        deck, report = repair_deck_with_report(_raw_deck(cards=[commander, dict(commander)]))

        assert deck.cards == ()
        assert report.commander_duplicates_removed == 2

    def test_bad_quantities_fixed(self) -> None:
        cards = [
            {"id": "a", "name": "A", "quantity": 0},
            {"id": "b", "name": "B", "quantity": -3},
            {"id": "c", "name": "C", "quantity": "2"},
            {"id": "d", "name": "D", "quantity": True},
            {"id": "e", "name": "E"},
        ]
        deck, report = repair_deck_with_report(_raw_deck(cards=cards))

        assert [c.quantity for c in deck.cards] == [1, 1, 1, 1, 1]
        assert report.quantities_fixed == 5

    def test_non_mapping_commander_discarded(self) -> None:
        deck, report = repair_deck_with_report(_raw_deck(commander="Meren"))

        assert deck.commander is None
        assert report.commander_discarded


class TestRepairDefaults:
    def test_missing_fields_filled(self) -> None:
        deck, report = repair_deck_with_report({"cards": []})

        assert deck.name == DEFAULT_DECK_NAME
        assert deck.description == ""
        assert deck.card_categories == {}
        assert deck.last_updated
        assert set(report.defaults_filled) >= {"name", "card_categories", "last_updated"}

    def test_dangling_category_overrides_pruned(self) -> None:
        categories = {"sol": "Ramp", "gone": "Removal", "meren": "Engine"}
        deck, report = repair_deck_with_report(_raw_deck(card_categories=categories))

        assert deck.card_categories == {"sol": "Ramp", "meren": "Engine"}
        assert report.categories_pruned == 1


class TestRepairIdempotence:
    def test_repair_twice_equals_repair_once(self) -> None:
        messy = _raw_deck(
            cards=[None, {"id": "meren", "name": "Meren"}, {"id": "x", "name": "X", "quantity": 0}],
            card_categories={"zzz": "Gone"},
            name="",
        )
        once = repair_deck(messy)
        twice, report = repair_deck_with_report(once)

        assert twice.to_dict() == once.to_dict()
        assert not report.changed
