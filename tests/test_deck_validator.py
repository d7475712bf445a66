"""
Tests for the Commander rule validator.

Every check always runs and returns a result; violations are values.
"""

from dataclasses import replace

from factories import build_card, filler_cards

from edhforge.services.deck_validator import (
    CARD_COUNT,
    CHECK_NAMES,
    COLOR_IDENTITY,
    FORMAT_LEGALITY,
    SINGLETON_RULE,
    is_deck_valid,
    validate_card_count,
    validate_color_identity,
    validate_deck,
    validate_format_legality,
    validate_singleton,
    validation_summary,
)


class TestValidateDeck:
    def test_all_checks_in_fixed_order(self, golgari_commander) -> None:
        results = validate_deck(golgari_commander, [])
        assert tuple(r.name for r in results) == CHECK_NAMES

    def test_valid_deck(self, golgari_commander, forest, swamp) -> None:
        cards = [forest.with_quantity(20), swamp.with_quantity(19), *filler_cards(60, "B")]

        results = validate_deck(golgari_commander, cards)

        assert all(r.valid for r in results)
        assert is_deck_valid(golgari_commander, cards)

    def test_no_commander_runs_every_check(self) -> None:
        results = validate_deck(None, filler_cards(3))

        assert len(results) == 4
        assert results[0].message == (
            "A commander is required. Select a commander to complete the deck."
        )
        assert results[1].message == "No commander selected."
        assert results[1].violations == []
        assert results[2].valid
        assert results[3].valid

    def test_summary(self, golgari_commander) -> None:
        red = build_card("Lightning Bolt", type_line="Instant", color_identity="R")
        summary = validation_summary(validate_deck(golgari_commander, [red]))

        assert summary == {"valid": False, "passed": 2, "failed": 2, "violation_count": 1}


class TestCardCount:
    def test_exactly_99(self, golgari_commander) -> None:
        result = validate_card_count(golgari_commander, filler_cards(99))

        assert result.valid
        assert result.message == "Deck has exactly 99 cards plus the commander."

    def test_too_few(self, golgari_commander) -> None:
        result = validate_card_count(golgari_commander, filler_cards(97))

        assert not result.valid
        assert result.message == (
            "Deck contains 97 cards. A Commander deck must contain exactly 99 cards "
            "plus the commander. Add 2 card(s)."
        )

    def test_too_many(self, golgari_commander, forest) -> None:
        result = validate_card_count(golgari_commander, [forest.with_quantity(101)])

        assert not result.valid
        assert result.message.endswith("Remove 2 card(s).")

    def test_commander_in_mainboard_counts_against_100(self, golgari_commander) -> None:
        """A commander still present in the list switches the target to 100."""
        cards = [golgari_commander, *filler_cards(99)]

        result = validate_card_count(golgari_commander, cards)

        assert result.valid
        assert result.message == "Deck has exactly 100 cards including the commander."

    def test_commander_matched_by_name(self, golgari_commander) -> None:
        reprint = build_card(golgari_commander.name, card_id="other-printing")
        result = validate_card_count(golgari_commander, [reprint, *filler_cards(98)])

        assert not result.valid
        assert "exactly 100 cards including the commander" in result.message
        assert result.message.endswith("Add 1 card(s).")


class TestColorIdentity:
    def test_off_color_card(self, golgari_commander) -> None:
        bolt = build_card("Lightning Bolt", type_line="Instant", color_identity="R")

        result = validate_color_identity(golgari_commander, [bolt])

        assert result.name == COLOR_IDENTITY
        assert not result.valid
        assert result.violations[0].card is bolt
        assert result.violations[0].reason == (
            "Color identity (R) not allowed in Meren of Clan Nel Toth's color identity (BG)."
        )

    def test_colorless_cards_always_allowed(self, golgari_commander, colorless_commander) -> None:
        rock = build_card("Sol Ring", type_line="Artifact")

        assert validate_color_identity(golgari_commander, [rock]).valid
        assert validate_color_identity(colorless_commander, [rock]).valid

    def test_colorless_commander_rejects_colored(self, colorless_commander) -> None:
        elf = build_card("Llanowar Elves", color_identity="G")

        result = validate_color_identity(colorless_commander, [elf])

        assert not result.valid
        assert result.violations[0].reason.endswith("color identity ().")

    def test_colors_rendered_in_wubrg_order(self, colorless_commander) -> None:
        card = build_card("Atraxa", color_identity="GWBU")

        result = validate_color_identity(colorless_commander, [card])

        assert "(WUBG)" in result.violations[0].reason


class TestSingleton:
    def test_basic_lands_exempt(self, forest) -> None:
        assert validate_singleton([forest.with_quantity(40)]).valid

    def test_snow_basics_exempt(self) -> None:
        snow = build_card(
            "Snow-Covered Forest", type_line="Basic Snow Land — Forest", quantity=10
        )
        assert validate_singleton([snow]).valid

    def test_duplicate_quantity(self) -> None:
        ring = build_card("Sol Ring", type_line="Artifact", quantity=2)

        result = validate_singleton([ring])

        assert result.name == SINGLETON_RULE
        assert not result.valid
        assert result.violations[0].reason == "Multiple copies (2) of Sol Ring found."

    def test_two_printings_reported_once_at_crossing(self) -> None:
        """Only the entry that crosses 1 is reported, with the running total."""
        first = build_card("Sol Ring", type_line="Artifact", card_id="sol-1")
        second = build_card("Sol Ring", type_line="Artifact", card_id="sol-2")
        third = build_card("Sol Ring", type_line="Artifact", card_id="sol-3")

        result = validate_singleton([first, second, third])

        assert len(result.violations) == 1
        assert result.violations[0].card is second
        assert result.violations[0].reason == "Multiple copies (2) of Sol Ring found."


class TestFormatLegality:
    def test_banned_card(self, golgari_commander) -> None:
        banned = build_card("Hullbreacher", color_identity="U", legal=False)

        result = validate_format_legality(golgari_commander, [banned])

        assert result.name == FORMAT_LEGALITY
        assert result.violations[0].reason == "Hullbreacher is not legal in Commander format."

    def test_illegal_commander(self) -> None:
        commander = build_card("Golos", legal=False)

        result = validate_format_legality(commander, [])

        assert result.violations[0].reason == "Golos is not legal as a commander."

    def test_unknown_legality_is_not_a_violation(self, golgari_commander) -> None:
        unknown = build_card("Mystery", legal=None)
        assert validate_format_legality(golgari_commander, [unknown]).valid

    def test_missing_commander_key_is_not_legal(self, golgari_commander) -> None:
        card = replace(build_card("Alchemy Card"), legalities={"standard": "legal"})

        result = validate_format_legality(golgari_commander, [card])

        assert not result.valid

    def test_no_commander_still_checks_cards(self) -> None:
        banned = build_card("Primeval Titan", legal=False)
        result = validate_format_legality(None, [banned])
        assert not result.valid


def test_check_name_constants() -> None:
    assert CHECK_NAMES == (CARD_COUNT, COLOR_IDENTITY, SINGLETON_RULE, FORMAT_LEGALITY)
