"""
Commander deck validation.

Runs a fixed battery of named checks against a commander and mainboard:

1. Card Count       — 99 mainboard cards plus the commander
2. Color Identity   — every card inside the commander's color identity
3. Singleton Rule   — one copy per name, basic lands exempt
4. Format Legality  — commander and cards legal in Commander

All four checks always run, in this order, and never raise: a failing deck
is a normal result, not an exceptional one. can_admit_card() is the
single-card fast path for the color and legality checks.
"""

from collections.abc import Sequence
from typing import Any

from edhforge.config import COMMANDER_DECK_SIZE, MAIN_DECK_SIZE
from edhforge.models.card import Card, sort_colors
from edhforge.models.validation import AdmissionResult, ValidationResult, Violation
from edhforge.services.deck_counts import main_deck_count

CARD_COUNT = "Card Count"
COLOR_IDENTITY = "Color Identity"
SINGLETON_RULE = "Singleton Rule"
FORMAT_LEGALITY = "Format Legality"

CHECK_NAMES = (CARD_COUNT, COLOR_IDENTITY, SINGLETON_RULE, FORMAT_LEGALITY)


def _colors_text(colors: frozenset[str]) -> str:
    return "".join(sort_colors(colors))


def _is_color_compliant(card: Card, commander: Card) -> bool:
    """Colorless cards comply with every commander."""
    return card.color_identity <= commander.color_identity


def _is_explicitly_illegal(card: Card) -> bool:
    """Missing legality data cannot be verified and is not a violation."""
    legality = card.commander_legality()
    return legality is not None and legality != "legal"


def _commander_in_mainboard(commander: Card, cards: Sequence[Card]) -> bool:
    return any(
        (commander.id and card.id == commander.id)
        or (commander.name and card.name == commander.name)
        for card in cards
    )


def validate_card_count(commander: Card | None, cards: Sequence[Card]) -> ValidationResult:
    """
    Check that the deck holds exactly 99 cards plus the commander.

    If the commander is (still) present in the mainboard list, the list is
    compared against 100 instead of 99.
    """
    if commander is None:
        return ValidationResult(
            name=CARD_COUNT,
            valid=False,
            message="A commander is required. Select a commander to complete the deck.",
        )

    count = main_deck_count(list(cards))
    if _commander_in_mainboard(commander, cards):
        target = COMMANDER_DECK_SIZE
        requirement = f"exactly {target} cards including the commander"
    else:
        target = MAIN_DECK_SIZE
        requirement = f"exactly {target} cards plus the commander"

    if count != target:
        direction = "Remove" if count > target else "Add"
        return ValidationResult(
            name=CARD_COUNT,
            valid=False,
            message=(
                f"Deck contains {count} cards. A Commander deck must contain {requirement}. "
                f"{direction} {abs(count - target)} card(s)."
            ),
        )

    return ValidationResult(
        name=CARD_COUNT,
        valid=True,
        message=f"Deck has exactly {count} cards plus the commander."
        if target == MAIN_DECK_SIZE
        else f"Deck has exactly {count} cards including the commander.",
    )


def validate_color_identity(commander: Card | None, cards: Sequence[Card]) -> ValidationResult:
    """Check every card's color identity is a subset of the commander's."""
    if commander is None:
        return ValidationResult(name=COLOR_IDENTITY, valid=False, message="No commander selected.")

    commander_colors = _colors_text(commander.color_identity)
    violations = [
        Violation(
            card=card,
            reason=(
                f"Color identity ({_colors_text(card.color_identity)}) not allowed in "
                f"{commander.name}'s color identity ({commander_colors})."
            ),
        )
        for card in cards
        if not _is_color_compliant(card, commander)
    ]

    if violations:
        return ValidationResult(
            name=COLOR_IDENTITY,
            valid=False,
            message=f"{len(violations)} cards violate the commander's color identity.",
            violations=violations,
        )
    return ValidationResult(
        name=COLOR_IDENTITY,
        valid=True,
        message="All cards match the commander's color identity.",
    )


def validate_singleton(cards: Sequence[Card]) -> ValidationResult:
    """
    Check at most one copy of each non-basic-land name.

    Quantities are accumulated per name in list order, so two printings of
    the same card count together. Only the entry whose quantity pushes a
    name's running total above 1 is reported, once per name, with the
    running total at that point.
    """
    running: dict[str, int] = {}
    reported: set[str] = set()
    violations: list[Violation] = []

    for card in cards:
        if card.is_basic_land:
            continue
        running[card.name] = running.get(card.name, 0) + (card.quantity or 1)
        if running[card.name] > 1 and card.name not in reported:
            reported.add(card.name)
            violations.append(
                Violation(
                    card=card,
                    reason=f"Multiple copies ({running[card.name]}) of {card.name} found.",
                )
            )

    if violations:
        return ValidationResult(
            name=SINGLETON_RULE,
            valid=False,
            message=f"{len(violations)} cards violate the singleton rule.",
            violations=violations,
        )
    return ValidationResult(
        name=SINGLETON_RULE, valid=True, message="Deck follows the singleton rule."
    )


def validate_format_legality(commander: Card | None, cards: Sequence[Card]) -> ValidationResult:
    """Check the commander and every card are legal in Commander."""
    violations: list[Violation] = []

    if commander is not None and _is_explicitly_illegal(commander):
        violations.append(
            Violation(card=commander, reason=f"{commander.name} is not legal as a commander.")
        )

    for card in cards:
        if _is_explicitly_illegal(card):
            violations.append(
                Violation(card=card, reason=f"{card.name} is not legal in Commander format.")
            )

    if violations:
        return ValidationResult(
            name=FORMAT_LEGALITY,
            valid=False,
            message=f"{len(violations)} cards are not legal in Commander format.",
            violations=violations,
        )
    return ValidationResult(
        name=FORMAT_LEGALITY,
        valid=True,
        message="All cards are legal in Commander format.",
    )


def validate_deck(commander: Card | None, cards: Sequence[Card]) -> list[ValidationResult]:
    """Run all four checks and return their results in fixed order."""
    cards = list(cards or ())
    return [
        validate_card_count(commander, cards),
        validate_color_identity(commander, cards),
        validate_singleton(cards),
        validate_format_legality(commander, cards),
    ]


def is_deck_valid(commander: Card | None, cards: Sequence[Card]) -> bool:
    """True only if every check passes."""
    return all(result.valid for result in validate_deck(commander, cards))


def validation_summary(results: Sequence[ValidationResult]) -> dict[str, Any]:
    """Aggregate counts for an itemised validation report."""
    passed = sum(1 for r in results if r.valid)
    return {
        "valid": passed == len(results),
        "passed": passed,
        "failed": len(results) - passed,
        "violation_count": sum(len(r.violations) for r in results),
    }


def can_admit_card(card: Card | None, commander: Card | None) -> AdmissionResult:
    """
    Check whether one card may join a commander's deck.

    Color identity and format legality only. Singleton and capacity are the
    caller's responsibility (see deck_counts.is_main_deck_full).
    """
    if commander is None:
        return AdmissionResult(valid=False, message="No commander selected.")
    if card is None:
        return AdmissionResult(valid=False, message="No card provided.")

    if not _is_color_compliant(card, commander):
        return AdmissionResult(
            valid=False,
            message=(
                f"{card.name} has color identity ({_colors_text(card.color_identity)}) "
                f"that is not allowed in {commander.name}'s color identity "
                f"({_colors_text(commander.color_identity)})."
            ),
        )

    if _is_explicitly_illegal(card):
        return AdmissionResult(
            valid=False, message=f"{card.name} is not legal in Commander format."
        )

    return AdmissionResult(valid=True, message=f"{card.name} is valid for this commander deck.")
