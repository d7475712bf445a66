"""
EDHForge services.

Deck rules, deck state transitions, assembly and the external collaborators.
"""

from edhforge.services.card_classifier import (
    Category,
    classify,
    effective_category,
    group_by_category,
    normalize_override,
)
from edhforge.services.deck_counts import (
    CompletionInfo,
    completion_info,
    is_complete,
    is_main_deck_full,
    main_deck_count,
    total_count,
)
from edhforge.services.deck_repair import RepairReport, repair_deck, repair_deck_with_report
from edhforge.services.deck_validator import (
    can_admit_card,
    is_deck_valid,
    validate_card_count,
    validate_color_identity,
    validate_deck,
    validate_format_legality,
    validate_singleton,
    validation_summary,
)

__all__ = [
    "Category",
    "CompletionInfo",
    "RepairReport",
    "can_admit_card",
    "classify",
    "completion_info",
    "effective_category",
    "group_by_category",
    "is_complete",
    "is_deck_valid",
    "is_main_deck_full",
    "main_deck_count",
    "normalize_override",
    "repair_deck",
    "repair_deck_with_report",
    "total_count",
    "validate_card_count",
    "validate_color_identity",
    "validate_deck",
    "validate_format_legality",
    "validate_singleton",
    "validation_summary",
]
