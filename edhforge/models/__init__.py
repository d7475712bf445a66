from edhforge.models.card import COLOR_ORDER, Card, CardFace, sort_colors
from edhforge.models.deck import DEFAULT_DECK_NAME, NEW_DECK_NAME, Deck
from edhforge.models.failure import (
    ApiResponse,
    AssemblyError,
    CardNotAdmissibleError,
    CardNotFoundError,
    DeckFullError,
    FailureDetail,
    FailureKind,
    GeneratorError,
    InvalidDeckRecordError,
    KnownError,
    MissingCommanderError,
    OutcomeType,
    PayloadTooLargeError,
    RefusalError,
)
from edhforge.models.validation import AdmissionResult, ValidationResult, Violation

__all__ = [
    "COLOR_ORDER",
    "DEFAULT_DECK_NAME",
    "NEW_DECK_NAME",
    "AdmissionResult",
    "ApiResponse",
    "AssemblyError",
    "Card",
    "CardFace",
    "CardNotAdmissibleError",
    "CardNotFoundError",
    "Deck",
    "DeckFullError",
    "FailureDetail",
    "FailureKind",
    "GeneratorError",
    "InvalidDeckRecordError",
    "KnownError",
    "MissingCommanderError",
    "OutcomeType",
    "PayloadTooLargeError",
    "RefusalError",
    "ValidationResult",
    "Violation",
    "sort_colors",
]
