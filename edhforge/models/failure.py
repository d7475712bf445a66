"""
Failure Envelope — Unified Response Classification.

Every user-visible failure is classified and explained through the
ApiResponse envelope. Deck rule violations are NOT failures: they are
ordinary validation results and never pass through this module.

Response types:
- Success: Operation completed successfully
- Refusal: System chose not to proceed (expected, explainable)
- KnownFailure: System knows why it failed
- UnknownFailure: System does not know why it failed

All error envelopes leave the API through `finalize_response()`.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, PrivateAttr


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    MISSING_REQUIRED = "missing_required"

    # Resource failures
    NOT_FOUND = "not_found"

    # Constraint violations
    PAYLOAD_TOO_LARGE = "payload_too_large"
    DECK_FULL = "deck_full"
    CARD_NOT_ADMISSIBLE = "card_not_admissible"

    # Service failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"
    ASSEMBLY_FAILED = "assembly_failed"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    REFUSAL = "refusal"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope carrying either data or a classified failure."""

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    # Set by finalize_response()
    _finalized: bool = PrivateAttr(default=False)

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(outcome=OutcomeType.SUCCESS, data=data)

    @classmethod
    def refusal(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """
        Create a refusal response.

        Use when the system chose not to proceed due to a constraint.
        Example: adding a card outside the commander's color identity.
        """
        return cls(
            outcome=OutcomeType.REFUSAL,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: card not found, deck payload too large.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class RefusalError(KnownError):
    """
    Exception for constraint-based refusals.

    Use when the system refuses to proceed due to a deck constraint.
    """

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.refusal(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


# =============================================================================
# DOMAIN ERRORS
# =============================================================================


class CardNotFoundError(KnownError):
    """The card data provider has no card for the given id or name."""

    def __init__(self, identifier: str, detail: str | None = None):
        self.identifier = identifier
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"No card found for '{identifier}'.",
            detail=detail,
            suggestion="Check the spelling of the card name.",
            status_code=404,
        )


class GeneratorError(KnownError):
    """The deck generator returned nothing usable."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message=message,
            detail=detail,
            suggestion="Try again in a moment.",
            status_code=502,
        )


class PayloadTooLargeError(KnownError):
    """
    A serialized deck record exceeds the persistence size ceiling.

    Never retried, never truncated: the caller has to shrink the deck.
    """

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            kind=FailureKind.PAYLOAD_TOO_LARGE,
            message=f"Deck data is too large ({size}/{limit} chars).",
            detail=f"Serialized deck record: {size} chars, limit {limit}",
            suggestion="Try removing cards or simplifying the deck.",
            status_code=413,
        )


class InvalidDeckRecordError(KnownError):
    """A stored deck record could not be decoded."""

    def __init__(self, detail: str):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="Stored deck data is corrupt and cannot be loaded.",
            detail=detail,
            status_code=422,
        )


class AssemblyError(KnownError):
    """Deck assembly stopped at a stage it could not get past."""

    def __init__(self, stage: str, description: str, detail: str | None = None):
        self.stage = stage
        super().__init__(
            kind=FailureKind.ASSEMBLY_FAILED,
            message=f"Deck assembly failed during {description}.",
            detail=detail,
            suggestion="Try again, or build the deck by hand from the commander.",
            status_code=502,
        )


class MissingCommanderError(KnownError):
    """An operation that needs a commander was called without one."""

    def __init__(self, operation: str):
        super().__init__(
            kind=FailureKind.MISSING_REQUIRED,
            message=f"A commander is required to {operation}.",
            suggestion="Select a commander first.",
            status_code=400,
        )


class CardNotAdmissibleError(RefusalError):
    """A card was refused entry to the deck."""

    def __init__(self, card_name: str, reason: str):
        self.card_name = card_name
        self.reason = reason
        super().__init__(
            kind=FailureKind.CARD_NOT_ADMISSIBLE,
            message=reason,
            detail=f"Card refused: {card_name}",
            suggestion="Pick a card within the commander's color identity.",
            status_code=422,
        )


class DeckFullError(RefusalError):
    """The mainboard already holds the maximum number of cards."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            kind=FailureKind.DECK_FULL,
            message=f"Deck has {count} non-commander cards and cannot take more.",
            suggestion="Remove a card before adding another.",
            status_code=409,
        )


# =============================================================================
# FAILURE AUTHORITY BOUNDARY
# =============================================================================

# Standard messages, fixed and predictable

STANDARD_MESSAGES: dict[OutcomeType, str] = {
    OutcomeType.KNOWN_FAILURE: "The operation failed due to a known issue.",
    OutcomeType.UNKNOWN_FAILURE: (
        "I failed and I don't know why. Try simplifying the request or retrying."
    ),
}

STANDARD_SUGGESTIONS: dict[OutcomeType, str] = {
    OutcomeType.KNOWN_FAILURE: "Check the error details and adjust your request.",
    OutcomeType.UNKNOWN_FAILURE: "If this persists, please report the issue.",
}


def finalize_response(response: ApiResponse[Any]) -> ApiResponse[Any]:
    """
    Finalize a response through the authority boundary.

    Raises:
        ValueError: If response structure is invalid
    """
    if response.outcome == OutcomeType.SUCCESS:
        if response.failure is not None:
            raise ValueError("Success response must not have failure details")
    else:
        if response.failure is None:
            raise ValueError(f"{response.outcome.value} response must have failure details")

    response._finalized = True

    return response


def is_finalized(response: ApiResponse[Any]) -> bool:
    """Check if a response has passed through the authority boundary."""
    return response._finalized


def create_unknown_failure(
    exception: Exception,
    include_type: bool = True,
) -> ApiResponse[Any]:
    """
    Create an unknown failure response from an exception.

    The message is fixed and cannot be customized.
    """
    detail = None
    if include_type:
        detail = f"{type(exception).__name__}"

    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=STANDARD_MESSAGES[OutcomeType.UNKNOWN_FAILURE],
            detail=detail,
            suggestion=STANDARD_SUGGESTIONS[OutcomeType.UNKNOWN_FAILURE],
        ),
    )

    return finalize_response(response)


def create_known_failure(
    kind: FailureKind,
    reason: str,
) -> ApiResponse[Any]:
    """Create a known failure response with the standardized message."""
    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.KNOWN_FAILURE,
        failure=FailureDetail(
            kind=kind,
            message=STANDARD_MESSAGES[OutcomeType.KNOWN_FAILURE],
            detail=reason,
            suggestion=STANDARD_SUGGESTIONS[OutcomeType.KNOWN_FAILURE],
        ),
    )

    return finalize_response(response)


def error_to_response(error: KnownError) -> ApiResponse[Any]:
    """Finalize a KnownError (or RefusalError) into its envelope."""
    return finalize_response(error.to_response())
