"""
Validation result types.

Rule violations are values, never exceptions: a deck under construction is
expected to be invalid most of the time.
"""

from dataclasses import dataclass, field
from typing import Any

from edhforge.models.card import Card


@dataclass(frozen=True)
class Violation:
    """A specific rule failure for a specific card."""

    card: Card
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_id": self.card.id,
            "card_name": self.card.name,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one named deck check."""

    name: str
    valid: bool
    message: str
    violations: list[Violation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "valid": self.valid,
            "message": self.message,
            "violations": [v.to_dict() for v in self.violations],
        }


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of the single-card admission check."""

    valid: bool
    message: str
