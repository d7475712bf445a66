"""
Deck validation API endpoints.

Stateless checks over a deck posted by the client: the full rule battery,
single-card admission, structural repair and deck statistics. Rule
violations come back as ordinary results, never as errors.
"""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from edhforge.models.card import Card
from edhforge.services.card_classifier import group_by_category
from edhforge.services.deck_analytics import analyze_deck
from edhforge.services.deck_counts import completion_info, is_main_deck_full
from edhforge.services.deck_repair import repair_deck_with_report
from edhforge.services.deck_validator import can_admit_card, validate_deck, validation_summary

router = APIRouter(prefix="/validation", tags=["validation"])


class DeckPayload(BaseModel):
    """A deck as sent by the client, cards in Scryfall field names."""

    commander: dict[str, Any] | None = None
    cards: list[dict[str, Any]] = Field(default_factory=list)
    card_categories: dict[str, str] = Field(default_factory=dict)
    name: str | None = None
    description: str | None = None


class DeckValidationResponse(BaseModel):
    """Itemised validation report."""

    valid: bool
    results: list[dict[str, Any]]
    summary: dict[str, Any]
    completion: dict[str, Any]
    categories: dict[str, list[str]]


class CardAdmissionRequest(BaseModel):
    card: dict[str, Any] | None = None
    commander: dict[str, Any] | None = None
    cards: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Current mainboard, used for the capacity check",
    )


class CardAdmissionResponse(BaseModel):
    valid: bool
    message: str
    main_deck_full: bool


class RepairResponse(BaseModel):
    deck: dict[str, Any]
    changed: bool
    report: dict[str, Any]


def _card(data: dict[str, Any] | None) -> Card | None:
    return Card.from_dict(data) if data is not None else None


@router.post("/deck", response_model=DeckValidationResponse)
async def validate_deck_payload(payload: DeckPayload) -> DeckValidationResponse:
    """Run all four deck checks and return every result, passing or not."""
    commander = _card(payload.commander)
    cards = [Card.from_dict(c) for c in payload.cards]

    results = validate_deck(commander, cards)
    summary = validation_summary(results)
    groups = group_by_category(cards, payload.card_categories)

    return DeckValidationResponse(
        valid=summary["valid"],
        results=[r.to_dict() for r in results],
        summary=summary,
        completion=asdict(completion_info(cards, commander)),
        categories={name: [c.name for c in group] for name, group in groups.items()},
    )


@router.post("/card", response_model=CardAdmissionResponse)
async def check_card_admission(request: CardAdmissionRequest) -> CardAdmissionResponse:
    """Check whether one card may be added under a commander."""
    result = can_admit_card(_card(request.card), _card(request.commander))
    return CardAdmissionResponse(
        valid=result.valid,
        message=result.message,
        main_deck_full=is_main_deck_full(request.cards),
    )


@router.post("/repair", response_model=RepairResponse)
async def repair_deck_payload(deck: dict[str, Any]) -> RepairResponse:
    """Repair a possibly malformed deck record and report what changed."""
    repaired = repair_deck_with_report(deck)
    if repaired is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Deck data is not a deck object",
        )
    fixed, report = repaired
    return RepairResponse(deck=fixed.to_dict(), changed=report.changed, report=asdict(report))


@router.post("/analytics")
async def deck_analytics(payload: DeckPayload) -> dict[str, Any]:
    """Mana curve, color distribution and type breakdown for a deck."""
    repaired = repair_deck_with_report(payload.model_dump())
    if repaired is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Deck data is not a deck object",
        )
    return analyze_deck(repaired[0])
