"""
Deck builder session API endpoints.

A builder session holds one in-progress deck server-side. Clients change it
with commands and can ask for a full automatic assembly, which is committed
to the session in a single step only when it succeeds.
"""

import logging
from dataclasses import asdict
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from edhforge.api.dependencies import get_card_source, get_generator, get_session_registry
from edhforge.config import MAIN_DECK_SIZE
from edhforge.models.card import Card
from edhforge.models.deck import Deck
from edhforge.models.failure import CardNotAdmissibleError, DeckFullError
from edhforge.services.deck_assembler import DeckAssembler
from edhforge.services.deck_counts import completion_info, main_deck_count
from edhforge.services.deck_generator import DeckGenerator
from edhforge.services.deck_repair import repair_deck
from edhforge.services.deck_session import (
    AddCard,
    ClearDeck,
    DeckCommand,
    DeckSession,
    DeckSessionRegistry,
    LoadDeck,
    RemoveCard,
    ResetDeckExceptCommander,
    SetCommander,
    SetDeckDescription,
    SetDeckName,
    UpdateCardCategory,
    UpdateCardQuantity,
)
from edhforge.services.deck_validator import can_admit_card, validation_summary
from edhforge.services.scryfall_client import CardSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/builder", tags=["builder"])

CommandType = Literal[
    "set_commander",
    "add_card",
    "remove_card",
    "update_card_quantity",
    "update_card_category",
    "clear_deck",
    "reset_deck_except_commander",
    "load_deck",
    "set_deck_name",
    "set_deck_description",
]


class CreateSessionRequest(BaseModel):
    deck: dict[str, Any] | None = None


class SessionResponse(BaseModel):
    """Current state of a builder session."""

    session_id: str
    deck: dict[str, Any]
    completion: dict[str, Any]


class CommandRequest(BaseModel):
    """One deck command. Only the fields the command type uses are read."""

    type: CommandType
    card: dict[str, Any] | None = None
    card_id: str | None = None
    quantity: int | None = None
    category: str | None = None
    name: str | None = None
    description: str | None = None
    deck: dict[str, Any] | None = None


class AssembleRequest(BaseModel):
    style: str = Field(default="competitive", min_length=1)
    constraints: dict[str, Any] | None = None


class AssembleResponse(BaseModel):
    session_id: str
    deck: dict[str, Any]
    completion: dict[str, Any]
    report: list[dict[str, Any]]
    summary: dict[str, Any]
    unresolved_names: list[str]
    replacements: dict[str, str]
    fallbacks: list[str]
    stages: list[str]


def _session_response(session: DeckSession) -> SessionResponse:
    deck = session.current
    return SessionResponse(
        session_id=session.id,
        deck=deck.to_dict(),
        completion=asdict(completion_info(deck.cards, deck.commander)),
    )


def _get_or_404(registry: DeckSessionRegistry, session_id: str) -> DeckSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Builder session {session_id} not found",
        )
    return session


def _require(value: Any, field_name: str, command_type: str) -> Any:
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{field_name}' is required for {command_type}",
        )
    return value


def _repaired(data: dict[str, Any]) -> Deck:
    deck = repair_deck(data)
    if deck is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Deck data is not a deck object",
        )
    return deck


def _admit(deck: Deck, card: Card) -> None:
    """
    Gate a card addition on capacity and admission.

    Raises:
        DeckFullError: If the mainboard already holds 99 cards
        CardNotAdmissibleError: If the card fails the commander checks
    """
    count = main_deck_count(deck.cards)
    if count >= MAIN_DECK_SIZE:
        raise DeckFullError(count)
    result = can_admit_card(card, deck.commander)
    if not result.valid:
        raise CardNotAdmissibleError(card.name, result.message)


def build_command(request: CommandRequest, deck: Deck) -> DeckCommand:
    """Translate a command request into a deck command, gating card additions."""
    kind = request.type
    if kind == "set_commander":
        return SetCommander(commander=Card.from_dict(request.card) if request.card else None)
    if kind == "add_card":
        card = Card.from_dict(_require(request.card, "card", kind))
        _admit(deck, card)
        return AddCard(card=card)
    if kind == "remove_card":
        return RemoveCard(card_id=_require(request.card_id, "card_id", kind))
    if kind == "update_card_quantity":
        return UpdateCardQuantity(
            card_id=_require(request.card_id, "card_id", kind),
            quantity=_require(request.quantity, "quantity", kind),
        )
    if kind == "update_card_category":
        return UpdateCardCategory(
            card_id=_require(request.card_id, "card_id", kind),
            category=request.category,
        )
    if kind == "clear_deck":
        return ClearDeck()
    if kind == "reset_deck_except_commander":
        return ResetDeckExceptCommander()
    if kind == "load_deck":
        return LoadDeck(deck=_repaired(_require(request.deck, "deck", kind)))
    if kind == "set_deck_name":
        return SetDeckName(name=_require(request.name, "name", kind))
    return SetDeckDescription(description=_require(request.description, "description", kind))


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    registry: Annotated[DeckSessionRegistry, Depends(get_session_registry)],
) -> SessionResponse:
    """Start a builder session, optionally from an existing deck."""
    deck = _repaired(request.deck) if request.deck is not None else None
    return _session_response(registry.create(deck))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session_state(
    session_id: str,
    registry: Annotated[DeckSessionRegistry, Depends(get_session_registry)],
) -> SessionResponse:
    return _session_response(_get_or_404(registry, session_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(
    session_id: str,
    registry: Annotated[DeckSessionRegistry, Depends(get_session_registry)],
) -> None:
    if not registry.discard(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Builder session {session_id} not found",
        )


@router.post("/sessions/{session_id}/commands", response_model=SessionResponse)
async def apply_session_command(
    session_id: str,
    request: CommandRequest,
    registry: Annotated[DeckSessionRegistry, Depends(get_session_registry)],
) -> SessionResponse:
    """
    Apply one command to the session's deck.

    Card additions are refused (409 deck full, 422 not admissible) rather
    than applied when the card cannot legally join the deck.
    """
    session = _get_or_404(registry, session_id)
    session.dispatch(build_command(request, session.current))
    return _session_response(session)


@router.post("/sessions/{session_id}/assemble", response_model=AssembleResponse)
async def assemble_session_deck(
    session_id: str,
    request: AssembleRequest,
    registry: Annotated[DeckSessionRegistry, Depends(get_session_registry)],
    card_source: Annotated[CardSource, Depends(get_card_source)],
    generator: Annotated[DeckGenerator, Depends(get_generator)],
) -> AssembleResponse:
    """
    Assemble a complete deck for the session's commander.

    The session's mainboard is replaced only if assembly succeeds; on any
    failure the session is left untouched.
    """
    session = _get_or_404(registry, session_id)
    assembler = DeckAssembler(card_source, generator)
    result = await assembler.assemble(
        session.current.commander,
        style=request.style,
        constraints=request.constraints,
    )
    deck = session.commit(result.cards)
    logger.info(
        "Committed assembled deck to session %s",
        session.id,
        extra={"fallbacks": len(result.fallbacks), "replacements": len(result.replacements)},
    )

    return AssembleResponse(
        session_id=session.id,
        deck=deck.to_dict(),
        completion=asdict(completion_info(deck.cards, deck.commander)),
        report=[r.to_dict() for r in result.report],
        summary=validation_summary(result.report),
        unresolved_names=result.unresolved_names,
        replacements=result.replacements,
        fallbacks=result.fallbacks,
        stages=[event.stage.value for event in result.events],
    )
