"""
Saved deck API endpoints.

Decks are stored as minimized records and rehydrated from the card data
provider on load.
"""

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from edhforge.api.dependencies import get_card_source
from edhforge.db import delete_deck, list_decks_for_user, load_deck, save_deck
from edhforge.db.database import get_session
from edhforge.models.deck import Deck
from edhforge.models.failure import MissingCommanderError
from edhforge.services.deck_codec import rehydrate_deck, serialize_deck
from edhforge.services.deck_exporter import export_deck, export_filename
from edhforge.services.deck_importer import import_deck, validate_import_result
from edhforge.services.deck_repair import repair_deck
from edhforge.services.scryfall_client import CardCollectionSource, CardSource

router = APIRouter(prefix="/decks", tags=["decks"])


class SaveDeckRequest(BaseModel):
    """Request model for saving a deck."""

    user_id: str = Field(..., min_length=1)
    deck: dict[str, Any]
    record_id: str | None = Field(
        default=None,
        description="Existing record to overwrite; a new record is created when omitted",
    )


class SaveDeckResponse(BaseModel):
    record_id: str
    payload_chars: int


class UserDecksResponse(BaseModel):
    user_id: str
    record_ids: list[str]
    count: int


class DeleteResponse(BaseModel):
    deleted: bool


class ImportDeckRequest(BaseModel):
    """A pasted deck list in any supported layout."""

    text: str = Field(..., min_length=1)
    name: str | None = None


class ImportDeckResponse(BaseModel):
    format: str
    deck: dict[str, Any]
    unresolved_names: list[str]
    corrections: dict[str, str]
    commander_detected: bool
    requested: int
    resolved: int
    valid: bool
    errors: list[str]
    warnings: list[str]


async def _load_or_404(session: AsyncSession, record_id: str, card_source: CardSource) -> Deck:
    record = await load_deck(session, record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck {record_id} not found",
        )
    deck = await rehydrate_deck(record, card_source)
    if deck is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Deck {record_id} could not be rebuilt",
        )
    return deck


@router.post("", response_model=SaveDeckResponse, status_code=status.HTTP_201_CREATED)
async def save_user_deck(
    request: SaveDeckRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SaveDeckResponse:
    """
    Save a deck for a user.

    The deck is repaired, minimized and size-checked before storage.
    Returns 413 if the minimized record is over the size ceiling.
    """
    deck = repair_deck(request.deck)
    if deck is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Deck data is not a deck object",
        )
    if deck.commander is None:
        raise MissingCommanderError("save a deck")

    record = serialize_deck(deck)
    record_id = await save_deck(
        session,
        request.user_id,
        record,
        commander_name=deck.commander.name,
        deck_name=deck.name,
        record_id=request.record_id,
    )
    return SaveDeckResponse(record_id=record_id, payload_chars=len(record))


@router.post("/import", response_model=ImportDeckResponse)
async def import_user_deck(
    request: ImportDeckRequest,
    card_source: Annotated[CardCollectionSource, Depends(get_card_source)],
) -> ImportDeckResponse:
    """
    Parse a pasted deck list into a deck.

    Unresolvable names and a missing commander do not fail the request;
    they are reported in the errors and warnings for the user to fix.
    """
    result = await import_deck(request.text, card_source, name=request.name)
    check = validate_import_result(result)
    return ImportDeckResponse(
        format=result.format.value,
        deck=result.deck.to_dict(),
        unresolved_names=result.unresolved_names,
        corrections=result.corrections,
        commander_detected=result.commander_detected,
        requested=result.requested,
        resolved=result.resolved,
        valid=check.valid,
        errors=check.errors,
        warnings=check.warnings,
    )


@router.get("/user/{user_id}", response_model=UserDecksResponse)
async def get_user_decks(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserDecksResponse:
    """List the record ids a user has saved."""
    record_ids = await list_decks_for_user(session, user_id)
    return UserDecksResponse(user_id=user_id, record_ids=record_ids, count=len(record_ids))


@router.get("/{record_id}")
async def get_saved_deck(
    record_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    card_source: Annotated[CardSource, Depends(get_card_source)],
) -> dict[str, Any]:
    """Load a saved deck, rehydrating every card from the card data provider."""
    deck = await _load_or_404(session, record_id, card_source)
    return {"record_id": record_id, **deck.to_dict()}


@router.get("/{record_id}/export", response_class=PlainTextResponse)
async def export_saved_deck(
    record_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    card_source: Annotated[CardSource, Depends(get_card_source)],
    export_format: Annotated[Literal["text", "moxfield"], Query(alias="format")] = "text",
) -> PlainTextResponse:
    """Export a saved deck as a plain-text deck list download."""
    deck = await _load_or_404(session, record_id, card_source)
    if deck.commander is None:
        raise MissingCommanderError("export a deck")
    return PlainTextResponse(
        export_deck(deck, export_format),
        headers={"Content-Disposition": f'attachment; filename="{export_filename(deck)}"'},
    )


@router.delete("/{record_id}", response_model=DeleteResponse)
async def delete_saved_deck(
    record_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeleteResponse:
    """Delete a saved deck. Returns 404 if it does not exist."""
    if not await delete_deck(session, record_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck {record_id} not found",
        )
    return DeleteResponse(deleted=True)
