"""
Card lookup API endpoints, backed by the card data provider.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from edhforge.api.dependencies import get_card_source
from edhforge.services.scryfall_client import ScryfallClient

router = APIRouter(prefix="/cards", tags=["cards"])


class CardSearchResponse(BaseModel):
    query: str
    cards: list[dict[str, Any]]
    count: int


@router.get("/search", response_model=CardSearchResponse)
async def search_cards(
    client: Annotated[ScryfallClient, Depends(get_card_source)],
    q: Annotated[str, Query(min_length=1)],
    commanders: bool = False,
) -> CardSearchResponse:
    """Search cards; commanders=true restricts results to legal commanders."""
    cards = await client.search_commanders(q) if commanders else await client.search(q)
    return CardSearchResponse(query=q, cards=[c.to_dict() for c in cards], count=len(cards))


@router.get("/named")
async def get_card_by_name(
    client: Annotated[ScryfallClient, Depends(get_card_source)],
    name: Annotated[str, Query(min_length=1)],
    exact: bool = False,
) -> dict[str, Any]:
    """Look up one card by name. Returns 404 if nothing matches."""
    card = await client.lookup_by_name(name, fuzzy=not exact)
    return card.to_dict()


@router.get("/{card_id}")
async def get_card_by_id(
    card_id: str,
    client: Annotated[ScryfallClient, Depends(get_card_source)],
) -> dict[str, Any]:
    """Look up one card by id. Returns 404 if it does not exist."""
    card = await client.lookup_by_id(card_id)
    return card.to_dict()
