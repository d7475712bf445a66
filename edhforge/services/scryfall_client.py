"""
Scryfall card data client.

Looks up cards by id, by name and by search query. Every call is treated as
slow and failure-prone: throttling, server errors and transport errors are
retried by the injected RetryPolicy and then propagate unchanged. A missing
card is a CardNotFoundError, never a transport error.

API docs: https://scryfall.com/docs/api
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from edhforge.config import settings
from edhforge.models.card import Card
from edhforge.models.failure import CardNotFoundError
from edhforge.services.card_cache import CardCache
from edhforge.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Scryfall accepts at most 75 identifiers per /cards/collection request
COLLECTION_BATCH_SIZE = 75


class CardSource(Protocol):
    """The card lookups the validation pipeline depends on."""

    async def lookup_by_id(self, card_id: str) -> Card: ...

    async def lookup_by_name(self, name: str, fuzzy: bool = True) -> Card: ...


class CardCollectionSource(CardSource, Protocol):
    """A card source that also resolves many names in one batched call."""

    async def lookup_collection(
        self, names: Sequence[str]
    ) -> tuple[dict[str, Card], list[str]]: ...


class ScryfallClient:
    """
    Async Scryfall client returning Card values.

    Usage:
        async with ScryfallClient() as client:
            card = await client.lookup_by_name("Sol Ring")
    """

    def __init__(
        self,
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
        cache: CardCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.scryfall_api_url).rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.cache = cache if cache is not None else CardCache()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=30.0,
            headers={
                "User-Agent": settings.scryfall_user_agent,
                "Accept": "application/json",
            },
        )

    async def __aenter__(self) -> "ScryfallClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = path if path.startswith("http") else f"{self.base_url}{path}"

        async def send() -> httpx.Response:
            response = await self._client.request(method, url, **kwargs)
            if response.status_code != 404:
                response.raise_for_status()
            return response

        return await self.retry_policy.run(send)

    def _remember(self, data: dict[str, Any]) -> Card:
        card = Card.from_dict(data)
        self.cache.put(card)
        return card

    async def lookup_by_id(self, card_id: str) -> Card:
        """
        Fetch a card by Scryfall id, using the cache first.

        Raises:
            CardNotFoundError: If no card has this id
            httpx.HTTPError: If the request fails after retries
        """
        cached = self.cache.get(card_id)
        if cached is not None:
            return cached

        response = await self._request("GET", f"/cards/{card_id}")
        if response.status_code == 404:
            raise CardNotFoundError(card_id)
        return self._remember(response.json())

    async def lookup_by_name(self, name: str, fuzzy: bool = True) -> Card:
        """
        Fetch a card by name.

        Fuzzy matching tolerates case, punctuation and partial names.

        Raises:
            CardNotFoundError: If Scryfall cannot match the name
            httpx.HTTPError: If the request fails after retries
        """
        params = {"fuzzy" if fuzzy else "exact": name}
        response = await self._request("GET", "/cards/named", params=params)
        if response.status_code == 404:
            raise CardNotFoundError(name, detail=_error_details(response))
        return self._remember(response.json())

    async def search(self, query: str, max_pages: int = 1) -> list[Card]:
        """
        Run a Scryfall search query.

        A query with no matches returns an empty list (Scryfall answers 404).
        """
        cards: list[Card] = []
        path = "/cards/search"
        params: dict[str, str] | None = {"q": query}

        for _ in range(max_pages):
            response = await self._request("GET", path, params=params)
            if response.status_code == 404:
                break
            data = response.json()
            cards.extend(self._remember(item) for item in data.get("data", []))
            if not data.get("has_more"):
                break
            path = data.get("next_page", "")
            params = None  # next_page already carries the query

        return cards

    async def search_commanders(self, query: str = "") -> list[Card]:
        """Search restricted to cards that can be a commander."""
        return await self.search(f"{query} is:commander".strip())

    async def lookup_collection(self, names: Sequence[str]) -> tuple[dict[str, Card], list[str]]:
        """
        Resolve many names with batched /cards/collection requests.

        Returns:
            Tuple of (found cards keyed by requested name, names not found)
        """
        unique = list(dict.fromkeys(names))
        found: dict[str, Card] = {}
        not_found: list[str] = []

        for start in range(0, len(unique), COLLECTION_BATCH_SIZE):
            batch = unique[start : start + COLLECTION_BATCH_SIZE]
            response = await self._request(
                "POST",
                "/cards/collection",
                json={"identifiers": [{"name": name} for name in batch]},
            )
            data = response.json()
            by_name = {}
            for item in data.get("data", []):
                card = self._remember(item)
                by_name[card.name.lower()] = card
                # Split and double-faced cards are requested by front face name
                for face in card.face_names:
                    by_name.setdefault(face.lower(), card)
            for name in batch:
                if name.lower() in by_name:
                    found[name] = by_name[name.lower()]
                else:
                    not_found.append(name)

        if not_found:
            logger.info("Scryfall could not match %d of %d names", len(not_found), len(unique))
        return found, not_found


def _error_details(response: httpx.Response) -> str | None:
    try:
        details = response.json().get("details")
    except ValueError:
        return None
    return str(details) if details else None
