"""Tests for card lookup endpoints."""

import httpx
import pytest
from factories import FakeCardSource, build_card
from httpx import ASGITransport, AsyncClient

from edhforge.api.dependencies import get_card_source
from edhforge.main import app

SOL_RING = build_card("Sol Ring", type_line="Artifact", card_id="sol")


@pytest.fixture
def card_source(golgari_commander) -> FakeCardSource:
    return FakeCardSource([golgari_commander, SOL_RING])


@pytest.fixture
async def client(card_source):
    app.dependency_overrides[get_card_source] = lambda: card_source

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestSearch:
    async def test_search(self, client: AsyncClient) -> None:
        response = await client.get("/cards/search", params={"q": "sol"})

        data = response.json()
        assert data["query"] == "sol"
        assert data["count"] == 1
        assert data["cards"][0]["name"] == "Sol Ring"

    async def test_commanders_only(self, client: AsyncClient) -> None:
        response = await client.get("/cards/search", params={"q": "e", "commanders": "true"})

        assert [c["name"] for c in response.json()["cards"]] == ["Meren of Clan Nel Toth"]

    async def test_query_required(self, client: AsyncClient) -> None:
        assert (await client.get("/cards/search")).status_code == 422


class TestLookup:
    async def test_by_name(self, client: AsyncClient) -> None:
        response = await client.get("/cards/named", params={"name": "sol ring"})
        assert response.json()["id"] == "sol"

    async def test_exact_name_miss(self, client: AsyncClient) -> None:
        response = await client.get("/cards/named", params={"name": "sol ring", "exact": "true"})

        assert response.status_code == 404
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "not_found"

    async def test_by_id(self, client: AsyncClient) -> None:
        response = await client.get("/cards/meren")
        assert response.json()["color_identity"] == ["B", "G"]

    async def test_unknown_id(self, client: AsyncClient) -> None:
        assert (await client.get("/cards/nope")).status_code == 404

    async def test_provider_outage(self, client: AsyncClient, card_source) -> None:
        card_source.failures["sol"] = httpx.ConnectError("refused")

        response = await client.get("/cards/sol")

        assert response.status_code == 503
        failure = response.json()["failure"]
        assert failure["kind"] == "service_unavailable"
        assert failure["detail"] == "Card data provider unavailable"
