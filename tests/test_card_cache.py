"""Tests for the in-memory card cache."""

from factories import FakeClock, build_card

from edhforge.models.card import Card
from edhforge.services.card_cache import CardCache


class TestCardCache:
    def test_put_and_get(self) -> None:
        cache = CardCache(ttl_seconds=60)
        card = build_card("Sol Ring", card_id="sol")

        cache.put(card)

        assert cache.get("sol") == card
        assert len(cache) == 1

    def test_deck_fields_stripped(self) -> None:
        """Quantity and category belong to the deck, not the cached card."""
        cache = CardCache(ttl_seconds=60)
        cache.put(build_card("Forest", card_id="forest", quantity=30, custom_category="Mana"))

        cached = cache.get("forest")

        assert cached.quantity == 1
        assert cached.custom_category is None

    def test_expired_entries_evicted(self) -> None:
        clock = FakeClock()
        cache = CardCache(ttl_seconds=10, clock=clock)
        cache.put(build_card("Sol Ring", card_id="sol"))

        clock.now = 11
        assert cache.get("sol") is None
        assert len(cache) == 0

    def test_expired_entries_dropped_without_being_read(self) -> None:
        clock = FakeClock()
        cache = CardCache(ttl_seconds=10, clock=clock)
        cache.put([build_card("A", card_id="a"), build_card("B", card_id="b")])

        clock.now = 11

        assert len(cache) == 0

    def test_size_bounded(self) -> None:
        cache = CardCache(ttl_seconds=60, maxsize=100)

        cache.put(build_card(f"Card {i}", card_id=f"c{i}") for i in range(500))

        assert len(cache) == 100
        assert cache.get("c0") is None
        assert cache.get("c499") is not None

    def test_put_many_skips_missing_ids(self) -> None:
        cache = CardCache(ttl_seconds=60)
        cache.put([build_card("A", card_id="a"), build_card("B", card_id="b")])
        cache.put(Card(id="", name="Nameless"))

        assert len(cache) == 2

    def test_clear(self) -> None:
        cache = CardCache(ttl_seconds=60)
        cache.put(build_card("A", card_id="a"))
        cache.clear()
        assert cache.get("a") is None
