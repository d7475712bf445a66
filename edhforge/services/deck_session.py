"""
Deck state transitions and the session cell that owns them.

Deck values are immutable. Every mutation is a command applied by the pure
function apply_command(deck, command) -> deck. DeckSession holds the current
value for one builder session and notifies subscribers after each change.
"""

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from cachetools import TTLCache

from edhforge.config import MAIN_DECK_SIZE, MAX_CARD_QUANTITY, settings
from edhforge.models.card import Card
from edhforge.models.deck import Deck
from edhforge.services.card_classifier import normalize_override
from edhforge.services.deck_counts import main_deck_count

logger = logging.getLogger(__name__)


# =============================================================================
# COMMANDS
# =============================================================================


@dataclass(frozen=True)
class SetCommander:
    commander: Card | None


@dataclass(frozen=True)
class AddCard:
    card: Card


@dataclass(frozen=True)
class RemoveCard:
    card_id: str


@dataclass(frozen=True)
class UpdateCardQuantity:
    card_id: str
    quantity: int


@dataclass(frozen=True)
class UpdateCardCategory:
    card_id: str
    category: str | None


@dataclass(frozen=True)
class ReplaceCards:
    """Bulk mainboard replacement, used to commit an assembled deck."""

    cards: tuple[Card, ...]


@dataclass(frozen=True)
class ClearDeck:
    pass


@dataclass(frozen=True)
class ResetDeckExceptCommander:
    pass


@dataclass(frozen=True)
class LoadDeck:
    deck: Deck


@dataclass(frozen=True)
class SetDeckName:
    name: str


@dataclass(frozen=True)
class SetDeckDescription:
    description: str


DeckCommand = (
    SetCommander
    | AddCard
    | RemoveCard
    | UpdateCardQuantity
    | UpdateCardCategory
    | ReplaceCards
    | ClearDeck
    | ResetDeckExceptCommander
    | LoadDeck
    | SetDeckName
    | SetDeckDescription
)


def _without_override(categories: dict[str, str], card_id: str) -> dict[str, str]:
    return {k: v for k, v in categories.items() if k != card_id}


def _add_card(deck: Deck, card: Card) -> Deck:
    current = main_deck_count(deck.cards)
    if current >= MAIN_DECK_SIZE:
        logger.warning(
            "Deck has %d non-commander cards. Cannot add %s as deck is full.",
            current,
            card.name,
        )
        return deck

    cards = list(deck.cards)
    for index, existing in enumerate(cards):
        if existing.id == card.id:
            cards[index] = existing.with_quantity(min(existing.quantity + 1, MAX_CARD_QUANTITY))
            return replace(deck, cards=tuple(cards))

    return replace(deck, cards=(*deck.cards, card.with_quantity(1)))


def _remove_card(deck: Deck, card_id: str) -> Deck:
    return replace(
        deck,
        cards=tuple(c for c in deck.cards if c.id != card_id),
        card_categories=_without_override(deck.card_categories, card_id),
    )


def _update_quantity(deck: Deck, card_id: str, quantity: int) -> Deck:
    if quantity <= 0:
        return _remove_card(deck, card_id)
    quantity = min(quantity, MAX_CARD_QUANTITY)
    return replace(
        deck,
        cards=tuple(c.with_quantity(quantity) if c.id == card_id else c for c in deck.cards),
    )


def _update_category(deck: Deck, card_id: str, category: str | None) -> Deck:
    card = deck.find_card(card_id)
    if card is None and deck.commander is not None and deck.commander.id == card_id:
        card = deck.commander
    if card is None:
        return deck

    override = normalize_override(card, category)
    categories = _without_override(deck.card_categories, card_id)
    if override is not None:
        categories[card_id] = override
    return replace(deck, card_categories=categories)


def _replace_cards(deck: Deck, cards: Iterable[Card]) -> Deck:
    new_cards = tuple(cards)
    live_ids = {c.id for c in new_cards}
    if deck.commander is not None:
        live_ids.add(deck.commander.id)
    return replace(
        deck,
        cards=new_cards,
        card_categories={k: v for k, v in deck.card_categories.items() if k in live_ids},
    )


def apply_command(deck: Deck, command: DeckCommand) -> Deck:
    """
    Apply one command and return the resulting deck.

    The input deck is never modified. last_updated is refreshed on every
    transition, including ones that leave the cards unchanged.
    """
    if isinstance(command, SetCommander):
        result = replace(deck, commander=command.commander)
    elif isinstance(command, AddCard):
        result = _add_card(deck, command.card)
    elif isinstance(command, RemoveCard):
        result = _remove_card(deck, command.card_id)
    elif isinstance(command, UpdateCardQuantity):
        result = _update_quantity(deck, command.card_id, command.quantity)
    elif isinstance(command, UpdateCardCategory):
        result = _update_category(deck, command.card_id, command.category)
    elif isinstance(command, ReplaceCards):
        result = _replace_cards(deck, command.cards)
    elif isinstance(command, ClearDeck):
        result = Deck.empty()
    elif isinstance(command, ResetDeckExceptCommander):
        result = replace(deck, cards=(), card_categories={})
    elif isinstance(command, LoadDeck):
        result = command.deck
    elif isinstance(command, SetDeckName):
        result = replace(deck, name=command.name)
    elif isinstance(command, SetDeckDescription):
        result = replace(deck, description=command.description)
    else:
        raise TypeError(f"Unknown deck command: {type(command).__name__}")

    return result.touch()


# =============================================================================
# SESSION CELL
# =============================================================================

DeckListener = Callable[[Deck], None]


class DeckSession:
    """
    Mutable cell holding one builder session's deck.

    Only the session mutates its deck; subscribers are called synchronously
    after every change with the new value.
    """

    def __init__(self, deck: Deck | None = None, session_id: str | None = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self._deck = deck or Deck.empty()
        self._listeners: list[DeckListener] = []

    @property
    def current(self) -> Deck:
        return self._deck

    def dispatch(self, command: DeckCommand) -> Deck:
        """Apply a command, store the result and notify subscribers."""
        self._deck = apply_command(self._deck, command)
        for listener in list(self._listeners):
            listener(self._deck)
        return self._deck

    def commit(self, cards: Iterable[Card]) -> Deck:
        """Atomically replace the mainboard (assembly commit point)."""
        return self.dispatch(ReplaceCards(cards=tuple(cards)))

    def subscribe(self, listener: DeckListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class DeckSessionRegistry:
    """
    In-process store of builder sessions keyed by session id.

    Sessions expire after ttl_seconds without being read or created, and the
    least recently used session is dropped once maxsize is reached.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        maxsize: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache[str, DeckSession] = TTLCache(
            maxsize=settings.session_max_count if maxsize is None else maxsize,
            ttl=settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds,
            timer=clock,
        )

    def create(self, deck: Deck | None = None) -> DeckSession:
        session = DeckSession(deck)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> DeckSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            # Re-inserting restarts the idle timer
            self._sessions[session_id] = session
        return session

    def discard(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        self._sessions.expire()
        return len(self._sessions)
