"""
Deck assembly orchestrator.

Builds a complete 99-card mainboard for a commander from a generator
skeleton:

    GENERATING -> VALIDATING -> FIXING_VIOLATIONS -> REVALIDATING_FINAL
    -> HYDRATING_CARD_DATA -> COMPLETE

The generator only proposes names. Every proposal is resolved through the
card source and checked by the rule validator before it is kept, and any
slot that cannot be filled legally falls back to a basic land of the
commander's colors. Nothing is committed here: the caller commits
result.cards atomically (DeckSession.commit) once assemble() returns.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

import httpx

from edhforge.config import MAIN_DECK_SIZE, MAX_CARD_QUANTITY, settings
from edhforge.models.card import COLOR_ORDER, Card, sort_colors
from edhforge.models.failure import (
    AssemblyError,
    CardNotFoundError,
    GeneratorError,
    MissingCommanderError,
)
from edhforge.models.validation import ValidationResult
from edhforge.services.deck_generator import DeckGenerator, NamedEntry
from edhforge.services.deck_validator import (
    COLOR_IDENTITY,
    FORMAT_LEGALITY,
    SINGLETON_RULE,
    can_admit_card,
    validate_deck,
)
from edhforge.services.scryfall_client import CardSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASIC_LAND_BY_COLOR = {
    "W": "Plains",
    "U": "Island",
    "B": "Swamp",
    "R": "Mountain",
    "G": "Forest",
}
COLORLESS_BASIC_LAND = "Wastes"

# Generator categories in trim order: earlier entries are cut first when a
# skeleton is oversize. Unknown categories rank with "Utility".
_TRIM_ORDER = (
    "Utility",
    "Finisher",
    "Strategy",
    "Protection",
    "Board Wipe",
    "Removal",
    "Card Draw",
    "Ramp",
    "Land",
)

# Checks whose violations are fixed by replacing the offending slot
_REPLACEABLE_CHECKS = (COLOR_IDENTITY, SINGLETON_RULE, FORMAT_LEGALITY)


class AssemblyStage(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    VALIDATING = "validating"
    FIXING_VIOLATIONS = "fixing_violations"
    REVALIDATING_FINAL = "revalidating_final"
    HYDRATING_CARD_DATA = "hydrating_card_data"
    COMPLETE = "complete"
    ERRORED = "errored"
    CANCELLED = "cancelled"

    @property
    def description(self) -> str:
        return _STAGE_DESCRIPTIONS.get(self, self.value.replace("_", " "))


_STAGE_DESCRIPTIONS = {
    AssemblyStage.GENERATING: "initial generation",
    AssemblyStage.VALIDATING: "card resolution and validation",
    AssemblyStage.FIXING_VIOLATIONS: "violation replacement",
    AssemblyStage.REVALIDATING_FINAL: "final validation",
    AssemblyStage.HYDRATING_CARD_DATA: "card data hydration",
}


class AssemblyCancelledError(Exception):
    """Assembly was cancelled by the caller; nothing was committed."""


@dataclass(frozen=True)
class AssemblyEvent:
    stage: AssemblyStage
    detail: str = ""


@dataclass
class AssemblyResult:
    """
    Outcome of a successful assembly.

    Attributes:
        cards: Final mainboard, basic lands collapsed into quantity entries
        report: validate_deck() over the commander and cards
        unresolved_names: Skeleton names the card source could not match
        replacements: Rejected card name -> name of the card that replaced it
        fallbacks: Rejected card names that ended up as basic lands
        events: Stage transitions, in order
    """

    cards: list[Card]
    report: list[ValidationResult]
    unresolved_names: list[str] = field(default_factory=list)
    replacements: dict[str, str] = field(default_factory=dict)
    fallbacks: list[str] = field(default_factory=list)
    events: list[AssemblyEvent] = field(default_factory=list)

    @property
    def main_deck_count(self) -> int:
        return sum(card.quantity for card in self.cards)


@dataclass
class _Slot:
    """One mainboard position while the deck is being assembled."""

    entry: NamedEntry
    card: Card | None = None
    reason: str | None = None
    fallback: bool = False

    @property
    def name(self) -> str:
        return self.card.name if self.card else self.entry.name


def basic_lands_for_identity(colors: Iterable[str], count: int) -> list[tuple[str, int]]:
    """
    Split count basic lands evenly over a color identity.

    Colors are taken in WUBRG order and the remainder goes to the earliest
    colors. A colorless identity gets Wastes only.

    Returns:
        List of (land name, quantity), omitting zero quantities
    """
    if count <= 0:
        return []
    ordered = [c for c in sort_colors(set(colors)) if c in COLOR_ORDER]
    if not ordered:
        return [(COLORLESS_BASIC_LAND, count)]

    per_color, remainder = divmod(count, len(ordered))
    lands = []
    for index, color in enumerate(ordered):
        quantity = per_color + (1 if index < remainder else 0)
        if quantity:
            lands.append((BASIC_LAND_BY_COLOR[color], quantity))
    return lands


def _trim_rank(slot: _Slot) -> int:
    if slot.card is None:
        return -1
    if slot.card.is_basic_land:
        return len(_TRIM_ORDER) + 1
    try:
        return _TRIM_ORDER.index(slot.entry.category)
    except ValueError:
        return 0


def _trim_slots(slots: list[_Slot], size: int) -> list[_Slot]:
    """Keep size slots, cutting unresolved then low-priority slots, latest first."""
    excess = len(slots) - size
    if excess <= 0:
        return slots
    # Stable sort: within a rank, later skeleton positions are cut first
    ranked = sorted(range(len(slots)), key=lambda i: (_trim_rank(slots[i]), -i))
    cut = set(ranked[:excess])
    return [slot for i, slot in enumerate(slots) if i not in cut]


def _collapse(cards: Sequence[Card]) -> list[Card]:
    """Merge repeated ids into quantity-bearing entries, keeping first-seen order."""
    merged: dict[str, Card] = {}
    for card in cards:
        existing = merged.get(card.id)
        if existing is None:
            merged[card.id] = card.with_quantity(1)
        else:
            merged[card.id] = existing.with_quantity(min(existing.quantity + 1, MAX_CARD_QUANTITY))
    return list(merged.values())


def _needs_hydration(card: Card) -> bool:
    return card.type_line is None or card.legalities is None


class DeckAssembler:
    """
    Orchestrates generator, card source and validator into one deck.

    Usage:
        assembler = DeckAssembler(scryfall, generator)
        result = await assembler.assemble(commander, style="casual")
        session.commit(result.cards)
    """

    def __init__(
        self,
        card_source: CardSource,
        generator: DeckGenerator,
        *,
        max_replacement_attempts: int | None = None,
    ) -> None:
        self.card_source = card_source
        self.generator = generator
        self.max_replacement_attempts = (
            settings.max_replacement_attempts
            if max_replacement_attempts is None
            else max_replacement_attempts
        )

    async def assemble(
        self,
        commander: Card | None,
        style: str = "competitive",
        constraints: dict[str, Any] | None = None,
        on_stage: Callable[[AssemblyEvent], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AssemblyResult:
        """
        Assemble a 99-card mainboard for the commander.

        Raises:
            MissingCommanderError: If commander is None
            AssemblyError: If the generator cannot produce a skeleton
            AssemblyCancelledError: If cancel_event is set before completion
        """
        if commander is None:
            raise MissingCommanderError("assemble a deck")

        run = _AssemblyRun(self, commander, style, constraints, on_stage, cancel_event)
        return await run.execute()


class _AssemblyRun:
    """State for one assemble() call."""

    def __init__(
        self,
        assembler: DeckAssembler,
        commander: Card,
        style: str,
        constraints: dict[str, Any] | None,
        on_stage: Callable[[AssemblyEvent], None] | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        self.card_source = assembler.card_source
        self.generator = assembler.generator
        self.max_attempts = assembler.max_replacement_attempts
        self.commander = commander
        self.style = style
        self.constraints = constraints
        self.on_stage = on_stage
        self.cancel_event = cancel_event

        self.stage = AssemblyStage.IDLE
        self.events: list[AssemblyEvent] = []
        self.unresolved: list[str] = []
        self.replacements: dict[str, str] = {}
        self.fallbacks: list[str] = []
        self._basics: dict[str, Card] = {}
        self._claimed: set[str] = set()

    # -- plumbing -------------------------------------------------------------

    def _emit(self, stage: AssemblyStage, detail: str = "") -> None:
        self.stage = stage
        event = AssemblyEvent(stage=stage, detail=detail)
        self.events.append(event)
        logger.info("Assembly for %s: %s %s", self.commander.name, stage.value, detail)
        if self.on_stage is not None:
            self.on_stage(event)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise AssemblyCancelledError(f"Assembly cancelled during {self.stage.description}")

    async def _external(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Make an external call unless cancelled, and honour a cancel on return."""
        self._check_cancelled()
        result = await fn(*args, **kwargs)
        self._check_cancelled()
        return result

    async def _resolve(self, name: str) -> Card | None:
        """Resolve a name; a miss or a lookup timeout is None, other errors propagate."""
        try:
            return await self._external(self.card_source.lookup_by_name, name)
        except (CardNotFoundError, TimeoutError, httpx.TimeoutException) as e:
            logger.info("Could not resolve %r: %s", name, type(e).__name__)
            return None

    async def _basic_land(self, name: str) -> Card:
        card = self._basics.get(name)
        if card is None:
            try:
                card = await self._external(
                    self.card_source.lookup_by_name, name, fuzzy=False
                )
            except CardNotFoundError as e:
                raise AssemblyError(self.stage.value, self.stage.description, detail=str(e)) from e
            self._basics[name] = card
        return card

    async def _basic_slots(self, count: int) -> list[_Slot]:
        slots = []
        for land_name, quantity in basic_lands_for_identity(self.commander.color_identity, count):
            card = await self._basic_land(land_name)
            entry = NamedEntry(name=land_name, category="Land")
            slots.extend(_Slot(entry=entry, card=card) for _ in range(quantity))
        return slots

    async def _gather_all(self, coros: Sequence[Awaitable[T]]) -> list[T]:
        """
        Join barrier raced against the cancel event.

        On the first failure, or as soon as the caller cancels, every pending
        task is cancelled and awaited before the error propagates.
        """
        tasks = [asyncio.ensure_future(c) for c in coros]
        if not tasks:
            return []
        gathered = asyncio.gather(*tasks)
        cancel_waiter = None
        waiters: set[asyncio.Future[Any]] = {gathered}
        if self.cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(self.cancel_event.wait())
            waiters.add(cancel_waiter)
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            if gathered.done():
                return list(gathered.result())
            raise AssemblyCancelledError(f"Assembly cancelled during {self.stage.description}")
        except BaseException:
            gathered.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

    # -- pipeline -------------------------------------------------------------

    async def execute(self) -> AssemblyResult:
        try:
            self._check_cancelled()
            skeleton = await self._generate()
            slots = await self._validate(skeleton)
            await self._fix_violations(slots)
            cards = await self._revalidate_final(slots)
            cards = await self._hydrate(cards)
        except AssemblyCancelledError:
            self._emit(AssemblyStage.CANCELLED)
            raise
        except Exception as e:
            self._emit(AssemblyStage.ERRORED, type(e).__name__)
            raise

        report = validate_deck(self.commander, cards)
        result = AssemblyResult(
            cards=cards,
            report=report,
            unresolved_names=self.unresolved,
            replacements=self.replacements,
            fallbacks=self.fallbacks,
            events=self.events,
        )
        self._emit(AssemblyStage.COMPLETE, f"{result.main_deck_count} cards")
        return result

    async def _generate(self) -> list[NamedEntry]:
        self._emit(AssemblyStage.GENERATING, self.style)
        try:
            skeleton = await self._external(
                self.generator.generate_skeleton, self.commander, self.style, self.constraints
            )
        except AssemblyCancelledError:
            raise
        except Exception as e:
            raise AssemblyError(
                AssemblyStage.GENERATING.value,
                AssemblyStage.GENERATING.description,
                detail=str(e),
            ) from e
        logger.info("Skeleton for %s has %d entries", self.commander.name, len(skeleton))
        return skeleton

    async def _validate(self, skeleton: Sequence[NamedEntry]) -> list[_Slot]:
        self._emit(AssemblyStage.VALIDATING, f"{len(skeleton)} entries")

        names = list(dict.fromkeys(entry.name for entry in skeleton))
        resolved = dict(zip(names, await self._gather_all([self._resolve(n) for n in names])))

        slots: list[_Slot] = []
        for entry in skeleton:
            card = resolved[entry.name]
            if card is None:
                if entry.name not in self.unresolved:
                    self.unresolved.append(entry.name)
                slots.append(_Slot(entry=entry, reason=f"{entry.name} could not be resolved."))
                continue
            copies = entry.quantity if card.is_basic_land else 1
            slots.extend(_Slot(entry=entry, card=card) for _ in range(copies))

        slots = _trim_slots(slots, MAIN_DECK_SIZE)
        if len(slots) < MAIN_DECK_SIZE:
            slots.extend(await self._basic_slots(MAIN_DECK_SIZE - len(slots)))

        self._mark_violations(slots)
        return slots

    def _mark_violations(self, slots: list[_Slot]) -> None:
        """Flag every slot the validator (or the commander itself) rules out."""
        cards = [slot.card for slot in slots if slot.card is not None]
        reasons: dict[str, str] = {}
        duplicate_reasons: dict[str, str] = {}
        for result in validate_deck(self.commander, cards):
            if result.name not in _REPLACEABLE_CHECKS:
                continue
            for violation in result.violations:
                if result.name == SINGLETON_RULE:
                    duplicate_reasons.setdefault(violation.card.name, violation.reason)
                elif violation.card is not self.commander:
                    reasons.setdefault(violation.card.id, violation.reason)

        seen: set[str] = set()
        for slot in slots:
            card = slot.card
            if card is None:
                continue
            if card.name == self.commander.name:
                slot.reason = f"{card.name} is the commander."
            elif card.id in reasons:
                slot.reason = reasons[card.id]
            elif card.name in seen and not card.is_basic_land:
                slot.reason = duplicate_reasons.get(
                    card.name, f"Multiple copies of {card.name} found."
                )
            seen.add(card.name)

        self._claimed = {
            slot.card.name for slot in slots if slot.card is not None and slot.reason is None
        }
        self._claimed.add(self.commander.name)

    async def _fix_violations(self, slots: list[_Slot]) -> None:
        flagged = [slot for slot in slots if slot.reason is not None]
        self._emit(AssemblyStage.FIXING_VIOLATIONS, f"{len(flagged)} slots")
        if not flagged:
            return

        await self._gather_all([self._fix_slot(slot) for slot in flagged])

        fallback_slots = [slot for slot in flagged if slot.fallback]
        if fallback_slots:
            basics = await self._basic_slots(len(fallback_slots))
            for slot, basic in zip(fallback_slots, basics):
                slot.card = basic.card

    async def _fix_slot(self, slot: _Slot) -> None:
        rejected = slot.entry.name
        reason = slot.reason or f"{rejected} was rejected."

        for attempt in range(1, self.max_attempts + 1):
            try:
                proposal = await self._external(
                    self.generator.propose_replacement, self.commander, reason, self.style
                )
            except GeneratorError as e:
                logger.info(
                    "Replacement attempt %d for %s failed: %s", attempt, rejected, e.message
                )
                continue

            card = await self._resolve(proposal.name)
            if card is None:
                reason = f"{proposal.name} could not be resolved."
                continue
            admission = can_admit_card(card, self.commander)
            if not admission.valid:
                reason = admission.message
                continue
            if not card.is_basic_land and card.name in self._claimed:
                reason = f"{card.name} is already in the deck."
                continue

            self._claimed.add(card.name)
            slot.card = card
            slot.reason = None
            self.replacements[rejected] = card.name
            return

        logger.warning(
            "No legal replacement for %s after %d attempts, using a basic land",
            rejected,
            self.max_attempts,
        )
        slot.card = None
        slot.fallback = True
        self.fallbacks.append(rejected)

    async def _revalidate_final(self, slots: list[_Slot]) -> list[Card]:
        """One deterministic repair pass, then top up to exactly 99."""
        self._emit(AssemblyStage.REVALIDATING_FINAL)

        kept: list[Card] = []
        names: set[str] = {self.commander.name}
        dropped = 0
        for slot in slots:
            card = slot.card
            if card is None:
                dropped += 1
                continue
            if not card.is_basic_land and card.name in names:
                dropped += 1
                continue
            if not can_admit_card(card, self.commander).valid:
                dropped += 1
                continue
            names.add(card.name)
            kept.append(card)

        kept = kept[:MAIN_DECK_SIZE]
        if dropped:
            logger.warning("Final pass dropped %d cards for %s", dropped, self.commander.name)
        if len(kept) < MAIN_DECK_SIZE:
            padding = await self._basic_slots(MAIN_DECK_SIZE - len(kept))
            kept.extend(slot.card for slot in padding if slot.card)
        return kept

    async def _hydrate(self, cards: list[Card]) -> list[Card]:
        collapsed = _collapse(cards)
        missing = [card for card in collapsed if _needs_hydration(card)]
        self._emit(AssemblyStage.HYDRATING_CARD_DATA, f"{len(missing)} cards")
        if not missing:
            return collapsed

        fetched = await self._gather_all([self._hydrate_one(card) for card in missing])
        by_id = {card.id: card for card in fetched}
        return [
            by_id[card.id].with_quantity(card.quantity) if card.id in by_id else card
            for card in collapsed
        ]

    async def _hydrate_one(self, card: Card) -> Card:
        """Full card data by id; a card the source no longer knows is kept as is."""
        try:
            return await self._external(self.card_source.lookup_by_id, card.id)
        except CardNotFoundError:
            logger.warning("Could not hydrate %s (%s)", card.name, card.id)
            return card
