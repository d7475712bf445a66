"""
Plain-text deck list import.

Reads the deck list layouts players paste from other tools and turns them
into a Deck:

- Moxfield: "Commander: <name>" header, optional set codes and *F* flags
- EDHREC / TappedOut: the commander line is marked "*CMDR*"
- Archidekt: "Commander (1)" style section headers and [Category] tags
- Sectioned (MTGGoldfish, Arena): bare "Commander" / "Deck" / "Sideboard" headers
- Generic: "1 Sol Ring" or "1x Sol Ring" lines, "//" or "#" comments

Parsing is syntax only and produces untrusted names. Names are resolved
through the card source (one batched request, then a fuzzy lookup for each
miss) before anything becomes a Card, and the assembled deck goes through
structural repair.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from edhforge.config import COMMANDER_DECK_SIZE, MAX_CARD_QUANTITY
from edhforge.models.card import Card
from edhforge.models.deck import DEFAULT_DECK_NAME, Deck
from edhforge.models.failure import CardNotFoundError
from edhforge.services.deck_counts import main_deck_count
from edhforge.services.deck_repair import repair_deck
from edhforge.services.scryfall_client import CardCollectionSource

logger = logging.getLogger(__name__)

# Below this many mainboard cards an import is probably a partial list
TYPICAL_MINIMUM_CARDS = 50


class DeckListFormat(str, Enum):
    MOXFIELD = "moxfield"
    EDHREC = "edhrec"
    ARCHIDEKT = "archidekt"
    SECTIONED = "sectioned"
    GENERIC = "generic"


class _Section(str, Enum):
    COMMANDER = "commander"
    MAIN = "main"
    EXCLUDED = "excluded"


# =============================================================================
# PARSED STRUCTURES (UNTRUSTED)
# =============================================================================


@dataclass
class ParsedEntry:
    """A card line from the deck list; the name is not yet resolved."""

    name: str
    quantity: int
    line_number: int
    is_commander: bool = False


@dataclass
class ParsedDeckList:
    format: DeckListFormat
    entries: list[ParsedEntry] = field(default_factory=list)
    commander_name: str | None = None
    deck_name: str | None = None
    skipped_lines: list[tuple[int, str]] = field(default_factory=list)


# =============================================================================
# PARSER
# =============================================================================

_CARD_LINE = re.compile(r"^(\d+)x?\s+(.+)$", re.IGNORECASE)
_COMMANDER_LINE = re.compile(r"^Commander:\s*(.+)$", re.IGNORECASE)
_SECTION_HEADER = re.compile(
    r"^(commander|companion|deck|main|mainboard|sideboard|maybeboard|maybe)"
    r"\s*(\(\d+\))?\s*:?$",
    re.IGNORECASE,
)
_COUNTED_HEADER = re.compile(r"^\w+\s*\(\d+\)$")
_SET_CODE = re.compile(r"\(\w{2,5}\)\s+\d+")
_COMMENT = re.compile(r"^(//|#)+\s*")

_COMMANDER_MARKERS = ("*cmdr*", "(commander)", "[commander", "{commander}")

# Applied in order to the text after the quantity
_NAME_CLEANUPS = (
    re.compile(r"\s*\[[^\]]*\]"),  # [Ramp], [Commander{top}]
    re.compile(r"\s*\^[^^]*\^"),  # ^Have,#37d67a^
    re.compile(r"\s*\*[^*]*\*"),  # *CMDR*, *F*, *E*
    re.compile(r"\s*\([^)]*\)\s*[A-Za-z0-9\-]*\d+[a-z]*$"),  # (C21) 263, (plst) 2XM-309
    re.compile(r"\s*\([^)]*\)"),  # (foil), (commander), (C21)
    re.compile(r"\s*\{[^}]*\}$"),  # trailing mana cost
)


def has_commander_marker(line: str) -> bool:
    lower = line.lower()
    return any(marker in lower for marker in _COMMANDER_MARKERS)


def clean_card_name(raw: str) -> str:
    """Strip set codes, tags, flags and back faces from a card name."""
    name = raw
    for pattern in _NAME_CLEANUPS:
        name = pattern.sub("", name)
    # Double-faced and split cards resolve by their front face
    name = name.split("//")[0]
    return " ".join(name.split())


def parse_card_line(line: str, line_number: int = 0) -> ParsedEntry | None:
    """Parse "4 Name" or "4x Name"; None when the line is not a card line."""
    match = _CARD_LINE.match(line)
    if match is None:
        return None
    name = clean_card_name(match.group(2))
    if not name:
        return None
    return ParsedEntry(
        name=name,
        quantity=int(match.group(1)),
        line_number=line_number,
        is_commander=has_commander_marker(line),
    )


def detect_deck_format(text: str) -> DeckListFormat:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    lowered = text.lower()

    if any(_COMMANDER_LINE.match(line) for line in lines):
        return DeckListFormat.MOXFIELD
    if "*cmdr*" in lowered:
        return DeckListFormat.EDHREC
    if "[commander" in lowered or any(
        _SECTION_HEADER.match(line) and _COUNTED_HEADER.match(line) for line in lines
    ):
        return DeckListFormat.ARCHIDEKT
    if any(_SECTION_HEADER.match(line) for line in lines):
        return DeckListFormat.SECTIONED
    if any(_SET_CODE.search(line) for line in lines):
        return DeckListFormat.MOXFIELD
    return DeckListFormat.GENERIC


def _section_for(header: str) -> _Section:
    word = header.lower().split()[0].rstrip(":(")
    if word == "commander":
        return _Section.COMMANDER
    if word in ("deck", "main", "mainboard"):
        return _Section.MAIN
    return _Section.EXCLUDED


def parse_deck_list(text: str) -> ParsedDeckList:
    """
    Extract entries, the commander name and the deck name from a deck list.

    Sideboard, maybeboard and companion sections are left out. Lines that
    are neither cards, headers nor comments are kept in skipped_lines.
    """
    parsed = ParsedDeckList(format=detect_deck_format(text))
    section = _Section.MAIN
    seen_comment = False

    for line_number, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line:
            continue

        comment = _COMMENT.match(line)
        if comment:
            body = line[comment.end() :]
            commander_line = _COMMANDER_LINE.match(body)
            if commander_line:
                parsed.commander_name = parsed.commander_name or clean_card_name(
                    commander_line.group(1)
                )
            elif "commander" in body.lower():
                section = _Section.COMMANDER
            elif _SECTION_HEADER.match(body):
                section = _section_for(body)
            elif not seen_comment and not body.lower().startswith("description:"):
                parsed.deck_name = body or None
            else:
                # Category comments ("// Ramp") open mainboard groups
                section = _Section.MAIN
            seen_comment = True
            continue

        commander_line = _COMMANDER_LINE.match(line)
        if commander_line:
            parsed.commander_name = parsed.commander_name or clean_card_name(
                commander_line.group(1)
            )
            continue
        if _SECTION_HEADER.match(line):
            section = _section_for(line)
            continue

        entry = parse_card_line(line, line_number)
        if entry is None:
            parsed.skipped_lines.append((line_number, line))
            continue
        if section is _Section.EXCLUDED:
            continue
        if section is _Section.COMMANDER:
            entry.is_commander = True
        if entry.is_commander and parsed.commander_name is None:
            parsed.commander_name = entry.name
            continue
        if entry.is_commander and entry.name.lower() == parsed.commander_name.lower():
            continue
        if entry.quantity > 0:
            parsed.entries.append(entry)

    return parsed


# =============================================================================
# COMMANDER DETECTION
# =============================================================================


def is_commander_eligible(card: Card) -> bool:
    """Legendary creatures, legendary vehicles and planeswalkers that say so."""
    type_line = (card.type_line or "").lower()
    oracle_text = (card.oracle_text or "").lower()
    if "legendary" in type_line and "creature" in type_line:
        return True
    if "legendary" in type_line and "artifact" in type_line and "vehicle" in type_line:
        return True
    return "planeswalker" in type_line and "can be your commander" in oracle_text


def detect_commander(cards: list[Card]) -> Card | None:
    """
    Guess the commander of a list that does not name one.

    The first card wins if it is eligible (most tools list the commander
    first). Otherwise a lone legendary creature, then a lone legendary
    artifact creature, then a lone multicolored one, then the first one.
    """
    if not cards:
        return None
    if is_commander_eligible(cards[0]):
        return cards[0]

    legendary = [card for card in cards if is_commander_eligible(card)]
    if len(legendary) == 1:
        return legendary[0]
    for narrower in (
        [card for card in legendary if "artifact" in (card.type_line or "").lower()],
        [card for card in legendary if len(card.color_identity) >= 2],
    ):
        if len(narrower) == 1:
            return narrower[0]
    return legendary[0] if legendary else None


# =============================================================================
# IMPORT
# =============================================================================


@dataclass
class ImportResult:
    """
    Outcome of importing a deck list.

    Attributes:
        deck: The repaired deck (commander may be None)
        format: Detected deck list layout
        unresolved_names: Names the card source could not match
        corrections: Requested name -> matched name, for fuzzy matches
        commander_detected: True when the commander was guessed, not named
        requested: Distinct names asked for, commander included
    """

    deck: Deck
    format: DeckListFormat
    unresolved_names: list[str] = field(default_factory=list)
    corrections: dict[str, str] = field(default_factory=dict)
    commander_detected: bool = False
    requested: int = 0

    @property
    def resolved(self) -> int:
        return self.requested - len(self.unresolved_names)


@dataclass
class ImportCheck:
    valid: bool
    errors: list[str]
    warnings: list[str]


async def _resolve_names(
    names: list[str], card_source: CardCollectionSource
) -> tuple[dict[str, Card], dict[str, str], list[str]]:
    """Batch lookup, then one fuzzy lookup per miss."""
    if not names:
        return {}, {}, []
    found, missing = await card_source.lookup_collection(names)

    async def fuzzy(name: str) -> Card | None:
        try:
            return await card_source.lookup_by_name(name, fuzzy=True)
        except CardNotFoundError:
            return None

    corrections: dict[str, str] = {}
    unresolved: list[str] = []
    for name, card in zip(missing, await asyncio.gather(*(fuzzy(n) for n in missing))):
        if card is None:
            unresolved.append(name)
            continue
        found[name] = card
        if card.name.lower() != name.lower():
            corrections[name] = card.name
    return found, corrections, unresolved


async def import_deck(
    text: str,
    card_source: CardCollectionSource,
    name: str | None = None,
) -> ImportResult:
    """
    Parse a deck list and resolve it into a Deck.

    Repeated entries for the same card (basic lands from different printings)
    are merged. The commander is taken from the list when it names one and
    detected from the resolved cards otherwise; it never stays in the
    mainboard.

    Raises:
        httpx.HTTPError: If the card source is unavailable after retries
    """
    parsed = parse_deck_list(text)
    names = list(dict.fromkeys(entry.name for entry in parsed.entries))
    if parsed.commander_name and parsed.commander_name not in names:
        names.append(parsed.commander_name)

    found, corrections, unresolved = await _resolve_names(names, card_source)

    merged: dict[str, Card] = {}
    for entry in parsed.entries:
        card = found.get(entry.name)
        if card is None:
            continue
        existing = merged.get(card.id)
        quantity = entry.quantity + (existing.quantity if existing else 0)
        merged[card.id] = card.with_quantity(min(quantity, MAX_CARD_QUANTITY))
    cards = list(merged.values())

    commander = found.get(parsed.commander_name) if parsed.commander_name else None
    detected = False
    if commander is None and parsed.commander_name is None:
        commander = detect_commander(cards)
        detected = commander is not None
    if commander is not None:
        commander = commander.with_quantity(1)
        cards = [card for card in cards if card.id != commander.id]

    deck = repair_deck(
        Deck(
            commander=commander,
            cards=tuple(cards),
            name=name or parsed.deck_name or DEFAULT_DECK_NAME,
        )
    )
    logger.info(
        "Imported %s deck list: %d of %d names resolved",
        parsed.format.value,
        len(names) - len(unresolved),
        len(names),
    )
    return ImportResult(
        deck=deck,
        format=parsed.format,
        unresolved_names=unresolved,
        corrections=corrections,
        commander_detected=detected,
        requested=len(names),
    )


def validate_import_result(result: ImportResult) -> ImportCheck:
    """Errors block using the import; warnings are for the user to review."""
    errors: list[str] = []
    warnings: list[str] = []
    count = main_deck_count(result.deck.cards)

    if result.deck.commander is None:
        errors.append("No commander found in import")
    if not result.deck.cards:
        errors.append("No cards found in import")
    if result.unresolved_names:
        warnings.append(f"{len(result.unresolved_names)} cards could not be resolved")
    if result.corrections:
        warnings.append(f"{len(result.corrections)} card names were corrected")
    if result.commander_detected:
        warnings.append(f"Commander detected as {result.deck.commander.name}")
    if count < TYPICAL_MINIMUM_CARDS:
        warnings.append(
            f"Deck has fewer than {TYPICAL_MINIMUM_CARDS} cards (typical minimum for Commander)"
        )
    if count > COMMANDER_DECK_SIZE:
        warnings.append(
            f"Deck has more than {COMMANDER_DECK_SIZE} cards (typical maximum for Commander)"
        )

    return ImportCheck(valid=not errors, errors=errors, warnings=warnings)
