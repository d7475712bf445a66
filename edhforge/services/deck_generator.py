"""
Deck generator collaborator.

Asks an LLM for a 99-card skeleton around a commander, and for single
replacement cards when a skeleton entry breaks a deck rule. The generator
only ever returns names and categories; legality is decided by the validator.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import anthropic
from anthropic.types import TextBlock

from edhforge.config import MAIN_DECK_SIZE, settings
from edhforge.models.card import Card, sort_colors
from edhforge.models.failure import GeneratorError
from edhforge.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a Magic: The Gathering deck building expert specializing in optimized "
    "Commander decks. You know every card, its synergies and competitive deck "
    "construction principles. Answer with JSON only."
)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class NamedEntry:
    """A generator proposal: a card name, not yet resolved or validated."""

    name: str
    category: str = "Strategy"
    quantity: int = 1
    reason: str | None = None


class DeckGenerator(Protocol):
    """The generator calls the assembly pipeline depends on."""

    async def generate_skeleton(
        self, commander: Card, style: str, constraints: dict[str, Any] | None = None
    ) -> list[NamedEntry]: ...

    async def propose_replacement(
        self, commander: Card, violation_reason: str, style: str
    ) -> NamedEntry: ...


def _entry_from_mapping(item: dict[str, Any]) -> NamedEntry | None:
    name = str(item.get("name") or "").strip()
    if not name:
        return None
    quantity = item.get("quantity", 1)
    return NamedEntry(
        name=name,
        category=str(item.get("category") or "Strategy"),
        quantity=quantity if isinstance(quantity, int) and quantity > 0 else 1,
        reason=item.get("reason"),
    )


def parse_named_entries(content: str) -> list[NamedEntry]:
    """
    Extract the JSON card array from a generator response.

    Entries without a name are skipped.

    Raises:
        GeneratorError: If no parseable JSON array is present
    """
    match = _JSON_ARRAY.search(content)
    if not match:
        raise GeneratorError("Could not parse card list from generator response.")
    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise GeneratorError(
            "Failed to parse card data from generator response.", detail=str(e)
        ) from e

    entries = [e for e in (_entry_from_mapping(i) for i in items if isinstance(i, dict)) if e]
    if not entries:
        raise GeneratorError("Generator returned an empty card list.")
    return entries


def parse_named_entry(content: str) -> NamedEntry:
    """
    Extract a single card object from a generator response.

    Raises:
        GeneratorError: If no card object with a name is present
    """
    match = _JSON_OBJECT.search(content)
    if not match:
        raise GeneratorError("Could not parse replacement card from generator response.")
    try:
        item = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise GeneratorError("Failed to parse replacement card.", detail=str(e)) from e

    entry = _entry_from_mapping(item) if isinstance(item, dict) else None
    if entry is None:
        raise GeneratorError("Replacement card has no name.")
    return entry


def build_skeleton_prompt(commander: Card, style: str, constraints: dict[str, Any] | None) -> str:
    """Prompt asking for exactly 99 cards around the commander."""
    colors = "".join(sort_colors(commander.color_identity)) or "colorless"
    extra = ""
    if constraints:
        extra = "\nAdditional constraints:\n" + "\n".join(
            f"- {key}: {value}" for key, value in sorted(constraints.items())
        )
    return f"""Create a COMMANDER deck for {commander.name} with EXACTLY {MAIN_DECK_SIZE} cards
(NOT including the commander).

Commander: {commander.name} ({commander.type_line or ""})
Commander text: {commander.oracle_text or ""}
Color identity: {colors}
Deck style: {style}
{extra}
RULES:
1. The deck MUST contain EXACTLY {MAIN_DECK_SIZE} cards. Do not include the commander.
2. Every card must be within the commander's color identity ({colors}).
3. Singleton: one copy of each card except basic lands.
4. Every card must be legal in the Commander format.

Card distribution:
- 33-38 lands
- 10-12 ramp
- 10-12 card draw
- 8-10 targeted removal
- 3-5 board wipes
- 5-8 protection
- 25-30 cards supporting the commander's strategy

Respond with a JSON array of objects:
{{"name": "Exact Card Name", "quantity": 1, "category": "<category>"}}
where <category> is one of: Land, Ramp, Card Draw, Removal, Board Wipe, Protection,
Strategy, Utility, Finisher.
Basic lands may have quantity > 1; all other cards must have quantity 1."""


def build_replacement_prompt(commander: Card, violation_reason: str, style: str) -> str:
    """Prompt asking for one legal card to replace a rejected one."""
    colors = "".join(sort_colors(commander.color_identity)) or "colorless"
    return f"""A card in a {style} Commander deck led by {commander.name} was rejected:
{violation_reason}

Suggest ONE replacement card that:
- is within the color identity {colors}
- is legal in the Commander format
- supports {commander.name}'s strategy

Respond with a single JSON object:
{{"name": "Exact Card Name", "category": "Strategy", "reason": "why it fits"}}"""


def _is_retryable_anthropic_error(exc: BaseException) -> bool:
    if isinstance(exc, anthropic.APIConnectionError | anthropic.RateLimitError):
        return True
    return isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500


class AnthropicDeckGenerator:
    """DeckGenerator backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        retry_policy: RetryPolicy | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        api_key = api_key if api_key is not None else settings.anthropic_api_key
        if client is None and not api_key:
            raise GeneratorError("Anthropic API key not configured.")
        self.model = model or settings.generator_model
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        async def call() -> Any:
            return await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )

        try:
            response = await self.retry_policy.run(call, should_retry=_is_retryable_anthropic_error)
        except anthropic.APIError as e:
            raise GeneratorError("Deck generator request failed.", detail=str(e)) from e

        if response.usage:
            logger.info(
                "generator_token_usage",
                extra={
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                },
            )
        return "".join(block.text for block in response.content if isinstance(block, TextBlock))

    async def generate_skeleton(
        self, commander: Card, style: str, constraints: dict[str, Any] | None = None
    ) -> list[NamedEntry]:
        content = await self._complete(
            build_skeleton_prompt(commander, style, constraints),
            settings.generator_max_tokens,
        )
        entries = parse_named_entries(content)
        logger.info(
            "Generator suggested %d entries (%d cards) for %s",
            len(entries),
            sum(e.quantity for e in entries),
            commander.name,
        )
        return entries

    async def propose_replacement(
        self, commander: Card, violation_reason: str, style: str
    ) -> NamedEntry:
        content = await self._complete(
            build_replacement_prompt(commander, violation_reason, style),
            300,
        )
        return parse_named_entry(content)
