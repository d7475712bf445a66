"""Tests for the deck generator collaborator."""

from types import SimpleNamespace
from typing import Any

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock

from edhforge.config import settings
from edhforge.models.failure import GeneratorError
from edhforge.services.deck_generator import (
    AnthropicDeckGenerator,
    NamedEntry,
    build_replacement_prompt,
    build_skeleton_prompt,
    parse_named_entries,
    parse_named_entry,
)
from edhforge.services.retry import RetryPolicy


class FakeMessages:
    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            content=[TextBlock(type="text", text=reply)],
            usage=SimpleNamespace(input_tokens=10, output_tokens=20),
        )


def fake_client(*replies: Any) -> Any:
    return SimpleNamespace(messages=FakeMessages(list(replies)))


def _connection_error() -> anthropic.APIConnectionError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return anthropic.APIConnectionError(request=request)


class TestParseNamedEntries:
    def test_extracts_array_from_prose(self) -> None:
        content = (
            "Here is your deck:\n"
            '[{"name": "Sol Ring", "category": "Ramp"}, '
            '{"name": "Forest", "quantity": 30, "category": "Land"}]\n'
            "Enjoy!"
        )

        entries = parse_named_entries(content)

        assert entries == [
            NamedEntry(name="Sol Ring", category="Ramp"),
            NamedEntry(name="Forest", category="Land", quantity=30),
        ]

    def test_nameless_entries_skipped(self) -> None:
        entries = parse_named_entries(
            '[{"category": "Ramp"}, {"name": "  "}, {"name": "Cultivate"}]'
        )
        assert [e.name for e in entries] == ["Cultivate"]

    def test_bad_quantity_defaults_to_one(self) -> None:
        entries = parse_named_entries(
            '[{"name": "Forest", "quantity": -3}, {"name": "Swamp", "quantity": "x"}]'
        )
        assert [e.quantity for e in entries] == [1, 1]

    def test_missing_category_is_strategy(self) -> None:
        assert parse_named_entries('[{"name": "Sol Ring"}]')[0].category == "Strategy"

    def test_no_array(self) -> None:
        with pytest.raises(GeneratorError, match="Could not parse card list"):
            parse_named_entries("I cannot help with that.")

    def test_malformed_json(self) -> None:
        with pytest.raises(GeneratorError) as exc_info:
            parse_named_entries('[{"name": "Sol Ring",]')
        assert exc_info.value.detail

    def test_empty_list(self) -> None:
        with pytest.raises(GeneratorError, match="empty card list"):
            parse_named_entries("[]")


class TestParseNamedEntry:
    def test_extracts_object(self) -> None:
        entry = parse_named_entry(
            'Try this: {"name": "Beast Within", "category": "Removal", "reason": "flexible"}'
        )

        assert entry == NamedEntry(name="Beast Within", category="Removal", reason="flexible")

    def test_no_object(self) -> None:
        with pytest.raises(GeneratorError):
            parse_named_entry("no idea")

    def test_nameless_object(self) -> None:
        with pytest.raises(GeneratorError, match="no name"):
            parse_named_entry('{"category": "Ramp"}')


class TestPrompts:
    def test_skeleton_prompt_mentions_identity_and_constraints(self, golgari_commander) -> None:
        prompt = build_skeleton_prompt(golgari_commander, "casual", {"budget": "low"})

        assert "EXACTLY 99 cards" in prompt
        assert "Color identity: BG" in prompt
        assert "- budget: low" in prompt

    def test_colorless_prompt(self, colorless_commander) -> None:
        prompt = build_replacement_prompt(colorless_commander, "X is banned.", "competitive")

        assert "color identity colorless" in prompt
        assert "X is banned." in prompt


class TestAnthropicDeckGenerator:
    def test_requires_key_without_client(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "anthropic_api_key", "")

        with pytest.raises(GeneratorError, match="API key"):
            AnthropicDeckGenerator()

    async def test_generate_skeleton(self, golgari_commander) -> None:
        client = fake_client('[{"name": "Sol Ring", "category": "Ramp"}]')
        generator = AnthropicDeckGenerator(client=client, model="test-model")

        entries = await generator.generate_skeleton(golgari_commander, "competitive")

        assert entries == [NamedEntry(name="Sol Ring", category="Ramp")]
        call = client.messages.calls[0]
        assert call["model"] == "test-model"
        assert "Meren of Clan Nel Toth" in call["messages"][0]["content"]

    async def test_propose_replacement(self, golgari_commander) -> None:
        client = fake_client('{"name": "Eternal Witness"}')
        generator = AnthropicDeckGenerator(client=client)

        entry = await generator.propose_replacement(
            golgari_commander, "Bolt is off-color.", "casual"
        )

        assert entry.name == "Eternal Witness"
        assert client.messages.calls[0]["max_tokens"] == 300

    async def test_connection_errors_retried(self, golgari_commander) -> None:
        client = fake_client(_connection_error(), '{"name": "Eternal Witness"}')
        generator = AnthropicDeckGenerator(
            client=client, retry_policy=RetryPolicy(max_attempts=2, base_delay=0.0)
        )

        entry = await generator.propose_replacement(golgari_commander, "reason", "casual")

        assert entry.name == "Eternal Witness"
        assert len(client.messages.calls) == 2

    async def test_api_errors_become_generator_errors(self, golgari_commander) -> None:
        client = fake_client(_connection_error())
        generator = AnthropicDeckGenerator(
            client=client, retry_policy=RetryPolicy(max_attempts=1, base_delay=0.0)
        )

        with pytest.raises(GeneratorError, match="request failed"):
            await generator.generate_skeleton(golgari_commander, "competitive")
