"""Tests for assistant module."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from conftest import BASE_TIME, at

from library_session_tracker.assistant import (
    LibraryAssistant,
    build_data_context,
    build_system_prompt,
    build_user_message,
)
from library_session_tracker.config import Config
from library_session_tracker.errors import AssistantNotConfiguredError, ExternalServiceError
from library_session_tracker.models import ActiveSession, CompletedSession


def _response(*texts: str) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text) for text in texts])


@pytest.fixture
def assistant() -> LibraryAssistant:
    """Assistant with a fake key and a mocked client."""
    instance = LibraryAssistant(api_key="test-key", model="test-model", max_tokens=100)
    instance._client = MagicMock()
    return instance


class TestPromptBuilding:
    """Tests for the prompt helpers."""

    def test_system_prompt_mentions_collections_and_time(self) -> None:
        """Verifies the instruction names both collections and the current time."""
        prompt = build_system_prompt(BASE_TIME)
        assert "activeSessions" in prompt
        assert "completedSessions" in prompt
        assert "Monday, January 06, 2025 09:00:00" in prompt

    def test_data_context_is_json(self) -> None:
        """Verifies both collections are serialized under fixed keys."""
        active = [ActiveSession.create("Dave", 400, at(9), session_id="d")]
        completed = [CompletedSession.create("Bob", 200, at(8), at(9), session_id="b")]

        data = json.loads(build_data_context(active, completed))

        assert data["activeSessions"][0]["student_name"] == "Dave"
        assert data["completedSessions"][0]["duration"] == {"hours": 1, "minutes": 0, "seconds": 0}

    def test_user_message_layout(self) -> None:
        """Verifies data comes before the question."""
        message = build_user_message("Who is here?", "{}")
        assert message.index("DATA:\n{}") < message.index("QUESTION:\nWho is here?")


class TestConfiguration:
    """Tests for LibraryAssistant construction."""

    def test_reads_key_from_config(self) -> None:
        """Verifies the default key comes from Config."""
        Config.set_test_overrides(api_key="from-config")
        assert LibraryAssistant().configured

    def test_empty_key_not_configured(self) -> None:
        """Verifies an explicit empty key disables the assistant."""
        Config.set_test_overrides(api_key="from-config")
        assert not LibraryAssistant(api_key="").configured

    def test_ask_without_key_raises(self) -> None:
        """Verifies asking an unconfigured assistant raises before any API call."""
        with pytest.raises(AssistantNotConfiguredError):
            LibraryAssistant(api_key="").ask("hi", [], [], BASE_TIME)


class TestAsk:
    """Tests for LibraryAssistant.ask."""

    def test_sends_prompt_and_returns_text(self, assistant: LibraryAssistant) -> None:
        """Verifies the request shape and the joined, trimmed answer.

        Business context:
        The model sees the whole dataset every time; the librarian sees
        only the answer text.

        Arrangement:
        Mocked client returning two text blocks.

        Action:
        Ask a question with one active session.

        Assertion Strategy:
        Inspect the create() call kwargs and the returned string.
        """
        assistant._client.messages.create.return_value = _response("There is ", "1 student. ")
        active = [ActiveSession.create("Dave", 400, at(9))]

        answer = assistant.ask("How many?", active, [], BASE_TIME)

        assert answer == "There is 1 student."
        kwargs = assistant._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 100
        assert "current date and time" in kwargs["system"]
        content = kwargs["messages"][0]["content"]
        assert kwargs["messages"][0]["role"] == "user"
        assert "Dave" in content
        assert content.endswith("QUESTION:\nHow many?")

    def test_ignores_non_text_blocks(self, assistant: LibraryAssistant) -> None:
        """Verifies only text blocks make up the answer."""
        assistant._client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="tool_use"), SimpleNamespace(type="text", text="ok")]
        )
        assert assistant.ask("q", [], [], BASE_TIME) == "ok"

    def test_empty_response_raises(self, assistant: LibraryAssistant) -> None:
        """Verifies a blank answer is treated as a failure."""
        assistant._client.messages.create.return_value = _response("   ")
        with pytest.raises(ExternalServiceError, match="Empty response"):
            assistant.ask("q", [], [], BASE_TIME)

    def test_api_failure_wrapped(self, assistant: LibraryAssistant) -> None:
        """Verifies transport errors become ExternalServiceError."""
        assistant._client.messages.create.side_effect = ConnectionError("down")
        with pytest.raises(ExternalServiceError, match="API call failed: down"):
            assistant.ask("q", [], [], BASE_TIME)
