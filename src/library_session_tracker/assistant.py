"""
Library assistant: question answering over the session data.

PURPOSE: Pass a librarian's question, plus a JSON snapshot of the current
sessions, to a hosted language model and return its answer.
AI CONTEXT: String in, string out. The model is an external collaborator;
every failure surfaces as ExternalServiceError for the service layer to
turn into a friendly message.

PROMPT LAYOUT:
    system:  fixed instruction describing both collections + current time
    user:    "Based on the following data, please answer my question.
              DATA: {json} QUESTION: {question}"

USAGE:
    assistant = LibraryAssistant()
    answer = assistant.ask("Who is here now?", active, completed, now)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from .config import Config
from .errors import AssistantNotConfiguredError, ExternalServiceError
from .models import ActiveSession, CompletedSession

__all__ = [
    "GREETING",
    "SUGGESTED_QUESTIONS",
    "LibraryAssistant",
    "build_data_context",
    "build_system_prompt",
    "build_user_message",
]

logger = logging.getLogger(__name__)

GREETING = "Hello! I'm the library AI assistant. How can I help you analyze the session data today?"

SUGGESTED_QUESTIONS = (
    "How many students are in the library right now?",
    "Who spent the most time in the library today?",
    "What is the average visit duration?",
    "List all Level 200 students who visited.",
)

SYSTEM_PROMPT_TEMPLATE = """You are a helpful and friendly AI assistant for the Library Time Tracker application. Your role is to answer questions based on the provided library session data. The data is given in a JSON object.

- `activeSessions`: A list of students currently signed into the library. Each object includes `student_name`, `level`, and `time_in`.
- `completedSessions`: A list of students who have already signed out. Each object includes `student_name`, `level`, `time_in`, `time_out`, and `duration` in hours, minutes, and seconds.

When answering, be concise and friendly. Format your answers clearly. If a question cannot be answered with the given data, say so politely. Do not make up information. Analyze the data to answer questions about student counts, session durations, who is currently present, who has visited, total times, average times, etc.

The current date and time is: {now}. Use this for any time-related queries."""


def build_system_prompt(now: datetime) -> str:
    """Fixed instruction preamble with the current time filled in."""
    return SYSTEM_PROMPT_TEMPLATE.format(now=now.strftime("%A, %B %d, %Y %H:%M:%S %Z").strip())


def build_data_context(
    active: Sequence[ActiveSession],
    completed: Sequence[CompletedSession],
) -> str:
    """Serialize both collections as the JSON object the prompt describes."""
    return json.dumps(
        {
            "activeSessions": [session.to_dict() for session in active],
            "completedSessions": [session.to_dict() for session in completed],
        }
    )


def build_user_message(question: str, data_context: str) -> str:
    """Wrap the data and the question in the fixed user-message layout."""
    return (
        "Based on the following data, please answer my question.\n\n"
        f"DATA:\n{data_context}\n\n"
        f"QUESTION:\n{question}"
    )


class LibraryAssistant:
    """
    Answers free-text questions about the library's sessions using Claude.

    The assistant can be constructed without an API key so the dashboard
    starts regardless; ask() reports the missing key instead.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        """
        Initialize the assistant.

        Args:
            api_key: Anthropic API key. Default: Config.get_api_key().
            model: Model name. Default: Config.get_model_name().
            max_tokens: Response token cap. Default: Config.ASSISTANT_MAX_TOKENS.
        """
        self._api_key = api_key if api_key is not None else Config.get_api_key()
        self.model = model or Config.get_model_name()
        self.max_tokens = max_tokens or Config.ASSISTANT_MAX_TOKENS
        self._client: Any = None

    @property
    def configured(self) -> bool:
        """True when an API key is available."""
        return bool(self._api_key)

    def _get_client(self) -> Any:
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            if not self._api_key:
                raise AssistantNotConfiguredError()
            import anthropic

            self._client = anthropic.Anthropic(api_key=self._api_key)
        return self._client

    def ask(
        self,
        question: str,
        active: Sequence[ActiveSession],
        completed: Sequence[CompletedSession],
        now: datetime,
    ) -> str:
        """
        Answer a question about the current session data.

        Business context: Lets librarians ask things like "who stayed the
        longest today?" without building a report. The full dataset is
        sent on every call; nothing is retained between questions.

        Args:
            question: The librarian's question, already trimmed.
            active: Active sessions snapshot.
            completed: Completed sessions snapshot.
            now: Current time, stated in the instruction preamble.

        Returns:
            The model's answer text.

        Raises:
            AssistantNotConfiguredError: If no API key is configured.
            ExternalServiceError: If the API call fails or returns no text.

        Example:
            >>> assistant.ask("How many students are here?", active, [], now)
            'There are currently 3 students in the library.'
        """
        client = self._get_client()
        message = build_user_message(question, build_data_context(active, completed))

        import anthropic

        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=build_system_prompt(now),
                messages=[{"role": "user", "content": message}],
            )
        except anthropic.AuthenticationError as e:
            logger.error(f"Assistant rejected the API key: {e}")
            raise AssistantNotConfiguredError() from e
        except Exception as e:
            logger.error(f"Assistant API call failed: {e}")
            raise ExternalServiceError(f"API call failed: {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise ExternalServiceError("Empty response from assistant")
        return text
