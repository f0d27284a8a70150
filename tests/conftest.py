"""Pytest configuration and shared fixtures for trivia service tests."""

import json
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest

from trivia_service.events import GenerationEventLogger


class RecordingEventLogger(GenerationEventLogger):
    """Event logger that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def _record(self, event: str, provider: str, data: Dict[str, Any]) -> None:
        self.events.append((event, provider, data))

    def request(self, provider: str, **data: Any) -> None:
        self._record("request", provider, data)

    def success(self, provider: str, **data: Any) -> None:
        self._record("success", provider, data)

    def fallback(self, provider: str, **data: Any) -> None:
        self._record("fallback", provider, data)

    def error(self, provider: str, message: str, **data: Any) -> None:
        self._record("error", provider, {"message": message, **data})

    def config_missing(self, provider: str, **data: Any) -> None:
        self._record("config_missing", provider, data)

    def duplicate(self, provider: str, **data: Any) -> None:
        self._record("duplicate", provider, data)

    def stats(self, provider: str, **data: Any) -> None:
        self._record("stats", provider, data)

    def of_type(self, event: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(provider, data) for name, provider, data in self.events if name == event]


@pytest.fixture
def event_recorder() -> RecordingEventLogger:
    """Fixture providing an event logger that records events."""
    return RecordingEventLogger()


@pytest.fixture
def mock_api_key() -> str:
    """Fixture providing a mock API key for testing."""
    return "sk-test-mock-api-key-12345"


@pytest.fixture
def sample_prompt() -> str:
    """Fixture providing a sample prompt for testing."""
    return "Generate a trivia question about capitals."


@pytest.fixture
def capitals_payload() -> Dict[str, Any]:
    """Fixture providing a well-formed model reply."""
    return {
        "question": "What is the capital of France?",
        "answers": ["Paris", "Lyon", "Marseille"],
        "correctAnswerIndex": 0,
        "explanation": "Paris has been the capital of France since 987.",
    }


def chat_completion(content: str) -> Dict[str, Any]:
    """Wrap text in an OpenAI-compatible chat completion envelope."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


@pytest.fixture
def capitals_completion(capitals_payload) -> Dict[str, Any]:
    """Fixture providing the capitals reply inside a chat completion envelope."""
    return chat_completion(json.dumps(capitals_payload))


class ScriptedTransport:
    """Serves queued responses to an httpx client and records requests.

    Each queued item is either an ``httpx.Response`` or an exception to
    raise. The last item is repeated once the queue runs dry.
    """

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Fixture returning a factory for scripted HTTP transports."""
    return ScriptedTransport


@pytest.fixture
def make_chat_completion() -> Callable[[str], Dict[str, Any]]:
    """Fixture returning the chat completion envelope builder."""
    return chat_completion
