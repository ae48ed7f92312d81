"""
Core pytest configuration and fixtures for Palaver testing.

This module provides shared test fixtures and small controllable pillar
implementations (a scripted generator, a fake clock, a write-recording
key-value store) used by the unit and integration suites.
"""

import asyncio
from typing import List, Optional, Sequence, Tuple

import pytest
from palaver.kv import InMemory
from palaver.llm import LLM
from palaver.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage
from palaver.notifier import Notifier
from palaver.store import SessionStore

# ===== CONTROLLABLE PILLARS =====


class FakeClock:
    """Epoch-millisecond clock that advances by ``step`` on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class RecordingKV(InMemory):
    """In-memory key-value store that records every write and removal."""

    def __init__(self):
        super().__init__()
        self.writes: List[Tuple[str, str]] = []
        self.removals: List[str] = []

    def set(self, key: str, value: str) -> None:
        self.writes.append((key, value))
        super().set(key, value)

    def remove(self, key: str) -> None:
        self.removals.append(key)
        super().remove(key)


class BrokenKV(InMemory):
    """Key-value store whose every operation fails like a broken disk."""

    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk unavailable")

    def remove(self, key):
        raise OSError("disk unavailable")

    def keys(self):
        raise OSError("disk unavailable")


class ScriptedLLM(LLM):
    """Generator whose replies can be held back, scripted, or made to fail."""

    def __init__(self, hold: bool = False, error: Optional[Exception] = None):
        self.calls: List[Tuple[str, List[ChatMessage]]] = []
        self.error = error
        self.gate = asyncio.Event()
        if not hold:
            self.gate.set()
        self.model = "scripted"

    def release(self) -> None:
        self.gate.set()

    def generate_response(self, messages, model=None, **kwargs):
        return {"content": f"Reply to: {messages[-1]['content']}"}

    def extract_content(self, response) -> str:
        return response["content"]

    async def generate(self, prompt: str, history: Sequence[ChatMessage] = ()):
        self.calls.append((prompt, list(history)))
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.extract_content(
            self.generate_response([{"role": USER_ROLE, "content": prompt}])
        )


# ===== FIXTURES =====


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> RecordingKV:
    return RecordingKV()


@pytest.fixture
def store(kv, clock) -> SessionStore:
    return SessionStore(kv, clock=clock)


@pytest.fixture
def offline_store(clock) -> SessionStore:
    """A store for an environment without durable storage."""
    return SessionStore(None, clock=clock)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def held_llm() -> ScriptedLLM:
    """A generator that does not answer until ``release()`` is called."""
    return ScriptedLLM(hold=True)


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """A two-turn transcript."""
    return [
        ChatMessage(role=USER_ROLE, content="Hello, how are you?", timestamp=1),
        ChatMessage(
            role=ASSISTANT_ROLE,
            content="I'm doing well, thank you! How can I help you today?",
            timestamp=2,
        ),
        ChatMessage(role=USER_ROLE, content="Can you explain quantum computing?", timestamp=3),
        ChatMessage(
            role=ASSISTANT_ROLE,
            content="Quantum computing uses quantum mechanics principles...",
            timestamp=4,
        ),
    ]


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
