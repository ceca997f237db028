"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vivica.chat.controller import ConversationController
from vivica.llm.profiles import ChatConfig
from vivica.memory.engine import MemoryEngine
from vivica.storage.store import Store


@pytest.fixture
def store(tmp_path: Path) -> Store:
    """Create a Store backed by a temp database."""
    return Store(db_path=tmp_path / "test.db")


@pytest.fixture
def engine(store: Store) -> MemoryEngine:
    return MemoryEngine(store)


@pytest.fixture
def chat_config() -> ChatConfig:
    return ChatConfig(system_prompt="You are a test assistant.", default_model="openai/gpt-4o")


@pytest.fixture
def complete() -> AsyncMock:
    """Stand-in for the chat-completion call; replies "Hello!" by default."""
    return AsyncMock(return_value="Hello!")


@pytest.fixture
def controller(
    store: Store, engine: MemoryEngine, chat_config: ChatConfig, complete: AsyncMock
) -> ConversationController:
    return ConversationController(
        store,
        engine,
        chat_config,
        complete=complete,
        memory_limit=5,
        memory_token_budget=800,
    )
