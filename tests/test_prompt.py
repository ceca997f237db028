"""Tests for system prompt assembly."""

from vivica.llm.prompt import (
    CHARS_PER_TOKEN,
    MEMORY_HEADER,
    MEMORY_TOKEN_BUDGET,
    _format_memories,
    build_system_prompt,
    select_within_budget,
)
from vivica.memory.models import MemoryEntry


def _entry(content: str, importance: int = 5) -> MemoryEntry:
    return MemoryEntry(content=content, importance=importance)


def test_budget_constant() -> None:
    assert MEMORY_TOKEN_BUDGET * CHARS_PER_TOKEN == 3200


def test_no_memories_returns_base_prompt() -> None:
    assert build_system_prompt("Base.", []) == "Base."


def test_memories_appended_in_order() -> None:
    prompt = build_system_prompt("Base.", [_entry("Likes tea"), _entry("Lives in Oslo")])
    assert prompt == f"Base.\n\n{MEMORY_HEADER}\n- Likes tea\n- Lives in Oslo"


def test_format_memories_empty() -> None:
    assert _format_memories([]) == ""


def test_select_within_budget_keeps_all_when_small() -> None:
    entries = [_entry("a" * 10), _entry("b" * 10)]
    assert select_within_budget(entries, token_budget=10) == entries


def test_select_stops_at_first_overflow() -> None:
    # Budget of 10 tokens = 40 chars.
    entries = [_entry("a" * 30), _entry("b" * 20), _entry("c" * 5)]
    selected = select_within_budget(entries, token_budget=10)
    assert selected == entries[:1]


def test_select_exact_fit_is_included() -> None:
    entries = [_entry("a" * 20), _entry("b" * 20)]
    assert select_within_budget(entries, token_budget=10) == entries


def test_overflowing_entry_is_not_truncated() -> None:
    prompt = build_system_prompt("Base.", [_entry("x" * 3201)])
    assert prompt == "Base."


def test_default_budget_applies() -> None:
    entries = [_entry("a" * 3000), _entry("b" * 300)]
    prompt = build_system_prompt("Base.", entries)
    assert "a" * 3000 in prompt
    assert "b" * 300 not in prompt
