"""System prompt assembly with memory context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vivica.memory.models import MemoryEntry

logger = logging.getLogger(__name__)

# Token counts are approximated from character counts; there is no tokenizer.
MEMORY_TOKEN_BUDGET = 800
CHARS_PER_TOKEN = 4

MEMORY_HEADER = "Context about the user:"


def select_within_budget(
    entries: list[MemoryEntry],
    token_budget: int = MEMORY_TOKEN_BUDGET,
) -> list[MemoryEntry]:
    """Take entries in order while their combined content fits the budget.

    Stops at the first entry that would overflow; that entry is dropped
    whole, never truncated, and nothing after it is considered.
    """
    char_budget = token_budget * CHARS_PER_TOKEN
    selected: list[MemoryEntry] = []
    used = 0
    for entry in entries:
        size = len(entry.content)
        if used + size > char_budget:
            logger.debug(
                "Memory budget reached after %d entries (%d/%d chars)",
                len(selected),
                used,
                char_budget,
            )
            break
        selected.append(entry)
        used += size
    return selected


def _format_memories(entries: list[MemoryEntry]) -> str:
    """Format memories for injection into the system prompt."""
    if not entries:
        return ""

    lines = [MEMORY_HEADER]
    for entry in entries:
        lines.append(f"- {entry.content}")
    return "\n".join(lines)


def build_system_prompt(
    base_prompt: str,
    memories: list[MemoryEntry],
    token_budget: int = MEMORY_TOKEN_BUDGET,
) -> str:
    """Concatenate the base prompt with a budget-capped memory block.

    Args:
        base_prompt: The profile or global system prompt.
        memories: Candidates in ranked order (most relevant first).
        token_budget: Approximate token cap for the memory block content.
    """
    memory_text = _format_memories(select_within_budget(memories, token_budget))
    if not memory_text:
        return base_prompt
    return f"{base_prompt}\n\n{memory_text}"
