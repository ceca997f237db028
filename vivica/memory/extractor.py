"""Automatic memory extraction.

After each successful user↔assistant exchange, a background task scans the
user's message for preferences, personal facts and goals and stores each
match as a memory.  Only the user's text is scanned.  Matches are not
deduplicated against existing memories.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vivica.config import settings
from vivica.memory.models import MemoryCategory, profile_tag

if TYPE_CHECKING:
    from vivica.memory.engine import MemoryEngine

logger = logging.getLogger(__name__)

AUTO_TAG = "auto-extracted"

# Profiles that do not get a profile:<id> tag.
UNTAGGED_PROFILES = frozenset({"global", "default"})

# A clause runs until sentence punctuation, the end of the text, or the
# start of another "and/but/or I ..." clause.
_CLAUSE_END = r"(?=\s+(?:and|but|or)\s+I\b|[.!?]|$)"
_CLAUSE_END_NO_COMMA = r"(?=\s+(?:and|but|or)\s+I\b|[.!?,]|$)"

_FLAGS = re.IGNORECASE | re.MULTILINE

PREFERENCE_PATTERNS = (
    re.compile(r"\bI (?:like|love|prefer|enjoy|want|need) ([^.!?]+?)" + _CLAUSE_END, _FLAGS),
    re.compile(r"\bMy (?:favorite|preference) (?:is|are) ([^.!?]+?)" + _CLAUSE_END, _FLAGS),
)

PERSONAL_PATTERNS = (
    re.compile(r"\b(?:My name is|I'm called|Call me) ([^.!?,]+?)" + _CLAUSE_END_NO_COMMA, _FLAGS),
    re.compile(r"\bI (?:am|work as|am a) ([^.!?,]+?)" + _CLAUSE_END_NO_COMMA, _FLAGS),
    re.compile(r"\bI (?:live in|am from) ([^.!?,]+?)" + _CLAUSE_END_NO_COMMA, _FLAGS),
)

GOAL_PATTERNS = (
    re.compile(r"\bI (?:want to|plan to|hope to|aim to) ([^.!?]+?)" + _CLAUSE_END, _FLAGS),
    re.compile(r"\bMy goal is to ([^.!?]+?)" + _CLAUSE_END, _FLAGS),
)

PREFERENCE_IMPORTANCE = 6
PERSONAL_IMPORTANCE = 8
GOAL_IMPORTANCE = 7


# -- Data structures ---------------------------------------------------------


@dataclass
class ExtractedMemory:
    content: str
    category: MemoryCategory
    importance: int
    tags: list[str] = field(default_factory=list)


# -- Matching ----------------------------------------------------------------


def _tags(kind: str, profile_id: str | None) -> list[str]:
    tags = [AUTO_TAG, kind]
    if profile_id and profile_id not in UNTAGGED_PROFILES:
        tags.append(profile_tag(profile_id))
    return tags


def extract_candidates(
    user_message: str,
    assistant_message: str = "",
    profile_id: str | None = None,
) -> list[ExtractedMemory]:
    """Propose memories from one exchange. Pure: no I/O.

    *assistant_message* is accepted for symmetry with the exchange but is
    never scanned.
    """
    candidates: list[ExtractedMemory] = []

    for pattern in PREFERENCE_PATTERNS:
        for match in pattern.finditer(user_message):
            candidates.append(
                ExtractedMemory(
                    content=f"User {match.group(0).lower()}",
                    category=MemoryCategory.PREFERENCES,
                    importance=PREFERENCE_IMPORTANCE,
                    tags=_tags("preference", profile_id),
                )
            )

    for pattern in PERSONAL_PATTERNS:
        for match in pattern.finditer(user_message):
            candidates.append(
                ExtractedMemory(
                    content=match.group(0),
                    category=MemoryCategory.PERSONAL,
                    importance=PERSONAL_IMPORTANCE,
                    tags=_tags("personal-info", profile_id),
                )
            )

    for pattern in GOAL_PATTERNS:
        for match in pattern.finditer(user_message):
            candidates.append(
                ExtractedMemory(
                    content=f"User wants to {match.group(1)}",
                    category=MemoryCategory.OTHER,
                    importance=GOAL_IMPORTANCE,
                    tags=_tags("goal", profile_id),
                )
            )

    return candidates


# -- Main pipeline -----------------------------------------------------------


async def save_candidates(engine: MemoryEngine, candidates: list[ExtractedMemory]) -> int:
    """Persist candidates through the engine. Returns how many were stored."""
    saved = 0
    for mem in candidates:
        entry = await engine.add(
            content=mem.content,
            category=mem.category,
            importance=mem.importance,
            tags=mem.tags,
        )
        if entry is not None:
            saved += 1
    return saved


async def extract_and_save(
    engine: MemoryEngine,
    user_message: str,
    assistant_message: str,
    profile_id: str | None = None,
) -> int:
    """Background task: extract memories from an exchange and save them.

    Call via ``asyncio.create_task(extract_and_save(...))``.  Returns the
    number of entries created.
    """
    if not settings.memory_extraction_enabled:
        return 0

    try:
        candidates = extract_candidates(user_message, assistant_message, profile_id)
        saved = await save_candidates(engine, candidates)
    except Exception:
        logger.exception("Memory extraction failed (non-fatal)")
        return 0

    if saved:
        logger.info("Extracted %d memories from exchange", saved)
    return saved
