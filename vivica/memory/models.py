"""Data models for long-term memory entries."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum

from vivica.chat.models import make_id, utc_now
from vivica.errors import ValidationError

MIN_IMPORTANCE = 0
MAX_IMPORTANCE = 10
PINNED_THRESHOLD = 8
PIN_IMPORTANCE = 10
UNPIN_IMPORTANCE = 5
DEFAULT_IMPORTANCE = 5

PROFILE_TAG_PREFIX = "profile:"


class MemoryCategory(StrEnum):
    PERSONAL = "personal"
    PREFERENCES = "preferences"
    CONTEXT = "context"
    KNOWLEDGE = "knowledge"
    OTHER = "other"


# Older records used a second taxonomy; fold it into the canonical one on read.
LEGACY_CATEGORIES: dict[str, MemoryCategory] = {
    "fact": MemoryCategory.PERSONAL,
    "preference": MemoryCategory.PREFERENCES,
    "goal": MemoryCategory.OTHER,
}


def normalize_category(value: str | None) -> MemoryCategory:
    """Map any stored category string onto the canonical taxonomy."""
    if not value:
        return MemoryCategory.OTHER
    key = value.strip().lower()
    if key in LEGACY_CATEGORIES:
        return LEGACY_CATEGORIES[key]
    try:
        return MemoryCategory(key)
    except ValueError:
        return MemoryCategory.OTHER


def parse_category(value: str) -> MemoryCategory:
    """Strict variant for manual edits: unknown categories are rejected."""
    key = value.strip().lower()
    if key in LEGACY_CATEGORIES:
        return LEGACY_CATEGORIES[key]
    try:
        return MemoryCategory(key)
    except ValueError:
        allowed = ", ".join(c.value for c in MemoryCategory)
        raise ValidationError(f"Unknown memory category {value!r} (expected one of: {allowed})") from None


def validate_importance(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Importance must be an integer, got {value!r}")
    if not MIN_IMPORTANCE <= value <= MAX_IMPORTANCE:
        raise ValidationError(
            f"Importance must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}, got {value}"
        )
    return value


def validate_content(value: str) -> str:
    if not value or not value.strip():
        raise ValidationError("Memory content is required.")
    return value


def profile_tag(profile_id: str) -> str:
    return f"{PROFILE_TAG_PREFIX}{profile_id}"


@dataclass
class MemoryEntry:
    """A remembered fact, preference or goal.

    Attributes:
        id: Unique identifier (UUID hex).
        content: The remembered text.
        category: One of :class:`MemoryCategory`.
        importance: 0-10; 8 and above counts as pinned.
        tags: Free-form labels; ``profile:<id>`` ties an entry to a profile.
        created_at: ISO 8601 timestamp.
        last_accessed: ISO 8601 timestamp, bumped on every mutation.
    """

    content: str
    category: MemoryCategory = MemoryCategory.OTHER
    importance: int = DEFAULT_IMPORTANCE
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=make_id)
    created_at: str = field(default_factory=utc_now)
    last_accessed: str = ""

    def __post_init__(self) -> None:
        self.category = normalize_category(self.category)
        if not self.last_accessed:
            self.last_accessed = self.created_at

    @property
    def is_pinned(self) -> bool:
        return self.importance >= PINNED_THRESHOLD

    def has_profile(self, profile_id: str) -> bool:
        return profile_tag(profile_id) in self.tags

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``memory`` column order."""
        return (
            self.id,
            self.content,
            self.category.value,
            self.importance,
            json.dumps(self.tags),
            self.created_at,
            self.last_accessed,
        )

    @classmethod
    def from_row(cls, row: tuple) -> MemoryEntry:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            content=row[1],
            category=normalize_category(row[2]),
            importance=int(row[3]),
            tags=json.loads(row[4]) if row[4] else [],
            created_at=row[5],
            last_accessed=row[6],
        )
