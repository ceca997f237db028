"""Memory engine: CRUD over memory entries plus the prompt relevance policy.

The engine keeps an in-memory mirror of the ``memory`` collection, newest
first.  The store is the source of truth; ``refresh()`` reloads the mirror.
Storage failures are logged and leave the mirror untouched, so a failed
write never surfaces to the caller as an exception.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from vivica.chat.models import make_id, utc_now
from vivica.errors import StorageError, ValidationError
from vivica.memory.models import (
    PIN_IMPORTANCE,
    UNPIN_IMPORTANCE,
    MemoryCategory,
    MemoryEntry,
    parse_category,
    validate_content,
    validate_importance,
)

if TYPE_CHECKING:
    from vivica.storage.store import Store

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)

_MUTABLE_FIELDS = frozenset({"content", "category", "importance", "tags"})


class MemoryEngine:
    """Owns the memory mirror and the operations the UI and extractor use."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._memories: list[MemoryEntry] = []

    @property
    def memories(self) -> list[MemoryEntry]:
        return list(self._memories)

    async def refresh(self) -> None:
        """Reload the mirror from the store, newest first."""
        try:
            loaded = await self._store.get_memories()
        except StorageError:
            logger.exception("Failed to load memories")
            return
        self._memories = sorted(loaded, key=lambda m: m.created_at, reverse=True)
        logger.debug("Loaded %d memories", len(self._memories))

    # -- Write -----------------------------------------------------------------

    async def add(
        self,
        content: str,
        category: MemoryCategory | str = MemoryCategory.OTHER,
        importance: int = UNPIN_IMPORTANCE,
        tags: list[str] | None = None,
    ) -> MemoryEntry | None:
        """Create and persist a new entry.

        Raises:
            ValidationError: empty content, out-of-range importance or an
                unknown category.

        Returns:
            The new entry, or None if it could not be saved.
        """
        now = utc_now()
        entry = MemoryEntry(
            id=make_id(),
            content=validate_content(content),
            category=parse_category(category),
            importance=validate_importance(importance),
            tags=list(tags or []),
            created_at=now,
            last_accessed=now,
        )
        try:
            await self._store.put_memory(entry)
        except StorageError:
            logger.exception("Failed to save memory")
            return None
        self._memories.insert(0, entry)
        logger.debug("Stored memory [%s/%d]: %s", entry.category, entry.importance, content[:80])
        return entry

    async def update(self, memory_id: str, **fields: Any) -> MemoryEntry | None:
        """Merge *fields* into an entry and bump ``last_accessed``.

        Unknown ids are a no-op returning None.

        Raises:
            ValidationError: unknown field names or invalid values.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update memory field(s): {', '.join(sorted(unknown))}")

        index = self._index_of(memory_id)
        if index is None:
            return None

        if "content" in fields:
            validate_content(fields["content"])
        if "importance" in fields:
            validate_importance(fields["importance"])
        if "category" in fields:
            fields["category"] = parse_category(fields["category"])
        if "tags" in fields:
            fields["tags"] = list(fields["tags"] or [])

        updated = replace(self._memories[index], **fields, last_accessed=utc_now())
        try:
            await self._store.put_memory(updated)
        except StorageError:
            logger.exception("Failed to update memory %s", memory_id)
            return None
        self._memories[index] = updated
        return updated

    async def pin(self, memory_id: str) -> MemoryEntry | None:
        return await self.update(memory_id, importance=PIN_IMPORTANCE)

    async def unpin(self, memory_id: str) -> MemoryEntry | None:
        return await self.update(memory_id, importance=UNPIN_IMPORTANCE)

    # -- Delete ----------------------------------------------------------------

    async def delete(self, memory_id: str) -> bool:
        """Delete one entry. Returns False if the store rejected the delete."""
        try:
            await self._store.delete_memory(memory_id)
        except StorageError:
            logger.exception("Failed to delete memory %s", memory_id)
            return False
        self._memories = [m for m in self._memories if m.id != memory_id]
        return True

    async def clear_all(self) -> int:
        """Delete every entry one by one, continuing past failures.

        Returns the number of entries deleted; entries that failed to delete
        stay in the mirror.
        """
        deleted = 0
        for entry in list(self._memories):
            if await self.delete(entry.id):
                deleted += 1
        logger.info("Cleared %d of %d memories", deleted, deleted + len(self._memories))
        return deleted

    # -- Read ------------------------------------------------------------------

    def relevant_memories(self, limit: int = 10) -> list[MemoryEntry]:
        """Top *limit* entries by importance, ties kept in mirror order.

        This is the policy used to build the prompt's memory context.  It
        reads nothing but importance and mutates nothing.
        """
        if limit <= 0:
            return []
        return sorted(self._memories, key=lambda m: m.importance, reverse=True)[:limit]

    def get(self, memory_id: str) -> MemoryEntry | None:
        index = self._index_of(memory_id)
        return None if index is None else self._memories[index]

    def curated(self) -> list[MemoryEntry]:
        """Pinned entries first, then the rest; each group by importance then recency."""

        def _key(m: MemoryEntry) -> tuple:
            return (m.is_pinned, m.importance, m.last_accessed)

        return sorted(self._memories, key=_key, reverse=True)

    def search(self, term: str) -> list[MemoryEntry]:
        """Case-insensitive match against content or any tag."""
        needle = term.strip().lower()
        if not needle:
            return list(self._memories)
        return [
            m
            for m in self._memories
            if needle in m.content.lower() or any(needle in tag.lower() for tag in m.tags)
        ]

    def for_profile(self, profile_id: str) -> list[MemoryEntry]:
        return [m for m in self._memories if m.has_profile(profile_id)]

    def insights(self, now: datetime | None = None) -> dict[str, Any]:
        """Summary numbers for a memory dashboard."""
        now = now or datetime.now(UTC)
        total = len(self._memories)
        average = sum(m.importance for m in self._memories) / total if total else 0.0
        cutoff = now - RECENT_WINDOW
        recent = sum(1 for m in self._memories if datetime.fromisoformat(m.created_at) >= cutoff)
        by_category = {c.value: 0 for c in MemoryCategory}
        for m in self._memories:
            by_category[m.category.value] += 1
        return {
            "total": total,
            "average_importance": round(average, 1),
            "added_this_week": recent,
            "pinned": sum(1 for m in self._memories if m.is_pinned),
            "by_category": by_category,
        }

    def _index_of(self, memory_id: str) -> int | None:
        for i, m in enumerate(self._memories):
            if m.id == memory_id:
                return i
        return None
